"""Errors raised by the setup and ask workflows."""


class HealthmateError(Exception):
    """Base class for failures reported to the operator."""


class ConfigError(HealthmateError):
    """A required setting is missing or invalid."""


class UnrecognizedStatus(HealthmateError):
    def __init__(self, status: str) -> None:
        super().__init__(f"Unrecognized job status: {status!r}")
        self.status = status


class PollTimeout(HealthmateError):
    def __init__(self, last_snapshot, elapsed: float, attempts: int) -> None:
        super().__init__(
            f"Timed out after {int(elapsed)}s ({attempts} checks), "
            f"last status: {last_snapshot.status}"
        )
        self.last_snapshot = last_snapshot
        self.elapsed = elapsed
        self.attempts = attempts


class IndexingFailed(HealthmateError):
    def __init__(self, status: str) -> None:
        super().__init__(f"File batch did not complete successfully: {status}")
        self.status = status


class RunFailed(HealthmateError):
    def __init__(self, status: str, detail: str | None = None) -> None:
        message = f"Run failed with status {status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.status = status
        self.detail = detail


class NoAssistantMessage(HealthmateError):
    def __init__(self, thread_id: str) -> None:
        super().__init__(f"No assistant message found in thread {thread_id}.")
        self.thread_id = thread_id
