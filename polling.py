"""Fixed-interval polling of remote jobs (file batches, runs)."""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from errors import PollTimeout, UnrecognizedStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 1.0

BATCH_PENDING_STATUSES = frozenset({"in_progress"})
# The API spells it "cancelled"; "canceled" is accepted as well.
BATCH_TERMINAL_STATUSES = frozenset({"completed", "failed", "cancelled", "canceled"})

RUN_PENDING_STATUSES = frozenset({"queued", "in_progress", "cancelling"})
# requires_action never resolves on its own: no tool outputs are ever submitted.
RUN_TERMINAL_STATUSES = frozenset(
    {"completed", "failed", "cancelled", "expired", "incomplete", "requires_action"}
)


@dataclass(frozen=True)
class ProgressSnapshot:
    status: str
    processed: int | None = None
    total: int | None = None
    failed: int | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


def _notify(on_progress, snapshot: ProgressSnapshot) -> None:
    if on_progress is None:
        return
    try:
        on_progress(snapshot)
    except Exception:
        logger.warning("Progress observer failed for status %s", snapshot.status, exc_info=True)


def poll_until_terminal(
    fetch: Callable[[], ProgressSnapshot],
    *,
    terminal,
    pending,
    interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    max_wait: float | None = None,
    max_attempts: int | None = None,
    on_progress: Callable[[ProgressSnapshot], None] | None = None,
    sleep=None,
    clock=None,
) -> ProgressSnapshot:
    """Call ``fetch`` until it reports a terminal status and return that snapshot.

    Errors raised by ``fetch`` propagate unchanged. A status that is neither
    terminal nor pending raises UnrecognizedStatus. When ``max_wait`` seconds
    or ``max_attempts`` fetches are exhausted without a terminal status,
    PollTimeout is raised. Nothing is fetched after the terminal snapshot.
    """
    if interval <= 0:
        raise ValueError("Polling interval must be positive.")
    if max_attempts is not None and max_attempts < 1:
        raise ValueError("max_attempts must be at least 1.")

    sleep = sleep or time.sleep
    clock = clock or time.monotonic
    start_time = clock()
    attempts = 0

    while True:
        snapshot = fetch()
        attempts += 1
        logger.debug("Poll #%d: %s", attempts, snapshot)
        _notify(on_progress, snapshot)

        if snapshot.status in terminal:
            return snapshot
        if snapshot.status not in pending:
            raise UnrecognizedStatus(snapshot.status)

        elapsed = clock() - start_time
        if max_attempts is not None and attempts >= max_attempts:
            raise PollTimeout(snapshot, elapsed, attempts)
        if max_wait is not None and elapsed >= max_wait:
            raise PollTimeout(snapshot, elapsed, attempts)

        sleep(interval)


def batch_snapshot(batch) -> ProgressSnapshot:
    """Snapshot of a vector store file batch."""
    counts = getattr(batch, "file_counts", None)
    if counts is None:
        return ProgressSnapshot(status=batch.status)
    completed = counts.completed or 0
    failed = counts.failed or 0
    cancelled = counts.cancelled or 0
    return ProgressSnapshot(
        status=batch.status,
        processed=completed + failed + cancelled,
        total=counts.total,
        failed=failed,
    )


def run_snapshot(run) -> ProgressSnapshot:
    """Snapshot of a thread run, with the API error attached when present."""
    error = None
    last_error = getattr(run, "last_error", None)
    if last_error:
        code = getattr(last_error, "code", None)
        message = getattr(last_error, "message", None) or ""
        error = f"{code}: {message}" if code else message or None
    return ProgressSnapshot(status=run.status, error=error)
