"""Ask the assistant one question in a fresh thread and extract its answer."""

import logging

from citations import Answer, extract_answer, resolve_filenames
from errors import ConfigError, NoAssistantMessage, RunFailed
from polling import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    RUN_PENDING_STATUSES,
    RUN_TERMINAL_STATUSES,
    poll_until_terminal,
    run_snapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_LIMIT = 10


def wait_for_run(client, thread_id: str, run_id: str, **poll_options):
    def fetch():
        return run_snapshot(client.beta.threads.runs.retrieve(run_id, thread_id=thread_id))

    return poll_until_terminal(
        fetch,
        terminal=RUN_TERMINAL_STATUSES,
        pending=RUN_PENDING_STATUSES,
        **poll_options,
    )


def find_assistant_message(messages):
    for message in messages:
        if getattr(message, "role", None) == "assistant":
            return message
    return None


def lookup_filename(client, file_id: str) -> str:
    return client.files.retrieve(file_id).filename


def ask(
    client,
    assistant_id: str | None,
    question: str,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    max_wait: float | None = None,
    message_limit: int = DEFAULT_MESSAGE_LIMIT,
    on_progress=None,
) -> Answer:
    if not assistant_id:
        raise ConfigError("Please set OPENAI_ASSISTANT_ID in .env first.")

    thread = client.beta.threads.create()
    client.beta.threads.messages.create(thread.id, role="user", content=question)
    run = client.beta.threads.runs.create(thread_id=thread.id, assistant_id=assistant_id)
    logger.debug("Started run %s in thread %s", run.id, thread.id)

    final = wait_for_run(
        client,
        thread.id,
        run.id,
        interval=poll_interval,
        max_wait=max_wait,
        on_progress=on_progress,
    )
    if not final.succeeded:
        raise RunFailed(final.status, final.error)

    page = client.beta.threads.messages.list(thread.id, limit=message_limit, order="desc")
    message = find_assistant_message(page.data)
    if message is None:
        raise NoAssistantMessage(thread.id)

    answer = extract_answer(message.content)
    citations = resolve_filenames(answer.citations, lambda file_id: lookup_filename(client, file_id))
    return Answer(text=answer.text, citations=citations)
