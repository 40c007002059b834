"""Ingestion: vector store, document upload, batch indexing, assistant creation."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from documents import IGNORE_FILE, scan_document_files
from errors import IndexingFailed
from polling import (
    BATCH_PENDING_STATUSES,
    BATCH_TERMINAL_STATUSES,
    DEFAULT_POLL_INTERVAL_SECONDS,
    batch_snapshot,
    poll_until_terminal,
)
from settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_WORKERS = 4
FILE_SEARCH_TOOL = {"type": "file_search"}


@dataclass
class IngestionResult:
    vector_store_id: str
    assistant_id: str
    assistant_name: str
    file_ids: list[str] = field(default_factory=list)
    batch_status: str | None = None


def upload_documents(client, documents: list[tuple[str, Path]], *, max_workers: int = DEFAULT_UPLOAD_WORKERS, out=print) -> list[str]:
    """Upload every document concurrently; ids come back in document order.

    The first failed upload is re-raised once all submitted uploads have settled.
    """

    def upload(entry: tuple[str, Path]) -> str:
        rel_path, file_path = entry
        out(f"Uploading {rel_path}...")
        file = client.files.create(file=(rel_path, file_path.read_bytes()), purpose="assistants")
        logger.debug("Uploaded %s as %s", rel_path, file.id)
        return file.id

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        return list(executor.map(upload, documents))


def wait_for_batch(client, vector_store_id: str, batch_id: str, **poll_options):
    def fetch():
        batch = client.vector_stores.file_batches.retrieve(batch_id, vector_store_id=vector_store_id)
        return batch_snapshot(batch)

    return poll_until_terminal(
        fetch,
        terminal=BATCH_TERMINAL_STATUSES,
        pending=BATCH_PENDING_STATUSES,
        **poll_options,
    )


def create_assistant(client, settings: Settings, instructions: str, vector_store_id: str):
    return client.beta.assistants.create(
        name=settings.assistant_name,
        model=settings.model,
        instructions=instructions,
        tools=[dict(FILE_SEARCH_TOOL)],
        tool_resources={"file_search": {"vector_store_ids": [vector_store_id]}},
        metadata=settings.assistant_metadata(),
    )


def run_ingestion(
    client,
    settings: Settings,
    folder: Path,
    instructions: str,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    max_wait: float | None = None,
    continue_on_index_failure: bool = True,
    upload_workers: int = DEFAULT_UPLOAD_WORKERS,
    on_progress=None,
    out=print,
) -> IngestionResult:
    """Create the vector store and the assistant that searches it.

    An empty (or missing) folder skips upload and indexing; the assistant is
    still created against the empty store. A batch that ends in any status
    other than ``completed`` is reported and, unless
    ``continue_on_index_failure`` is false, the assistant is created anyway.
    """
    out("Creating vector store...")
    vector_store = client.vector_stores.create(name=settings.vector_store_name)

    documents, skipped = scan_document_files(folder)
    if skipped:
        out(f"Skipping {len(skipped)} file(s) matched by ignore rules ({IGNORE_FILE} or defaults): {', '.join(skipped)}")
    file_ids: list[str] = []
    batch_status = None

    if not documents:
        out(f"Warning: No files found in '{folder}'. The assistant will still work but without citations.")
    else:
        out(f"Uploading {len(documents)} file(s) to vector store {vector_store.id}...")
        file_ids = upload_documents(client, documents, max_workers=upload_workers, out=out)

        batch = client.vector_stores.file_batches.create(
            vector_store_id=vector_store.id,
            file_ids=file_ids,
        )

        out("Indexing files...")
        final = wait_for_batch(
            client,
            vector_store.id,
            batch.id,
            interval=poll_interval,
            max_wait=max_wait,
            on_progress=on_progress,
        )
        batch_status = final.status
        if not final.succeeded:
            if not continue_on_index_failure:
                raise IndexingFailed(final.status)
            out(f"Warning: Batch did not complete successfully: {final.status}")

    out("Creating assistant...")
    assistant = create_assistant(client, settings, instructions, vector_store.id)

    return IngestionResult(
        vector_store_id=vector_store.id,
        assistant_id=assistant.id,
        assistant_name=assistant.name or settings.assistant_name,
        file_ids=file_ids,
        batch_status=batch_status,
    )
