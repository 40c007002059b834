#!/usr/bin/env python3
"""Healthmate - set up and query a document-grounded OpenAI assistant."""

import argparse
import logging
import sys
import warnings
from importlib import metadata
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Silence OpenAI Assistants API deprecation warnings (API works until Aug 2026)
warnings.filterwarnings("ignore", message=".*Assistants API is deprecated.*")

from openai import OpenAI, OpenAIError

from errors import HealthmateError, NoAssistantMessage
from ingest import DEFAULT_UPLOAD_WORKERS, run_ingestion
from polling import DEFAULT_POLL_INTERVAL_SECONDS, ProgressSnapshot
from query import DEFAULT_MESSAGE_LIMIT, ask
from settings import DEFAULT_INSTRUCTIONS_FILE, DEFAULT_KNOWLEDGE_DIR, Settings, load_instructions, load_settings

logger = logging.getLogger(__name__)

DEFAULT_INDEX_TIMEOUT_SECONDS = 600
DEFAULT_RUN_TIMEOUT_SECONDS = 300
DEFAULT_INDEX_POLL_INTERVAL_SECONDS = 1.2
DEFAULT_QUESTION = "Where can a retired AFL player get help for memory and thinking concerns in Australia?"

_client: OpenAI | None = None


def get_client(settings: Settings) -> OpenAI:
    global _client
    if _client is None:
        _client = OpenAI(
            api_key=settings.api_key,
            project=settings.project,
            organization=settings.organization,
        )
    return _client


def _read_version_from_pyproject(pyproject_path: Path) -> str:
    try:
        content = pyproject_path.read_text().splitlines()
    except OSError:
        return "0.0.0"

    in_project = False
    for raw_line in content:
        line = raw_line.strip()
        if line.startswith("[") and line.endswith("]"):
            in_project = line == "[project]"
            continue
        if in_project and line.startswith("version"):
            _, value = line.split("=", 1)
            return value.strip().strip('"').strip("'")

    return "0.0.0"


def get_version() -> str:
    try:
        return metadata.version("healthmate-assistant")
    except metadata.PackageNotFoundError:
        pyproject_path = Path(__file__).resolve().parent / "pyproject.toml"
        return _read_version_from_pyproject(pyproject_path)


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number


def _optional_seconds(value: float) -> float | None:
    return value if value > 0 else None


def print_batch_progress(snapshot: ProgressSnapshot) -> None:
    print(
        f"   status: {snapshot.status} "
        f"(processed: {snapshot.processed} / total: {snapshot.total}, failed: {snapshot.failed})"
    )


def print_run_progress(snapshot: ProgressSnapshot) -> None:
    print(f"   run status: {snapshot.status}", file=sys.stderr)


def print_answer(answer) -> None:
    print("\n--- Answer ---\n")
    print(answer.text or "(no text)")

    if answer.citations:
        print()
        print("Sources:")
        for index, citation in enumerate(answer.citations, 1):
            print(f"[{index}] {citation.display_name}")
            if citation.quote:
                print(f'    "{citation.quote}"')


def cmd_setup(args):
    """Upload the knowledge folder and create the assistant."""
    settings = load_settings()
    settings.require("api_key")
    instructions = load_instructions(args.instructions)
    client = get_client(settings)

    result = run_ingestion(
        client,
        settings,
        Path(args.folder),
        instructions,
        poll_interval=args.poll_interval,
        max_wait=_optional_seconds(args.index_timeout),
        continue_on_index_failure=not args.strict_indexing,
        upload_workers=args.upload_workers,
        on_progress=print_batch_progress,
    )

    print("\nDone!")
    print(f"Assistant name:  {result.assistant_name}")
    print(f"Assistant id:    {result.assistant_id}")
    print(f"Vector store id: {result.vector_store_id}")
    print(f"Documents:       {len(result.file_ids)}")
    print(f"Indexing:        {result.batch_status or 'skipped'}")
    print("\nNext steps:")
    print(f"1) Set OPENAI_ASSISTANT_ID={result.assistant_id} in your environment.")
    print("2) Run 'healthmate ask \"Your question\"'.")


def cmd_ask(args):
    """Ask the assistant a question and print the answer with its sources."""
    settings = load_settings()
    settings.require("assistant_id", "api_key")
    client = get_client(settings)

    print("Asking assistant...", file=sys.stderr)
    try:
        answer = ask(
            client,
            settings.assistant_id,
            args.question,
            poll_interval=args.poll_interval,
            max_wait=_optional_seconds(args.run_timeout),
            message_limit=args.message_limit,
            on_progress=print_run_progress,
        )
    except NoAssistantMessage:
        print("No assistant message found.")
        return
    print_answer(answer)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="healthmate",
        description="Set up and query a document-grounded OpenAI assistant"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"{parser.prog} {get_version()}",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # setup
    setup_parser = subparsers.add_parser("setup", help="Index a folder and create the assistant")
    setup_parser.add_argument(
        "folder",
        nargs="?",
        default=DEFAULT_KNOWLEDGE_DIR,
        help=f"Folder containing documents (default: {DEFAULT_KNOWLEDGE_DIR})",
    )
    setup_parser.add_argument(
        "--instructions",
        default=DEFAULT_INSTRUCTIONS_FILE,
        help=f"File with the assistant instructions (default: {DEFAULT_INSTRUCTIONS_FILE})",
    )
    setup_parser.add_argument(
        "--poll-interval",
        type=_positive_float,
        default=DEFAULT_INDEX_POLL_INTERVAL_SECONDS,
        help=f"Seconds between indexing status checks (default: {DEFAULT_INDEX_POLL_INTERVAL_SECONDS})",
    )
    setup_parser.add_argument(
        "--index-timeout",
        type=float,
        default=DEFAULT_INDEX_TIMEOUT_SECONDS,
        help=f"Max seconds to wait for indexing, 0 waits forever (default: {DEFAULT_INDEX_TIMEOUT_SECONDS})",
    )
    setup_parser.add_argument(
        "--strict-indexing",
        action="store_true",
        help="Stop without creating the assistant if indexing does not complete",
    )
    setup_parser.add_argument(
        "--upload-workers",
        type=int,
        default=DEFAULT_UPLOAD_WORKERS,
        help=f"Concurrent file uploads (default: {DEFAULT_UPLOAD_WORKERS})",
    )

    # ask
    ask_parser = subparsers.add_parser("ask", help="Ask the assistant a question")
    ask_parser.add_argument("question", nargs="?", default=DEFAULT_QUESTION, help="Question to ask")
    ask_parser.add_argument(
        "--poll-interval",
        type=_positive_float,
        default=DEFAULT_POLL_INTERVAL_SECONDS,
        help=f"Seconds between run status checks (default: {DEFAULT_POLL_INTERVAL_SECONDS})",
    )
    ask_parser.add_argument(
        "--run-timeout",
        type=float,
        default=DEFAULT_RUN_TIMEOUT_SECONDS,
        help=f"Max seconds to wait for the run, 0 waits forever (default: {DEFAULT_RUN_TIMEOUT_SECONDS})",
    )
    ask_parser.add_argument(
        "--message-limit",
        type=int,
        default=DEFAULT_MESSAGE_LIMIT,
        help=f"Recent messages to search for the answer (default: {DEFAULT_MESSAGE_LIMIT})",
    )

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    commands = {
        "setup": cmd_setup,
        "ask": cmd_ask,
    }

    try:
        commands[args.command](args)
    except (HealthmateError, OpenAIError) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
