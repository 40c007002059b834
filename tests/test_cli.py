import os
import subprocess
import sys
from pathlib import Path
from types import SimpleNamespace

import httpx
import pytest
from openai import BadRequestError, OpenAIError

import cli
from citations import Answer, Citation
from errors import NoAssistantMessage, RunFailed
from ingest import IngestionResult
from polling import ProgressSnapshot

ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def env(monkeypatch):
    for name in ("OPENAI_API_KEY", "OPENAI_ASSISTANT_ID", "OPENAI_MODEL", "ASSISTANT_NAME"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(cli, "get_client", lambda _settings: SimpleNamespace())
    return monkeypatch


def test_read_version_from_pyproject(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text('[tool.other]\nversion = "9.9.9"\n[project]\nversion = "1.2.3"\n')

    assert cli._read_version_from_pyproject(pyproject) == "1.2.3"
    assert cli._read_version_from_pyproject(tmp_path / "missing.toml") == "0.0.0"


def test_read_version_from_pyproject_no_version(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text("[project]\nname = 'healthmate-assistant'\n")
    assert cli._read_version_from_pyproject(pyproject) == "0.0.0"


def test_get_version_fallback(monkeypatch) -> None:
    def raise_missing(_name: str) -> str:
        raise cli.metadata.PackageNotFoundError

    monkeypatch.setattr(cli.metadata, "version", raise_missing)
    monkeypatch.setattr(cli, "_read_version_from_pyproject", lambda _path: "9.9.9")

    assert cli.get_version() == "9.9.9"


def test_get_client_caches(monkeypatch) -> None:
    created = []

    class DummyOpenAI:
        def __init__(self, **kwargs) -> None:
            created.append(kwargs)

    monkeypatch.setattr(cli, "OpenAI", DummyOpenAI)
    monkeypatch.setattr(cli, "_client", None)
    settings = SimpleNamespace(api_key="sk-test", project="proj_1", organization=None)

    assert cli.get_client(settings) is cli.get_client(settings)
    assert created == [{"api_key": "sk-test", "project": "proj_1", "organization": None}]


def test_cli_help_without_api_key() -> None:
    env = os.environ.copy()
    env.pop("OPENAI_API_KEY", None)

    result = subprocess.run(
        [sys.executable, "cli.py", "--help"],
        env=env,
        cwd=ROOT,
        capture_output=True,
        text=True,
    )

    assert result.returncode == 0
    assert "healthmate" in result.stdout


def test_setup_prints_ids(env, tmp_path: Path, capsys) -> None:
    instructions = tmp_path / "instructions.txt"
    instructions.write_text("Be kind.\n")
    calls = {}

    def fake_ingestion(client, settings, folder, text, **kwargs):
        calls.update(folder=folder, text=text, **kwargs)
        return IngestionResult(
            vector_store_id="vs_1",
            assistant_id="asst_1",
            assistant_name=settings.assistant_name,
            file_ids=["file_1"],
            batch_status="failed",
        )

    env.setattr(cli, "run_ingestion", fake_ingestion)

    cli.main(["setup", str(tmp_path / "docs"), "--instructions", str(instructions), "--index-timeout", "0"])

    out = capsys.readouterr().out
    assert "Assistant id:    asst_1" in out
    assert "Vector store id: vs_1" in out
    assert "Indexing:        failed" in out
    assert "OPENAI_ASSISTANT_ID=asst_1" in out
    assert calls["text"] == "Be kind.\n"
    assert calls["folder"] == tmp_path / "docs"
    assert calls["max_wait"] is None
    assert calls["continue_on_index_failure"] is True


def test_setup_requires_api_key(monkeypatch, tmp_path: Path, capsys) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(cli, "get_client", lambda _settings: pytest.fail("client built"))

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["setup", str(tmp_path)])

    assert excinfo.value.code == 1
    assert "OPENAI_API_KEY" in capsys.readouterr().err


def test_setup_missing_instructions(env, tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit):
        cli.main(["setup", str(tmp_path), "--instructions", str(tmp_path / "nope.txt")])

    assert "does not exist" in capsys.readouterr().err


def test_ask_requires_assistant_id(env, capsys) -> None:
    env.setattr(cli, "ask", lambda *_args, **_kwargs: pytest.fail("ask called"))

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["ask", "Q?"])

    assert excinfo.value.code == 1
    assert "OPENAI_ASSISTANT_ID" in capsys.readouterr().err


def test_ask_prints_answer_and_sources(env, capsys) -> None:
    env.setenv("OPENAI_ASSISTANT_ID", "asst_1")
    seen = {}

    def fake_ask(client, assistant_id, question, **kwargs):
        seen.update(assistant_id=assistant_id, question=question, **kwargs)
        return Answer(
            text="Try a memory clinic.",
            citations=[
                Citation("file-1", "Memory clinics help", filename="guide.pdf"),
                Citation("file-2"),
            ],
        )

    env.setattr(cli, "ask", fake_ask)

    cli.main(["ask", "Where?", "--message-limit", "3"])

    out = capsys.readouterr().out
    assert "Try a memory clinic." in out
    assert "[1] guide.pdf" in out
    assert '    "Memory clinics help"' in out
    assert "[2] file-2" in out
    assert seen["assistant_id"] == "asst_1"
    assert seen["question"] == "Where?"
    assert seen["message_limit"] == 3


def test_ask_default_question(env) -> None:
    env.setenv("OPENAI_ASSISTANT_ID", "asst_1")
    seen = {}

    def fake_ask(client, assistant_id, question, **kwargs):
        seen["question"] = question
        return Answer()

    env.setattr(cli, "ask", fake_ask)

    cli.main(["ask"])
    assert seen["question"] == cli.DEFAULT_QUESTION


def test_ask_run_failure_exits_non_zero(env, capsys) -> None:
    env.setenv("OPENAI_ASSISTANT_ID", "asst_1")

    def failing_ask(*_args, **_kwargs):
        raise RunFailed("failed", "server_error: boom")

    env.setattr(cli, "ask", failing_ask)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["ask", "Q?"])

    assert excinfo.value.code == 1
    assert "Run failed with status failed: server_error: boom" in capsys.readouterr().err


def test_transport_errors_exit_non_zero(env, capsys) -> None:
    env.setenv("OPENAI_ASSISTANT_ID", "asst_1")

    def offline(*_args, **_kwargs):
        raise OpenAIError("Connection error.")

    env.setattr(cli, "ask", offline)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["ask", "Q?"])

    assert excinfo.value.code == 1
    assert "Error: Connection error." in capsys.readouterr().err


def test_poll_interval_must_be_positive(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["ask", "Q?", "--poll-interval", "0"])

    assert excinfo.value.code == 2


def test_print_answer_without_text(capsys) -> None:
    cli.print_answer(Answer())

    out = capsys.readouterr().out
    assert "(no text)" in out
    assert "Sources:" not in out


def test_ask_without_assistant_message_exits_cleanly(env, capsys) -> None:
    env.setenv("OPENAI_ASSISTANT_ID", "asst_1")

    def no_reply(*_args, **_kwargs):
        raise NoAssistantMessage("thread_1")

    env.setattr(cli, "ask", no_reply)

    cli.main(["ask", "Q?"])

    out = capsys.readouterr().out
    assert "No assistant message found." in out
    assert "--- Answer ---" not in out


def test_api_error_body_printed_once(env, capsys) -> None:
    env.setenv("OPENAI_ASSISTANT_ID", "asst_1")
    body = {"message": "Invalid assistant", "code": "invalid_assistant_id"}
    response = httpx.Response(400, request=httpx.Request("POST", "https://api.openai.com/v1/threads/runs"))

    def rejected(*_args, **_kwargs):
        raise BadRequestError(f"Error code: 400 - {body}", response=response, body=body)

    env.setattr(cli, "ask", rejected)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["ask", "Q?"])

    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert "Error: Error code: 400" in err
    assert err.count("invalid_assistant_id") == 1


def test_batch_progress_shows_failed_count(capsys) -> None:
    cli.print_batch_progress(ProgressSnapshot(status="in_progress", processed=3, total=5, failed=1))

    assert "processed: 3 / total: 5, failed: 1" in capsys.readouterr().out
