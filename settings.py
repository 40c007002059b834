"""Environment-driven settings for the setup and ask commands."""

import os
from dataclasses import dataclass
from pathlib import Path

from errors import ConfigError

DEFAULT_MODEL = "gpt-4.1"
DEFAULT_VECTOR_STORE_NAME = "FifthQtr Healthmate Knowledge"
DEFAULT_ASSISTANT_NAME = "FifthQtr Healthmate"
DEFAULT_ASSISTANT_ENV = "prod"
DEFAULT_INSTRUCTIONS_FILE = "instructions.txt"
DEFAULT_KNOWLEDGE_DIR = "knowledge"
METADATA_PRODUCT = "fifthqtr-healthmate"

# attribute name -> environment variable
ENV_VARS = {
    "api_key": "OPENAI_API_KEY",
    "project": "OPENAI_PROJECT_ID",
    "organization": "OPENAI_ORG_ID",
    "model": "OPENAI_MODEL",
    "vector_store_name": "VECTOR_STORE_NAME",
    "assistant_name": "ASSISTANT_NAME",
    "assistant_id": "OPENAI_ASSISTANT_ID",
    "assistant_env": "ASSISTANT_ENV",
}


@dataclass(frozen=True)
class Settings:
    api_key: str | None = None
    project: str | None = None
    organization: str | None = None
    model: str = DEFAULT_MODEL
    vector_store_name: str = DEFAULT_VECTOR_STORE_NAME
    assistant_name: str = DEFAULT_ASSISTANT_NAME
    assistant_id: str | None = None
    assistant_env: str = DEFAULT_ASSISTANT_ENV

    def require(self, *names: str) -> None:
        """Raise ConfigError for the first named setting that is empty."""
        for name in names:
            if not getattr(self, name):
                raise ConfigError(f"Please set {ENV_VARS[name]} in .env first.")

    def assistant_metadata(self) -> dict[str, str]:
        return {"product": METADATA_PRODUCT, "env": self.assistant_env}


def load_settings(environ=None) -> Settings:
    env = os.environ if environ is None else environ

    def value(name: str, default=None):
        raw = env.get(ENV_VARS[name], "")
        raw = raw.strip()
        return raw or default

    return Settings(
        api_key=value("api_key"),
        project=value("project"),
        organization=value("organization"),
        model=value("model", DEFAULT_MODEL),
        vector_store_name=value("vector_store_name", DEFAULT_VECTOR_STORE_NAME),
        assistant_name=value("assistant_name", DEFAULT_ASSISTANT_NAME),
        assistant_id=value("assistant_id"),
        assistant_env=value("assistant_env", DEFAULT_ASSISTANT_ENV),
    )


def load_instructions(path: str | Path) -> str:
    """Read the assistant instructions verbatim."""
    instructions_path = Path(path)
    try:
        return instructions_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Instructions file '{instructions_path}' does not exist.") from None
