"""
Runtime configuration for the MathMentor service and console client.

Values come from the process environment; secrets may also be mounted as
files under '/secrets/<NAME>', which take precedence over the variable of the
same name. The Gemini API key is looked up under several names because the
same deployment has historically exported it as any of them.
"""

import os
import sys
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field

from tutoring_toolkit.orchestration.data_models import Language
from tutoring_toolkit.orchestration.retry import RetryPolicy

API_KEY_CANDIDATES = (
    "API_KEY",
    "GOOGLE_API_KEY",
    "VITE_GOOGLE_API_KEY",
    "GEMINI_API_KEY",
    "VITE_GEMINI_API_KEY",
)

SECRETS_DIR = Path("/secrets")
DEFAULT_STATE_PATH = Path.home() / ".mathmentor" / "state.json"


class Settings(BaseModel):
    api_key: str | None = None
    log_level: str = "INFO"
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    state_path: Path = DEFAULT_STATE_PATH
    default_language: Language = Language.EN


def _get_secret(name: str) -> str:
    """Load a secret from a mounted secret file or an environment variable.

    Checks in order:
    1. /secrets/<name>
    2. <name> environment variable

    An empty secret file counts as missing. Raises ValueError if neither is available.
    """
    secret_file = SECRETS_DIR / name
    key = secret_file.read_text().strip() if secret_file.exists() else ""
    if not key:
        key = os.environ.get(name, "").strip()
    if not key:
        raise ValueError(f"{name} not found. Mount it at /secrets/{name} or set the {name} environment variable.")
    return key


def resolve_api_key() -> str | None:
    for name in API_KEY_CANDIDATES:
        try:
            key = _get_secret(name)
        except ValueError:
            continue
        logger.info(f"Using Gemini API key from {name}")
        if key.startswith("AlzaSy"):
            logger.warning("The API key starts with 'AlzaSy' (lowercase L); Google keys start with 'AIzaSy'")
        return key
    logger.warning(f"No Gemini API key found (looked for {', '.join(API_KEY_CANDIDATES)})")
    return None


def load_settings() -> Settings:
    defaults = RetryPolicy()
    retry_policy = RetryPolicy(
        max_attempts=int(os.getenv("RETRY_MAX_ATTEMPTS", defaults.max_attempts)),
        initial_delay=float(os.getenv("RETRY_INITIAL_DELAY", defaults.initial_delay)),
        multiplier=float(os.getenv("RETRY_MULTIPLIER", defaults.multiplier)),
    )
    return Settings(
        api_key=resolve_api_key(),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        retry_policy=retry_policy,
        state_path=Path(os.getenv("MATHMENTOR_STATE_PATH") or DEFAULT_STATE_PATH),
        default_language=Language(os.getenv("DEFAULT_LANGUAGE", Language.EN.value).upper()),
    )


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)
