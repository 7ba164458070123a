"""Settings for paperscout.

Values come from, in increasing precedence: built-in defaults,
~/.paperscout/config.json, and environment variables (a ``.env`` file is
loaded by the CLI via python-dotenv).
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_LLM_MODEL = "claude-haiku-4-5-20251001"


def get_config_dir() -> Path:
    """Get the config directory, creating if needed."""
    config_dir = Path(os.environ.get("PAPERSCOUT_HOME", Path.home() / ".paperscout"))
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get path to config file."""
    return get_config_dir() / "config.json"


def get_config() -> dict:
    """Load configuration from JSON file. Returns {} if missing or unreadable."""
    config_path = get_config_path()
    if not config_path.exists():
        return {}
    try:
        return json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_path, e)
        return {}


def save_config(config: dict) -> None:
    """Save configuration to JSON file."""
    config_path = get_config_path()
    config_path.write_text(json.dumps(config, indent=2))


@dataclass
class Settings:
    """Runtime settings shared by the CLI and the API server."""

    db_path: Path = field(default_factory=lambda: Path.home() / ".paperscout" / "library.db")
    semantic_scholar_api_key: Optional[str] = None
    request_delay: float = 1.0  # seconds between recommendation requests
    max_sources: int = 3  # source papers consulted per recommendation request
    request_timeout: float = 30.0  # per external call, seconds
    request_deadline: float = 120.0  # whole recommendation fan-out, seconds
    arxiv_delay: float = 3.0
    anthropic_api_key: Optional[str] = None
    llm_model: str = DEFAULT_LLM_MODEL


# (env var, settings attribute, converter)
_ENV_OVERRIDES = [
    ("PAPERSCOUT_DB_PATH", "db_path", Path),
    ("SEMANTIC_SCHOLAR_API_KEY", "semantic_scholar_api_key", str),
    ("PAPERSCOUT_REQUEST_DELAY", "request_delay", float),
    ("PAPERSCOUT_MAX_SOURCES", "max_sources", int),
    ("PAPERSCOUT_TIMEOUT", "request_timeout", float),
    ("PAPERSCOUT_DEADLINE", "request_deadline", float),
    ("PAPERSCOUT_ARXIV_DELAY", "arxiv_delay", float),
    ("ANTHROPIC_API_KEY", "anthropic_api_key", str),
    ("PAPERSCOUT_LLM_MODEL", "llm_model", str),
]


def load_settings(config: Optional[dict] = None, environ: Optional[dict] = None) -> Settings:
    """Build Settings from the config file and environment.

    Args:
        config: Parsed config dict (defaults to ``get_config()``)
        environ: Environment mapping (defaults to ``os.environ``)

    Raises:
        ValueError: if a numeric setting cannot be parsed
    """
    config = get_config() if config is None else config
    environ = os.environ if environ is None else environ
    settings = Settings()

    for env_var, attr, convert in _ENV_OVERRIDES:
        value = environ.get(env_var)
        if value in (None, ""):
            value = config.get(attr)
        if value in (None, ""):
            continue
        try:
            setattr(settings, attr, convert(value))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid value for {attr}: {value!r}") from e

    return settings
