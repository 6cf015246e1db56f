"""
Configuration loading for message debouncing.

Connection settings come from the environment (a ``.env`` file is loaded on
import). Debounce options can be kept in a JSON file shaped like the host
parameters::

    {
        "firstMessageBehavior": "immediate",
        "sessionTtlUnit": "hours",
        "sessionTtlValue": 24,
        "options": {"maxMessages": 10, "flushKeywords": "urgent;done"}
    }
"""
import json
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from message_debounce.core.models import StoreConfig

logger = logging.getLogger(__name__)

load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(*names: str) -> bool:
    for name in names:
        value = os.getenv(name)
        if value is not None:
            return value.strip().lower() in _TRUE_VALUES
    return False


def load_store_config() -> StoreConfig:
    """
    Build connection settings from environment variables.

    Reads REDIS_HOST, REDIS_PORT, REDIS_USERNAME (or REDIS_USER),
    REDIS_PASSWORD, REDIS_DB and REDIS_TLS (or REDIS_SSL).
    """
    return StoreConfig(
        host=os.getenv("REDIS_HOST", "localhost"),
        port=int(os.getenv("REDIS_PORT", "6379")),
        username=os.getenv("REDIS_USERNAME") or os.getenv("REDIS_USER") or "",
        password=os.getenv("REDIS_PASSWORD", ""),
        database=int(os.getenv("REDIS_DB", "0")),
        tls=_env_flag("REDIS_TLS", "REDIS_SSL"),
    )


def load_options_file(path: Optional[Path]) -> dict:
    """
    Load debounce parameters from a JSON file.

    Returns an empty dict when no path is given or the file does not exist.
    """
    if path is None:
        return {}
    if not path.exists():
        logger.debug(f"No options file at {path} - using defaults")
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Options file {path} must contain a JSON object")
    return data
