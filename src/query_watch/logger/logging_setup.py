import os
import yaml
import logging
import logging.config
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional

PACKAGED_CONFIG = "logging_config.yaml"
APP_LOGGER = "query_watch"


def resolve_log_dir() -> Path:
    """Resolve the directory used for log files.

    Prefers `LOG_DIR`, then `QW_LOG_DIR`, falling back to ``./logs``.
    """

    candidates = (os.getenv("LOG_DIR"), os.getenv("QW_LOG_DIR"))
    for raw in candidates:
        if raw:
            return Path(raw).expanduser().resolve()
    return Path("logs").resolve()


def load_logging_config(env_key: str = "LOG_CFG") -> Optional[Dict[str, Any]]:
    """
    Read the dictConfig mapping from ``$LOG_CFG`` or, when unset, from the
    YAML shipped inside the package. None when ``$LOG_CFG`` names no file.
    """
    path = os.getenv(env_key)
    if path:
        if not os.path.exists(path):
            return None
        with open(path, "rt", encoding="utf-8") as f:
            return yaml.safe_load(f)

    packaged = resources.files("query_watch") / "config" / PACKAGED_CONFIG
    return yaml.safe_load(packaged.read_text(encoding="utf-8"))


def _apply_overrides(config: Dict[str, Any]) -> None:
    handlers = config.get("handlers", {})
    file_handler = handlers.get("file")
    if file_handler and "filename" in file_handler:
        log_dir = resolve_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        filename = Path(file_handler["filename"]).name
        file_handler["filename"] = str(log_dir / filename)

    level = os.getenv("LOG_LEVEL", "").strip().upper()
    # getLevelName maps known names to their int value
    if isinstance(logging.getLevelName(level), int):
        config.setdefault("loggers", {}).setdefault(APP_LOGGER, {})["level"] = level


def setup_logging(default_level=logging.INFO, env_key="LOG_CFG"):
    """
    Load logging configuration from YAML, falling back to basicConfig.

    ``LOG_DIR`` relocates the file handler and ``LOG_LEVEL`` overrides the
    level of the application logger.
    """
    config = load_logging_config(env_key)
    if config is None:
        logging.basicConfig(level=default_level)
        return

    _apply_overrides(config)
    logging.config.dictConfig(config)
