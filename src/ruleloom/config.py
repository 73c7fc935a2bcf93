"""Project configuration (``.ruleloom/config.yml``) and logging setup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = ".ruleloom"
CONFIG_FILE = "config.yml"
DEFAULT_DB_NAME = "ruleloom.db"
_VALID_LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR"})


@dataclass(frozen=True)
class RuleloomConfig:
    """Settings read from ``config.yml``; every field has a default."""

    db_path: Path
    default_ruleset: str | None = None
    actor: str | None = None
    log_level: str = "WARNING"


def default_config(project_root: Path) -> RuleloomConfig:
    return RuleloomConfig(db_path=project_root / CONFIG_DIR / DEFAULT_DB_NAME)


def load_config(project_root: Path) -> RuleloomConfig:
    """Load ``<project_root>/.ruleloom/config.yml``.

    Example::

        db_path: data/schemas.db      # relative to the project root
        default_ruleset: premium
        actor: alice
        log_level: INFO

    Falls back to defaults for a missing file, unreadable YAML or
    missing/ill-typed keys.
    """
    defaults = default_config(project_root)
    config_path = project_root / CONFIG_DIR / CONFIG_FILE
    if not config_path.is_file():
        return defaults

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s, using default settings", config_path)
        return defaults

    if not isinstance(data, dict):
        return defaults

    db_path = defaults.db_path
    raw_db = data.get("db_path")
    if isinstance(raw_db, str) and raw_db.strip():
        candidate = Path(raw_db.strip())
        db_path = candidate if candidate.is_absolute() else project_root / candidate

    def _opt_str(key: str) -> str | None:
        value = data.get(key)
        return value.strip() if isinstance(value, str) and value.strip() else None

    log_level = str(data.get("log_level", defaults.log_level)).upper()
    if log_level not in _VALID_LOG_LEVELS:
        logger.warning("Unknown log_level %r in %s, using WARNING", log_level, config_path)
        log_level = defaults.log_level

    return RuleloomConfig(
        db_path=db_path,
        default_ruleset=_opt_str("default_ruleset"),
        actor=_opt_str("actor"),
        log_level=log_level,
    )


def setup_logging(level: str | int = logging.WARNING) -> None:
    """Attach a Rich handler to the ``ruleloom`` logger (idempotent)."""
    from rich.console import Console
    from rich.logging import RichHandler

    root = logging.getLogger("ruleloom")
    root.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
