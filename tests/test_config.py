"""Tests for ruleloom.config — config.yml loading and logging setup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.logging import RichHandler

from ruleloom.config import (
    CONFIG_DIR,
    CONFIG_FILE,
    DEFAULT_DB_NAME,
    load_config,
    setup_logging,
)

if TYPE_CHECKING:
    from pathlib import Path

    import pytest


def _write_config(project: Path, text: str) -> None:
    config_dir = project / CONFIG_DIR
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / CONFIG_FILE).write_text(text, encoding="utf-8")


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config.db_path == tmp_path / CONFIG_DIR / DEFAULT_DB_NAME
        assert config.default_ruleset is None
        assert config.actor is None
        assert config.log_level == "WARNING"

    def test_all_keys(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            "db_path: data/schemas.db\n"
            "default_ruleset: premium\n"
            "actor: alice\n"
            "log_level: info\n",
        )
        config = load_config(tmp_path)
        assert config.db_path == tmp_path / "data" / "schemas.db"
        assert config.default_ruleset == "premium"
        assert config.actor == "alice"
        assert config.log_level == "INFO"

    def test_absolute_db_path(self, tmp_path: Path) -> None:
        target = tmp_path / "elsewhere" / "x.db"
        _write_config(tmp_path, f"db_path: {target}\n")
        assert load_config(tmp_path).db_path == target

    def test_blank_values_ignored(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "db_path: '  '\nactor: ''\n")
        config = load_config(tmp_path)
        assert config.db_path == tmp_path / CONFIG_DIR / DEFAULT_DB_NAME
        assert config.actor is None

    def test_unknown_log_level(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        _write_config(tmp_path, "log_level: loud\n")
        with caplog.at_level(logging.WARNING, logger="ruleloom"):
            config = load_config(tmp_path)
        assert config.log_level == "WARNING"
        assert "Unknown log_level" in caplog.text

    def test_invalid_yaml(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        _write_config(tmp_path, "db_path: [unclosed\n")
        with caplog.at_level(logging.WARNING, logger="ruleloom"):
            config = load_config(tmp_path)
        assert config.db_path == tmp_path / CONFIG_DIR / DEFAULT_DB_NAME
        assert "Failed to read" in caplog.text

    def test_non_mapping(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "- a\n- b\n")
        assert load_config(tmp_path).actor is None


class TestSetupLogging:
    def test_idempotent(self) -> None:
        setup_logging("INFO")
        setup_logging(logging.DEBUG)
        logger = logging.getLogger("ruleloom")
        handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
        assert len(handlers) == 1
        assert logger.level == logging.DEBUG
        setup_logging(logging.WARNING)
