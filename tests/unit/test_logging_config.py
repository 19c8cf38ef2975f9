"""Unit tests for logging setup."""

import logging

import pytest

from permctl.logging_config import configure_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_file_handler_added(tmp_path) -> None:
    log_path = tmp_path / "log" / "access.log"

    configure_logging("WARNING", log_path)
    logging.getLogger("permctl.test").warning("granted")

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
    for handler in root.handlers:
        handler.flush()
    assert "WARNING - permctl.test - granted" in log_path.read_text(encoding="utf-8")


def test_debug_overrides_level() -> None:
    configure_logging("ERROR", None, debug=True)

    assert logging.getLogger().level == logging.DEBUG


def test_unwritable_log_path_falls_back_to_stderr(tmp_path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")

    configure_logging("INFO", blocker / "access.log")

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert not isinstance(handlers[0], logging.FileHandler)
