from __future__ import annotations

import logging
from pathlib import Path

import pytest

from stormscape.logging_utils import (
    configure_logging,
    console_level,
    get_log_dir,
    get_log_path,
    get_logger,
    log_exception,
)


def test_log_dir_uses_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORMSCAPE_LOG_DIR", str(tmp_path))
    assert get_log_dir() == tmp_path
    assert get_log_path() == tmp_path / "stormscape.log"


def test_log_dir_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STORMSCAPE_LOG_DIR", raising=False)
    assert get_log_dir() == Path.home() / ".cache" / "stormscape" / "logs"


def test_configure_logging_adds_file_handler(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORMSCAPE_LOG_DIR", str(tmp_path))
    configure_logging(force=True)
    logger = logging.getLogger("stormscape")
    file_handlers = [handler for handler in logger.handlers if isinstance(handler, logging.FileHandler)]
    assert len(file_handlers) == 1
    assert Path(file_handlers[0].baseFilename) == tmp_path / "stormscape.log"
    configure_logging()
    assert len([h for h in logger.handlers if isinstance(h, logging.FileHandler)]) == 1


def test_log_exception_appends_traceback(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORMSCAPE_LOG_DIR", str(tmp_path))
    try:
        raise RuntimeError("boom")
    except RuntimeError as exc:
        path = log_exception("render", exc)
    assert path == tmp_path / "stormscape.log"
    content = path.read_text(encoding="utf-8")
    assert "render failed: RuntimeError: boom" in content
    assert "Traceback" in content


def test_get_logger_is_package_child() -> None:
    logger = get_logger("generator.thunder")
    assert logger.name == "stormscape.generator.thunder"
    assert logger.parent is not None
    assert logger.parent.name in {"stormscape.generator", "stormscape"}


@pytest.mark.parametrize(
    ("debug", "level", "expected"),
    [
        (None, None, logging.INFO),
        ("1", "WARNING", logging.DEBUG),
        (None, "warning", logging.WARNING),
        (None, "loud", logging.INFO),
    ],
)
def test_console_level_from_env(
    monkeypatch: pytest.MonkeyPatch,
    debug: str | None,
    level: str | None,
    expected: int,
) -> None:
    for name, value in (("STORMSCAPE_DEBUG", debug), ("STORMSCAPE_LOG_LEVEL", level)):
        if value is None:
            monkeypatch.delenv(name, raising=False)
        else:
            monkeypatch.setenv(name, value)
    assert console_level() == expected
