"""Tests for logging setup module."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator

import pytest

from pixelpipe.logging_setup import (
    _JsonExtraFormatter,
    _ObjectKeyFilter,
    configure_logging,
    current_object_key,
    reset_object_key,
    set_object_key,
)


@pytest.fixture(autouse=True)
def reset_logging_root() -> Iterator[None]:
    """Restore root logger handlers/levels after each test."""
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    original_botocore_level = logging.getLogger("botocore").level
    original_pil_level = logging.getLogger("PIL").level

    yield

    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in original_handlers:
        root.addHandler(handler)
    root.setLevel(original_level)
    logging.captureWarnings(False)
    logging.getLogger("botocore").setLevel(original_botocore_level)
    logging.getLogger("PIL").setLevel(original_pil_level)


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestObjectKeyContext:
    """Tests for object_key injection."""

    def test_filter_injects_current_key(self) -> None:
        # Given: A key set for the current context
        token = set_object_key("u1/a.jpg")
        try:
            record = _record()

            # When: The filter runs
            _ObjectKeyFilter().filter(record)
        finally:
            reset_object_key(token)

        # Then: Record carries the key
        assert getattr(record, "object_key") == "u1/a.jpg"
        assert current_object_key() == "-"

    def test_filter_keeps_explicit_key(self) -> None:
        record = _record(object_key="explicit")

        _ObjectKeyFilter().filter(record)

        assert getattr(record, "object_key") == "explicit"

    def test_default_placeholder(self) -> None:
        record = _record()

        _ObjectKeyFilter().filter(record)

        assert getattr(record, "object_key") == "-"

    @pytest.mark.asyncio
    async def test_concurrent_tasks_keep_their_own_key(self) -> None:
        """Each asyncio task sees only the key it set."""
        seen: dict[str, str] = {}

        async def _unit(key: str) -> None:
            token = set_object_key(key)
            try:
                await asyncio.sleep(0.01)
                seen[key] = current_object_key()
            finally:
                reset_object_key(token)

        await asyncio.gather(_unit("u1/a.jpg"), _unit("u2/b.jpg"))

        assert seen == {"u1/a.jpg": "u1/a.jpg", "u2/b.jpg": "u2/b.jpg"}


class TestJsonExtraFormatter:
    """Tests for extra-field rendering."""

    def test_extras_are_appended_as_json(self) -> None:
        formatter = _JsonExtraFormatter("%(message)s")

        output = formatter.format(_record(object_key="k", artifact="thumb_150", bytes=42))

        assert output.splitlines()[0] == "hello"
        assert '"artifact": "thumb_150"' in output
        assert '"bytes": 42' in output
        assert '"object_key"' not in output

    def test_plain_record_is_unchanged(self) -> None:
        formatter = _JsonExtraFormatter("%(message)s")

        assert formatter.format(_record()) == "hello"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_installs_filter_and_quiets_libraries(
        self, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        # Given: Default format
        monkeypatch.delenv("CONSOLE_LOG_FORMAT", raising=False)

        # When: Configuring and logging inside an object context
        configure_logging(log_level="INFO")
        token = set_object_key("u1/a.jpg")
        try:
            logging.getLogger("pixelpipe.test").info("processing started")
        finally:
            reset_object_key(token)

        # Then: Output carries the key; noisy libraries are raised to WARNING
        out = capsys.readouterr().out
        assert "[u1/a.jpg]" in out
        assert "processing started" in out
        assert logging.getLogger("botocore").level == logging.WARNING
        assert logging.getLogger("PIL").level == logging.WARNING

    def test_custom_format_from_env(
        self, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CONSOLE_LOG_FORMAT", "CUSTOM %(levelname)s %(message)s")

        configure_logging(log_level="DEBUG")
        logging.getLogger("pixelpipe.test").warning("careful")

        assert "CUSTOM WARNING careful" in capsys.readouterr().out

    def test_level_filters_console(
        self, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("CONSOLE_LOG_FORMAT", raising=False)

        configure_logging(log_level="error")
        logging.getLogger("pixelpipe.test").info("hidden")

        assert "hidden" not in capsys.readouterr().out
