# tests/test_logger.py
"""Test logging setup"""

import logging

import pytest

from lyric_fetcher.utils.logger import (
    ColoredFormatter,
    ConsoleMessageFilter,
    LogContext,
    configure_from_settings,
    get_current_log_file,
    get_logger,
    parse_size,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def make_record(level=logging.INFO, name="lyric_fetcher.test", **extra):
    record = logging.LogRecord(name, level, __file__, 1, "message", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogger:
    """Test logger helpers"""

    def test_parse_size(self):
        assert parse_size("10MB") == 10 * 1024 ** 2
        assert parse_size("500 kb") == 500 * 1024
        assert parse_size("1.5GB") == int(1.5 * 1024 ** 3)
        with pytest.raises(ValueError):
            parse_size("big")

    def test_console_filter(self):
        console_filter = ConsoleMessageFilter()
        assert console_filter.filter(make_record(logging.WARNING))
        assert console_filter.filter(make_record(console_output=True))
        assert console_filter.filter(make_record(name="lyric_fetcher.console"))
        assert not console_filter.filter(make_record(logging.DEBUG))

    def test_colored_formatter_leaves_record_untouched(self):
        record = make_record(logging.ERROR)
        formatter = ColoredFormatter(fmt='%(levelname)s %(message)s')

        assert "ERROR" in formatter.format(record)
        assert record.levelname == "ERROR"
        assert ColoredFormatter(fmt='%(levelname)s', use_colors=False).format(record) == "ERROR"

    def test_provider_tag(self):
        record = make_record(provider="LRCLIB")
        formatter = ColoredFormatter(use_colors=False)

        assert formatter.format(record) == "[LRCLIB] message"
        assert record.msg == "message"

    def test_console_info(self, caplog):
        logger = get_logger("lyric_fetcher.test_console")

        with caplog.at_level(logging.INFO, logger="lyric_fetcher.test_console"):
            logger.console_info("hello")

        assert caplog.records[-1].console_output is True

    def test_log_context(self):
        logger = logging.getLogger("lyric_fetcher.test_context")
        logger.setLevel(logging.WARNING)

        with LogContext(logger, "DEBUG"):
            assert logger.level == logging.DEBUG
        assert logger.level == logging.WARNING

    def test_configure_from_settings(self, settings, isolated_env, restore_root_logger):
        settings.logging.file = "lyrics.log"
        settings.logging.level = "DEBUG"

        configure_from_settings(settings)

        assert restore_root_logger.level == logging.DEBUG
        assert get_current_log_file() == isolated_env / ".lyric-fetcher" / "lyrics.log"
        assert logging.getLogger("aiohttp").level == logging.CRITICAL
