import logging
from unittest.mock import Mock

import pytest

from seo_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)


class BrokenStrException(Exception):
    """An exception that breaks when __str__ is called."""

    def __str__(self):
        raise RuntimeError("Cannot convert to string!")

    def __repr__(self):
        return "BrokenStrException(cannot convert to string)"


class BrokenReprException(Exception):
    """An exception that breaks when both __str__ and __repr__ are called."""

    def __str__(self):
        raise RuntimeError("Cannot convert to string!")

    def __repr__(self):
        raise RuntimeError("Cannot convert to repr!")


class TestFormatExceptionMessage:
    def test_simple_exception(self):
        assert format_exception_message(ConnectionError("redis down")) == (
            "ConnectionError: redis down"
        )

    def test_none(self):
        assert format_exception_message(None) == "None"

    def test_broken_str_falls_back_to_repr(self):
        message = format_exception_message(BrokenStrException())

        assert message == "BrokenStrException: BrokenStrException(cannot convert to string)"

    def test_broken_repr_never_raises(self):
        message = format_exception_message(BrokenReprException())

        assert "string conversion failed" in message

    def test_exception_group_lists_sub_exceptions(self):
        group = ExceptionGroup(
            "lookup failed", [TimeoutError("slow kv"), OSError("disk gone")]
        )

        message = format_exception_message(group)

        assert message.startswith("ExceptionGroup: lookup failed")
        assert "TimeoutError: slow kv" in message
        assert "OSError: disk gone" in message


class TestLogExceptionWithDetails:
    def test_logs_at_requested_level(self, caplog):
        logger = logging.getLogger("test.exception_logging")

        with caplog.at_level(logging.WARNING, logger="test.exception_logging"):
            log_exception_with_details(
                logger, "[Cache]", ValueError("bad key"), level=logging.WARNING
            )

        assert len(caplog.records) == 1
        record = caplog.records[0]
        assert record.levelno == logging.WARNING
        assert record.getMessage() == "[Cache] Exception: bad key"
        assert record.exc_info[0] is ValueError

    def test_default_level_is_error(self, caplog):
        logger = logging.getLogger("test.exception_logging")

        with caplog.at_level(logging.DEBUG, logger="test.exception_logging"):
            log_exception_with_details(logger, "[Proxy]", RuntimeError("boom"))

        assert caplog.records[0].levelno == logging.ERROR

    def test_exception_group_logs_each_sub_exception(self, caplog):
        logger = logging.getLogger("test.exception_logging")
        group = ExceptionGroup("two failures", [KeyError("a"), TimeoutError("b")])

        with caplog.at_level(logging.ERROR, logger="test.exception_logging"):
            log_exception_with_details(logger, "[Router]", group)

        messages = [record.getMessage() for record in caplog.records]
        assert messages[0].startswith("[Router] Exception with 2 sub-exceptions")
        assert messages[1] == "[Router] Sub-exception 1: KeyError: 'a'"
        assert messages[2] == "[Router] Sub-exception 2: TimeoutError: b"

    def test_logging_failure_is_contained(self):
        logger = Mock()
        logger.log.side_effect = [RuntimeError("handler broken"), None]

        log_exception_with_details(logger, "[Cache]", ValueError("x"))

        assert logger.log.call_count == 2
        assert logger.log.call_args[0] == (logging.ERROR, "[Cache] Exception (logging failed)")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
