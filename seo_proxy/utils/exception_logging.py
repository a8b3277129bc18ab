"""
Helpers for logging exceptions from the request path, including exception groups
raised by concurrent cache and upstream work.
"""

import logging


def _safe_str(obj) -> str:
    """Convert an object to a string without ever raising."""
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _sub_exceptions(exception) -> list:
    try:
        return list(getattr(exception, "exceptions", None) or [])
    except Exception:
        return []


def format_exception_message(exception: BaseException) -> str:
    """
    Format an exception as `Type: message`, listing sub-exceptions of groups.

    Never raises, even for exceptions whose __str__ is broken.
    """
    if exception is None:
        return "None"
    text = f"{type(exception).__name__}: {_safe_str(exception)}"
    subs = _sub_exceptions(exception)
    if subs:
        joined = "; ".join(
            f"{type(sub).__name__}: {_safe_str(sub)}" for sub in subs
        )
        text = f"{text} (Sub-exceptions: {joined})"
    return text


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, one line per sub-exception for exception groups.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Cache]", "[Proxy]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        subs = _sub_exceptions(exception)
        if subs:
            logger.log(
                level,
                f"{prefix} Exception with {len(subs)} sub-exceptions: {_safe_str(exception)}",
            )
            for i, sub in enumerate(subs):
                logger.log(
                    level,
                    f"{prefix} Sub-exception {i + 1}: {type(sub).__name__}: {_safe_str(sub)}",
                    exc_info=sub,
                )
        else:
            logger.log(
                level,
                f"{prefix} Exception: {_safe_str(exception)}",
                exc_info=exception if exception is not None else False,
            )
    except Exception:
        # Logging must never break request handling
        logger.log(logging.ERROR, f"{prefix} Exception (logging failed)")
