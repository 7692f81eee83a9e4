"""Process-wide logging setup and the single place errors get logged."""

from __future__ import annotations

import logging
import os
import sys
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Mapping
    from types import TracebackType

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVEL_ENV = "LOG_LEVEL"

# Per-request chatter from these libraries drowns out relay logs at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "slack_sdk.socket_mode")

# Failures a relay stage survives: it logs them and moves on to the next item.
COMMON_HANDLER_EXCEPTIONS = (
    AttributeError,
    LookupError,
    OSError,
    RuntimeError,
    TimeoutError,
    TypeError,
    ValueError,
)


def configure_logging(level: int | str | None = None) -> None:
    """Configure root logging once for the process.

    ``level`` falls back to ``$LOG_LEVEL`` and then to INFO.
    """
    resolved = level or os.environ.get(LOG_LEVEL_ENV, "").upper() or logging.INFO
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _format_context(context: Mapping[str, object]) -> str:
    return ", ".join(f"{key}={context[key]!r}" for key in sorted(context))


def log_exception(
    *,
    logger: logging.Logger,
    message: str,
    error: BaseException,
    context: Mapping[str, object] | None = None,
    traceback: bool = True,
) -> None:
    """Log ``error`` with its context as one ERROR record.

    Pass ``traceback=False`` for routine failures such as a refused backend
    connection, where the exception text alone says enough.
    """
    details = _format_context(context) if context else ""
    if traceback:
        if details:
            logger.error("%s | %s", message, details, exc_info=error)
        else:
            logger.error(message, exc_info=error)
        return

    summary = f"{type(error).__name__}: {error}"
    if details:
        logger.error("%s | %s | %s", message, summary, details)
    else:
        logger.error("%s | %s", message, summary)


def register_asyncio_exception_handler(
    loop: asyncio.AbstractEventLoop,
    *,
    logger: logging.Logger | None = None,
) -> None:
    """Route exceptions nobody awaited (e.g. in dispatch tasks) to the log."""
    target_logger = logger or LOGGER

    def _handle_exception(
        _loop: asyncio.AbstractEventLoop,
        context: dict[str, Any],
    ) -> None:
        message = str(context.get("message") or "Unhandled asyncio exception")
        extra = {
            key: value
            for key, value in context.items()
            if key not in {"message", "exception"}
        }
        task = context.get("task") or context.get("future")
        get_name = getattr(task, "get_name", None)
        if callable(get_name):
            extra["task"] = get_name()

        error = context.get("exception")
        if isinstance(error, BaseException):
            log_exception(
                logger=target_logger,
                message=message,
                error=error,
                context=extra,
            )
            return
        target_logger.error("%s | %s", message, _format_context(extra))

    loop.set_exception_handler(_handle_exception)


def install_global_exception_hooks(*, logger: logging.Logger | None = None) -> None:
    """Log uncaught exceptions from the main thread and from worker threads.

    Ctrl+C keeps its default handling.
    """
    target_logger = logger or LOGGER
    previous_excepthook = sys.excepthook
    previous_thread_hook = threading.excepthook

    def _sys_excepthook(
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_traceback: TracebackType | None,
    ) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            previous_excepthook(exc_type, exc_value, exc_traceback)
            return
        target_logger.critical(
            "Relay stopped on an uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback),
        )

    def _thread_excepthook(args: threading.ExceptHookArgs) -> None:
        if issubclass(args.exc_type, KeyboardInterrupt):
            previous_thread_hook(args)
            return
        thread_name = args.thread.name if args.thread else "unknown"
        if args.exc_value is None:
            target_logger.error("Uncaught exception in thread %s", thread_name)
            return
        target_logger.error(
            "Uncaught exception in thread %s",
            thread_name,
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )

    sys.excepthook = _sys_excepthook
    threading.excepthook = _thread_excepthook
