"""Per-message session id for log records.

The orchestrator opens a ``session_scope`` around each inbound message.
Every record emitted inside it carries ``record.session_id``, so the
format string used by ``load_config`` can print it:

    2026-01-05 10:12:00 [support_mas.runtime.orchestrator] INFO [session_3f2a...]: Routed ...

Records logged outside a scope carry ``NO_SESSION``.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterable, Iterator, Union

NO_SESSION = "NO_SESSION"

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s [%(session_id)s]: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_current_session: ContextVar[str] = ContextVar("support_session_id", default=NO_SESSION)


def get_session_id() -> str:
    return _current_session.get()


@contextmanager
def session_scope(session_id: str) -> Iterator[str]:
    """Bind ``session_id`` for the duration of one message, then restore."""
    token = _current_session.set(session_id)
    try:
        yield session_id
    finally:
        _current_session.reset(token)


class SessionIdFilter(logging.Filter):
    """Stamps the active session id onto each record it sees."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = _current_session.get()  # type: ignore[attr-defined]
        return True


def _has_session_filter(target: Union[logging.Logger, logging.Handler]) -> bool:
    return any(isinstance(f, SessionIdFilter) for f in target.filters)


def install_session_filter(handlers: Iterable[logging.Handler]) -> None:
    """Attach the filter to handlers so third-party records get the field too.

    Logger-level filters only run for records created on that logger;
    handler-level filters run for everything the handler emits.
    """
    for handler in handlers:
        if not _has_session_filter(handler):
            handler.addFilter(SessionIdFilter())


def get_session_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not _has_session_filter(logger):
        logger.addFilter(SessionIdFilter())
    return logger
