# agentrun/utils/log_sinks.py
"""
Logging filters that tie log records to the session whose turn produced them.

Many sessions run concurrently in one event loop, so the session id travels
in a context variable: each turn task sets it once and every logger below it
in the call stack picks it up without having it passed around.
"""
import contextvars
import logging
from typing import Optional

session_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "session_id", default=None
)


class SessionIdFilter(logging.Filter):
    """Injects the current session id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Adds `session_id` to the record; never drops a record.

        :param record: The log record being processed.
        :type record: logging.LogRecord
        :return: Always True.
        :rtype: bool
        """
        record.session_id = session_id_context.get()
        return True


def bind_session(session_id: Optional[str]) -> contextvars.Token:
    """Set the session id for the current context; returns the reset token."""
    return session_id_context.set(session_id)


def unbind_session(token: contextvars.Token) -> None:
    session_id_context.reset(token)
