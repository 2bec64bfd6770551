# agentrun/utils/logger.py
"""
Centralized logging setup for agentrun.

Configures the root logger once with a JSON formatter on stdout and a filter
that stamps every record with the session id of the turn that produced it.
"""
import logging
import os
import sys
from typing import Any, MutableMapping

from pythonjsonlogger import jsonlogger

from agentrun.utils.log_sinks import SessionIdFilter

_LOGGING_CONFIGURED = False


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that carries structured data through `extra`.

    The dictionary passed as `extra` is nested under `extra_data` so it never
    collides with reserved LogRecord attributes (`name`, `args`, ...).
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        original_extra_content = kwargs.get("extra")
        if original_extra_content is not None:
            kwargs["extra"] = {"extra_data": original_extra_content}
        return msg, kwargs


def _resolve_level() -> str:
    env_level = os.getenv("AGENTRUN_LOG_LEVEL")
    if env_level:
        return env_level.upper()
    from agentrun.utils.config import get_config

    return str((get_config().get("logging") or {}).get("level", "info")).upper()


def setup_logger(name: str) -> StructuredLoggerAdapter:
    """Configure the root logger on first use and return a structured child logger.

    :param name: The name of the logger, typically `__name__`.
    :type name: str
    :return: A `StructuredLoggerAdapter` ready for use.
    :rtype: StructuredLoggerAdapter
    """
    global _LOGGING_CONFIGURED

    if not _LOGGING_CONFIGURED:
        # set first: the config loader asks for a logger while we read the level
        _LOGGING_CONFIGURED = True
        root_logger = logging.getLogger()
        log_level_str = _resolve_level()
        root_logger.setLevel(getattr(logging, log_level_str, logging.INFO))

        if root_logger.hasHandlers():
            root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(session_id)s %(message)s"
        )
        console_handler.setFormatter(formatter)
        console_handler.addFilter(SessionIdFilter())
        root_logger.addHandler(console_handler)

        root_logger.info(
            f"Root logger configured with JSON stdout handler. Level: {log_level_str}"
        )

    return StructuredLoggerAdapter(logging.getLogger(name), {})
