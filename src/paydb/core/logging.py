"""
Structured logging setup using structlog.

Everything goes through stdlib logging to stderr, plus an optional log file,
so stdout carries only command output. Payment hashes, attempt ids and
bucket keys are bytes; they are rendered as hex in every output format.
"""
import logging
import sys
from typing import Any, Optional

import structlog


def hex_encode_bytes(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Processor rendering bytes values as hex strings."""
    for key, value in event_dict.items():
        if isinstance(value, (bytes, bytearray, memoryview)):
            event_dict[key] = bytes(value).hex()
    return event_dict


def _handlers(log_level: int, log_file: Optional[str]) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setLevel(log_level)
    return handlers


def _renderer(json_output: bool) -> list[structlog.types.Processor]:
    if json_output:
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        ),
    ]


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> structlog.stdlib.BoundLogger:
    """Configure structured logging for paydb.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Emit one JSON object per line instead of console output
        log_file: Also append records to this file (paydb.log_file)

    Returns:
        The "paydb" logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # force=True: the CLI may be configured more than once per process
    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=_handlers(log_level, log_file),
        force=True,
    )

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        hex_encode_bytes,
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=processors + _renderer(json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger("paydb")
