"""structlog setup for the engine and the command line.

Engine modules log through ``structlog.get_logger(__name__)`` with bound
run/workflow/step keys; this module decides where those records go and how
they are rendered. Run output (events, JSON run logs) owns stdout, so log
records are written to stderr.
"""

import logging
import sys
from typing import Optional, TextIO

import structlog
from app.config import get_settings

# Chatty third-party loggers kept at WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def _pick_renderer(json_logs: bool, stream: TextIO):
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def setup_logging(
    level: Optional[str] = None,
    json_logs: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Route structlog and stdlib logging through one handler.

    Args:
        level: Log level name; defaults to ``LOG_LEVEL``
        json_logs: JSON lines instead of console output; defaults to
            ``LOG_FORMAT == "json"`` outside development
        stream: Destination; defaults to stderr
    """
    settings = get_settings()
    stream = stream or sys.stderr
    if json_logs is None:
        json_logs = settings.LOG_FORMAT == "json" and not settings.is_development

    pre_chain: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _pick_renderer(json_logs, stream),
        ],
        foreign_pre_chain=pre_chain,
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
