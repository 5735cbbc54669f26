"""Logging setup for the CLI and the controllers."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

import structlog

_SHARED_PROCESSORS: List[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]

_NOISY_LOGGERS = ("spotipy", "spotipy.client", "urllib3", "urllib3.connectionpool")


def _formatter(renderer: structlog.types.Processor) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )


def configure_logging(
    level: str = "WARNING",
    json_output: bool = False,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """Route structlog and stdlib records through one set of handlers.

    Parameters
    ----------
    level:
        Textual logging level (e.g. ``"DEBUG"``). ``"WARNING"`` keeps log lines
        out of regular command output.
    json_output:
        Render stderr records as JSON instead of the coloured console format.
    log_file:
        Optional file that receives every record as JSON, whatever
        ``json_output`` says.
    """

    level = level.upper()
    console = logging.StreamHandler(sys.stderr)
    console_renderer = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)
    )
    console.setFormatter(_formatter(console_renderer))
    handlers: List[logging.Handler] = [console]

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # spotipy and urllib3 log every request at INFO/DEBUG.
    client_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(client_level)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
