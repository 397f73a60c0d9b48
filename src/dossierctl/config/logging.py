"""Route stdlib and structlog records through one stderr handler.

stdout belongs to command results, so every log line goes to stderr,
either as human-readable console output or, with ``--log-json``, one JSON
object per line. Only ``dossierctl.*`` loggers follow ``--verbose``;
library loggers stay at WARNING.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

_QUIET_LIBRARIES = ("alembic", "sqlalchemy")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_json: bool, stream: TextIO) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Install the structlog pipeline and a single root handler.

    Safe to call repeatedly; each call replaces the previous handler.

    Args:
        verbose: DEBUG for ``dossierctl`` loggers instead of WARNING.
        log_json: Render JSON lines instead of console output.
        stream: Destination, defaults to ``sys.stderr`` at call time.
    """
    out = stream if stream is not None else sys.stderr
    pre_chain = _shared_processors()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(out)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json, out),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.WARNING)

    logging.getLogger("dossierctl").setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)
