"""Structured logging for the rebalancing pipeline, based on structlog.

Every rebalance run binds its own context (run ID, exchange) through
:func:`run_context`, so interleaved runs can be told apart in the output.
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from structlog.typing import Processor

if TYPE_CHECKING:
    from capweight.config import SystemConfig

_SHARED_PROCESSORS: tuple[Processor, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
)


def _renderer(json_logs: bool) -> Processor:
    if json_logs:
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(config: SystemConfig) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    Calling it again replaces the previous handler, so reloading the
    configuration does not duplicate output.

    Args:
        config: The ``system`` section of the application config.
            ``json_logs`` selects JSON lines over console output.
    """
    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=list(_SHARED_PROCESSORS),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(config.json_logs),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))


@contextmanager
def run_context(**values: Any) -> Iterator[str]:
    """Bind a fresh run ID plus ``values`` to every log line in this block.

    Yields:
        The run ID.
    """
    run_id = uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(run_id=run_id, **values):
        yield run_id


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger named after its area, e.g. "rebalancer.engine"."""
    return structlog.get_logger(name)
