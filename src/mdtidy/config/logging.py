"""structlog configuration for mdtidy.

Two output modes, both on stderr so reports and JSON results on stdout
stay pipeable:

- Human (default): console renderer, colored when stderr is a TTY
- JSON (``--log-json``): one JSON object per line

Per-file processing binds the file path into structlog's context vars via
:func:`file_context`, so every log line emitted while a file is handled
(including from stdlib loggers) carries a ``file`` key.  Each asyncio task
gets its own copy of the context, so concurrent files never mix.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog

# Libraries that log per-request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore")


def _shared_processors(log_json: bool) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if log_json:
        processors.append(structlog.processors.format_exc_info)
    processors.append(structlog.processors.UnicodeDecoder())
    return processors


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
) -> None:
    """Configure structlog processors and stdlib handler routing.

    Args:
        verbose: Enable DEBUG output for ``mdtidy.*`` loggers. When False,
            only WARNING+.
        log_json: Use the JSON renderer instead of the console renderer.
    """
    shared = _shared_processors(log_json)

    if log_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("mdtidy").setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def file_context(path: Path | str) -> Iterator[None]:
    """Bind ``file=<path>`` to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(file=str(path)):
        yield
