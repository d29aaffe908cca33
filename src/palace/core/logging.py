"""structlog setup for palace commands and index operations.

Events are rendered through stdlib handlers so each configured output (stderr,
stdout or a log file) can carry its own level and format. Scans, updates and
queries bind an operation context (kind, scan root, correlation id) through
structlog contextvars, so every event emitted while one runs says which
operation and which repository it belongs to.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from palace.config.models import LoggingConfig

_CONSOLE_DESTINATIONS = ("stderr", "stdout")

# Libraries whose INFO chatter drowns index events
_QUIET_LOGGERS = ("sqlalchemy.engine", "pygit2")


def _level_number(name: str | None, fallback: int = logging.INFO) -> int:
    if not name:
        return fallback
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else fallback


# =============================================================================
# Operation context
# =============================================================================


def new_operation_id() -> str:
    return uuid4().hex[:12]


@contextmanager
def operation(
    kind: str,
    root: Path | str | None = None,
    *,
    operation_id: str | None = None,
) -> Iterator[str]:
    """Bind an operation to every event logged inside the block.

    An enclosing operation's id is reused so a CLI command and the scan it
    runs correlate; kind and root are replaced for the inner block and
    restored on exit. Yields the operation id.
    """
    oid = operation_id or current_operation().get("operation_id") or new_operation_id()
    bindings: dict[str, object] = {"operation": kind, "operation_id": oid}
    if root is not None:
        bindings["root"] = str(root)
    with structlog.contextvars.bound_contextvars(**bindings):
        yield oid


def current_operation() -> dict[str, object]:
    """The operation fields bound for the current context, if any."""
    bound = structlog.contextvars.get_contextvars()
    return {k: bound[k] for k in ("operation", "operation_id", "root") if k in bound}


# =============================================================================
# Configuration
# =============================================================================


def _renderer(output_format: str, colors: bool) -> structlog.types.Processor:
    if output_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=colors, pad_event_to=0, pad_level=False)


def _open_destination(destination: str) -> logging.Handler:
    if destination in _CONSOLE_DESTINATIONS:
        # Resolved at call time, not import time
        return logging.StreamHandler(getattr(sys, destination))
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a", encoding="utf-8")


def configure_logging(*, config: LoggingConfig | None = None, level: str = "INFO") -> None:
    """Route structlog events to the outputs in config.

    Without config a single console output on stderr is used at level.
    Calling again replaces every handler installed by a previous call.
    """
    from palace.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(level=level, outputs=[LogOutputConfig()])  # type: ignore[arg-type]
    root_level = _level_number(config.level)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
        existing.close()
    root_logger.setLevel(root_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for output in config.outputs:
        on_console = output.destination in _CONSOLE_DESTINATIONS
        handler = _open_destination(output.destination)
        handler.setLevel(_level_number(output.level, root_level))
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=_renderer(output.format, on_console and sys.stderr.isatty()),
                foreign_pre_chain=pre_chain,
            )
        )
        root_logger.addHandler(handler)
