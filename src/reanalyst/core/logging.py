"""Structured logging for analysis runs.

Every trigger gets a short run id bound into structlog's context variables,
together with the file that caused it and, once resolved, its monorepo root.
Server output lines carry ``server_root`` instead (see ServerLog), so a log
file can be filtered by run or by server.

Outputs come from LoggingConfig: any number of stderr/stdout/file handlers,
each with its own level and format. Console handlers go quiet while a Rich
spinner is on screen; file handlers never do.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from reanalyst.config.models import LoggingConfig, LogOutputConfig

_RUN_KEYS = ("run_id", "file", "monorepo_root")

_log_file_path: Path | None = None


def bind_run(file_path: str | None = None, run_id: str | None = None) -> str:
    """Start a run: bind a fresh (or given) run id and the triggering file."""
    rid = run_id or uuid4().hex[:12]
    context: dict[str, Any] = {"run_id": rid}
    if file_path is not None:
        context["file"] = file_path
    structlog.contextvars.bind_contextvars(**context)
    return rid


def bind_monorepo_root(root: Path) -> None:
    structlog.contextvars.bind_contextvars(monorepo_root=str(root))


def clear_run() -> None:
    structlog.contextvars.unbind_contextvars(*_RUN_KEYS)


def get_run_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("run_id")


def get_log_file_path() -> Path | None:
    """First file output of the current configuration, for "see details in" hints."""
    return _log_file_path


_LEVELS = logging.getLevelNamesMapping()


def _level(name: str | None, default: int) -> int:
    if name is None:
        return default
    return _LEVELS.get(name.upper(), default)


class ConsoleSuppressingFilter(logging.Filter):
    """Drops console records while a spinner owns the terminal."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: ARG002
        from reanalyst.core.progress import is_console_suppressed

        return not is_console_suppressed()


def _renderer(output: LogOutputConfig, is_console: bool) -> structlog.types.Processor:
    if output.format == "json":
        return structlog.processors.JSONRenderer()
    stream = sys.stdout if output.destination == "stdout" else sys.stderr
    return structlog.dev.ConsoleRenderer(
        colors=is_console and stream.isatty(),
        pad_event_to=0,
        pad_level=False,
    )


def _handler(output: LogOutputConfig) -> logging.Handler:
    if output.destination == "stderr":
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
    elif output.destination == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    else:
        path = Path(output.destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    return handler


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Route structlog through stdlib handlers built from config.

    Without a config a single stderr output is used, in JSON when json_format
    is set. Safe to call again; previous handlers are replaced.
    """
    global _log_file_path
    from reanalyst.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level,
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )
    root_level = _level(config.level, logging.INFO)

    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
    ]
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration (rea -v, per-project config) must take effect
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(root_level)
    # watchfiles reports every filtered change at debug
    logging.getLogger("watchfiles").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    _log_file_path = None
    for output in config.outputs:
        is_console = output.destination in ("stderr", "stdout")
        if not is_console and _log_file_path is None:
            _log_file_path = Path(output.destination)

        handler = _handler(output)
        handler.setLevel(_level(output.level, root_level))
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=_renderer(output, is_console),
                foreign_pre_chain=shared,
            )
        )
        if is_console:
            handler.addFilter(ConsoleSuppressingFilter())
        root_logger.addHandler(handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]
