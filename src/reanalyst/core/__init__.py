"""Core module exports."""

from reanalyst.core.errors import (
    AnalysisError,
    ConfigError,
    ErrorCode,
    InternalError,
    ReanalystError,
    ServerError,
    WorkspaceError,
)
from reanalyst.core.logging import (
    bind_run,
    clear_run,
    configure_logging,
    get_logger,
    get_run_id,
)
from reanalyst.core.progress import spinner, status

__all__ = [
    # Errors
    "AnalysisError",
    "ConfigError",
    "ErrorCode",
    "InternalError",
    "ReanalystError",
    "ServerError",
    "WorkspaceError",
    # Logging
    "bind_run",
    "clear_run",
    "configure_logging",
    "get_logger",
    "get_run_id",
    # Progress
    "spinner",
    "status",
]
