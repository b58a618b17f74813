"""Config module exports."""

from reanalyst.config.loader import load_config
from reanalyst.config.models import (
    AnalysisConfig,
    BinariesConfig,
    LoggingConfig,
    LogOutputConfig,
    ReanalystConfig,
    ServerConfig,
)

__all__ = [
    "load_config",
    "AnalysisConfig",
    "BinariesConfig",
    "LoggingConfig",
    "LogOutputConfig",
    "ReanalystConfig",
    "ServerConfig",
]
