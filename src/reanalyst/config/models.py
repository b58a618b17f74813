"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (REANALYST__SECTION__KEY)
3. Project YAML (.reanalyst.yaml next to rescript.json)
4. Global YAML (~/.config/reanalyst/config.yaml)
5. Built-in defaults (this file)

Examples:
    REANALYST__LOGGING__LEVEL=DEBUG
    REANALYST__SERVER__STARTUP_TIMEOUT_SEC=5
    REANALYST__BINARIES__PLATFORM_PATH=/opt/rescript/bin
"""

from pathlib import Path
from typing import Literal

from packaging.version import InvalidVersion, Version
from pydantic import BaseModel, Field, field_validator

from reanalyst.config.constants import (
    ANALYSIS_ARGS,
    DISTRESS_SIGNATURE,
    REANALYZE_SERVER_MIN_VERSION,
    REANALYZE_SOCKET_FILENAME,
    TOOLS_BINARY,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        REANALYST__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG includes every server output line.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class ServerConfig(BaseModel):
    """Long-lived reanalyze-server configuration.

    Env vars:
        REANALYST__SERVER__ENABLED: Start a server when the toolchain supports it
        REANALYST__SERVER__POLL_INTERVAL_SEC: Socket poll interval
        REANALYST__SERVER__STARTUP_TIMEOUT_SEC: Max wait for the socket file
        REANALYST__SERVER__STOP_TIMEOUT_SEC: Grace period before kill on stop
    """

    enabled: bool = Field(
        default=True,
        description="Start a reanalyze-server per monorepo root when supported.",
    )
    socket_filename: str = Field(
        default=REANALYZE_SOCKET_FILENAME,
        description="Control socket file created by the server in the monorepo root.",
    )
    min_server_version: str = Field(
        default=REANALYZE_SERVER_MIN_VERSION,
        description="First ReScript version shipping the reanalyze-server subcommand.",
    )
    poll_interval_sec: float = Field(
        default=0.1,
        description="Interval between socket file checks after spawning the server.",
    )
    startup_timeout_sec: float = Field(
        default=3.0,
        description="Stop waiting for the socket after this long. A timeout is only a warning.",
    )
    stop_timeout_sec: float = Field(
        default=2.0,
        description="Wait this long after SIGTERM before killing an owned server.",
    )
    log_buffer_lines: int = Field(
        default=2000,
        description="Server output lines kept in memory per monorepo root.",
    )

    @field_validator("poll_interval_sec", "startup_timeout_sec", "stop_timeout_sec")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Must be positive, got {v}")
        return v

    @field_validator("min_server_version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        try:
            Version(v)
        except InvalidVersion as e:
            raise ValueError(f"Not a valid version: {v}") from e
        return v


class AnalysisConfig(BaseModel):
    """One-shot analysis configuration.

    Env vars:
        REANALYST__ANALYSIS__BINARY: Binary exposing the reanalyze subcommand
        REANALYST__ANALYSIS__SUPPRESS_UNUSED_ARGUMENTS: Hide "unused argument" reports
    """

    binary: str = Field(
        default=TOOLS_BINARY,
        description="Binary name resolved by the binary locator.",
    )
    args: list[str] = Field(
        default_factory=lambda: list(ANALYSIS_ARGS),
        description="Arguments selecting the analysis mode and JSON output.",
    )
    distress_signature: str = Field(
        default=DISTRESS_SIGNATURE,
        description="stderr text indicating corrupted build artifacts.",
    )
    suppress_unused_arguments: bool = Field(
        default=True,
        description="Drop reports about unused (optional) arguments.",
    )


class BinariesConfig(BaseModel):
    """Binary discovery configuration.

    Env vars:
        REANALYST__BINARIES__PLATFORM_PATH: Directory holding the platform binaries
    """

    platform_path: str | None = Field(
        default=None,
        description="Explicit directory containing rescript-tools.exe and friends. "
        "Bypasses node_modules discovery.",
    )


class ReanalystConfig(BaseModel):
    """Root configuration for reanalyst."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    binaries: BinariesConfig = Field(default_factory=BinariesConfig)
