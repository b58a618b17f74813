"""Reanalyst error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Workspace (project root, binaries)
- 4xxx: Server
- 5xxx: Analysis
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Workspace (3xxx)
    PROJECT_ROOT_NOT_FOUND = 3001
    BINARY_NOT_FOUND = 3002
    MONOREPO_ROOT_UNKNOWN = 3003

    # Server (4xxx)
    SERVER_SPAWN_FAILED = 4001

    # Analysis (5xxx)
    ANALYSIS_SPAWN_FAILED = 5001
    ANALYSIS_MALFORMED_OUTPUT = 5002
    ANALYSIS_PROCESS_DISTRESS = 5003

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class ReanalystError(Exception):
    """Base error with structured context for CLI and log output."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'BINARY_NOT_FOUND')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(ReanalystError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class WorkspaceError(ReanalystError):
    """Project root and binary resolution errors."""

    @classmethod
    def project_root_not_found(cls, path: str) -> "WorkspaceError":
        return cls(
            code=ErrorCode.PROJECT_ROOT_NOT_FOUND,
            message=f"No rescript.json or bsconfig.json found above {path}",
            details={"path": path},
        )

    @classmethod
    def binary_not_found(cls, project_root: str, binary: str) -> "WorkspaceError":
        return cls(
            code=ErrorCode.BINARY_NOT_FOUND,
            message=(
                f"{binary} not found for project root: {project_root}. "
                "Code analysis requires ReScript 12 or later."
            ),
            details={"project_root": project_root, "binary": binary},
        )

    @classmethod
    def monorepo_root_unknown(cls, binary_path: str) -> "WorkspaceError":
        return cls(
            code=ErrorCode.MONOREPO_ROOT_UNKNOWN,
            message=f"Could not determine workspace root from binary path: {binary_path}",
            details={"binary_path": binary_path},
        )


class ServerError(ReanalystError):
    """Long-lived reanalyze-server errors."""

    @classmethod
    def spawn_failed(cls, root: str, binary: str, reason: str) -> "ServerError":
        return cls(
            code=ErrorCode.SERVER_SPAWN_FAILED,
            message=f"Failed to start reanalyze-server in {root}: {reason}",
            retryable=True,
            details={"root": root, "binary": binary, "reason": reason},
        )


class AnalysisError(ReanalystError):
    """One-shot analysis errors. Details always carry the command and cwd."""

    @classmethod
    def spawn_failed(cls, command: list[str], cwd: str, reason: str) -> "AnalysisError":
        return cls(
            code=ErrorCode.ANALYSIS_SPAWN_FAILED,
            message=f"Failed to start code analysis process: {reason}",
            retryable=True,
            details={"command": command, "cwd": cwd, "reason": reason},
        )

    @classmethod
    def malformed_output(cls, command: list[str], cwd: str, reason: str) -> "AnalysisError":
        return cls(
            code=ErrorCode.ANALYSIS_MALFORMED_OUTPUT,
            message=(
                "Parsing JSON from reanalyze failed. To reproduce, run "
                f'"{" ".join(command)}" in directory: "{cwd}"'
            ),
            details={"command": command, "cwd": cwd, "reason": reason},
        )

    @classmethod
    def process_distress(cls, command: list[str], cwd: str) -> "AnalysisError":
        return cls(
            code=ErrorCode.ANALYSIS_PROCESS_DISTRESS,
            message=(
                "Something went wrong trying to run reanalyze. "
                "Please try cleaning and rebuilding your ReScript project."
            ),
            retryable=True,
            details={"command": command, "cwd": cwd},
        )


class InternalError(ReanalystError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
