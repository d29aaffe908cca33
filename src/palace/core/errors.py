"""Palace error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Storage
- 4xxx: Scan
- 5xxx: Graph
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
    CONFIG_FILE_NOT_FOUND = 2004

    # Storage (3xxx)
    STORAGE_OPEN_FAILED = 3001
    STORAGE_MIGRATION_FAILED = 3002
    STORAGE_TRANSACTION_FAILED = 3003
    STORAGE_INDEX_NOT_FOUND = 3004

    # Scan (4xxx)
    SCAN_ROOT_NOT_FOUND = 4001
    SCAN_FILE_UNREADABLE = 4002
    SCAN_WORKER_FAILED = 4003
    SCAN_NOT_A_GIT_REPOSITORY = 4004
    SCAN_NO_GIT_BASELINE = 4005
    SCAN_GIT_FAILED = 4006

    # Graph (5xxx)
    GRAPH_SYMBOL_NOT_FOUND = 5001

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class PalaceError(Exception):
    """Base error with structured context for tool-layer responses."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'STORAGE_MIGRATION_FAILED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(PalaceError):
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

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class StorageError(PalaceError):
    """Index database errors. Transactions are rolled back before these surface."""

    @classmethod
    def open_failed(cls, path: str, reason: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORAGE_OPEN_FAILED,
            message=f"Failed to open index at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def migration_failed(cls, version: int, reason: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORAGE_MIGRATION_FAILED,
            message=f"Migration {version} failed: {reason}",
            details={"version": version, "reason": reason},
        )

    @classmethod
    def transaction_failed(cls, operation: str, reason: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORAGE_TRANSACTION_FAILED,
            message=f"{operation} rolled back: {reason}",
            retryable=True,
            details={"operation": operation, "reason": reason},
        )

    @classmethod
    def index_not_found(cls, path: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORAGE_INDEX_NOT_FOUND,
            message=f"No index found at {path}. Run a full scan first.",
            details={"path": path},
        )


class ScanError(PalaceError):
    """Scanning and change-detection errors."""

    @classmethod
    def root_not_found(cls, root: str) -> "ScanError":
        return cls(
            code=ErrorCode.SCAN_ROOT_NOT_FOUND,
            message=f"Directory does not exist: {root}",
            details={"root": root},
        )

    @classmethod
    def file_unreadable(cls, path: str, reason: str) -> "ScanError":
        return cls(
            code=ErrorCode.SCAN_FILE_UNREADABLE,
            message=f"Cannot read {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def worker_failed(cls, path: str, reason: str) -> "ScanError":
        return cls(
            code=ErrorCode.SCAN_WORKER_FAILED,
            message=f"Scan worker failed on {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def not_a_git_repository(cls, root: str) -> "ScanError":
        return cls(
            code=ErrorCode.SCAN_NOT_A_GIT_REPOSITORY,
            message=f"Not a git repository: {root}",
            details={"root": root},
        )

    @classmethod
    def no_git_baseline(cls, root: str) -> "ScanError":
        return cls(
            code=ErrorCode.SCAN_NO_GIT_BASELINE,
            message=f"No previous git-based scan found for {root}",
            details={"root": root},
        )

    @classmethod
    def git_failed(cls, root: str, reason: str) -> "ScanError":
        return cls(
            code=ErrorCode.SCAN_GIT_FAILED,
            message=f"Git change detection failed for {root}: {reason}",
            details={"root": root, "reason": reason},
        )


class GraphError(PalaceError):
    """Graph query errors."""

    @classmethod
    def symbol_not_found(cls, name: str, file_path: str | None = None) -> "GraphError":
        where = f" in {file_path}" if file_path else ""
        return cls(
            code=ErrorCode.GRAPH_SYMBOL_NOT_FOUND,
            message=f"Symbol not found: {name}{where}",
            details={"symbol": name, "file_path": file_path},
        )


class InternalError(PalaceError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
