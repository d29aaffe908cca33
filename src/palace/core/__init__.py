"""Core module exports."""

from palace.core.errors import (
    ConfigError,
    ErrorCode,
    GraphError,
    InternalError,
    PalaceError,
    ScanError,
    StorageError,
)
from palace.core.excludes import (
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_GUARDRAIL_GLOBS,
    matches_guardrail,
    merge_globs,
    should_exclude_file,
)
from palace.core.languages import detect_language
from palace.core.logging import (
    configure_logging,
    current_operation,
    new_operation_id,
    operation,
)

__all__ = [
    # Errors
    "ErrorCode",
    "PalaceError",
    "ConfigError",
    "StorageError",
    "ScanError",
    "GraphError",
    "InternalError",
    # Exclusions
    "DEFAULT_EXCLUDE_PATTERNS",
    "DEFAULT_GUARDRAIL_GLOBS",
    "matches_guardrail",
    "merge_globs",
    "should_exclude_file",
    # Languages
    "detect_language",
    # Logging
    "configure_logging",
    "current_operation",
    "new_operation_id",
    "operation",
]
