"""Config module exports."""

from palace.config.loader import PalaceSettings, get_index_paths, load_config
from palace.config.models import (
    ContextConfig,
    DatabaseConfig,
    GraphConfig,
    GuardrailsConfig,
    IndexConfig,
    LoggingConfig,
    PalaceConfig,
    ScannerConfig,
)

__all__ = [
    "load_config",
    "get_index_paths",
    "PalaceConfig",
    "PalaceSettings",
    "ContextConfig",
    "DatabaseConfig",
    "GraphConfig",
    "GuardrailsConfig",
    "IndexConfig",
    "LoggingConfig",
    "ScannerConfig",
]
