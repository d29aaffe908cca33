"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (PALACE__SECTION__KEY)
3. Repo YAML (.palace/config.yaml)
4. Global YAML (~/.config/palace/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    PALACE__<SECTION>__<KEY>=<VALUE>

Examples:
    PALACE__LOGGING__LEVEL=DEBUG
    PALACE__SCANNER__WORKERS=4
    PALACE__GRAPH__MAX_PATHS=200
    PALACE__CONTEXT__MAX_FILES=30
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

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
        PALACE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every migration and worker event.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class IndexConfig(BaseModel):
    """Index storage and chunking configuration.

    Env vars:
        PALACE__INDEX__DB_NAME: Database file name under .palace/index/
        PALACE__INDEX__CHUNK_MAX_LINES: Max lines per chunk
        PALACE__INDEX__CHUNK_MAX_BYTES: Max bytes per chunk
        PALACE__INDEX__INDEX_PATH: Override index storage directory
    """

    db_name: str = Field(
        default="palace.db",
        description="Database file name inside the index directory.",
    )
    chunk_max_lines: int = Field(
        default=120,
        description="Max lines per chunk. Non-positive values fall back to the default.",
    )
    chunk_max_bytes: int = Field(
        default=8192,
        description="Max bytes per chunk. Non-positive values fall back to the default.",
    )
    index_path: str | None = Field(
        default=None,
        description="Override index storage directory. Default: .palace/index/ in repo.",
    )


class ScannerConfig(BaseModel):
    """Scanner configuration.

    Env vars:
        PALACE__SCANNER__WORKERS: Parallel workers (0 = min(CPU count, 8))
        PALACE__SCANNER__ENABLE_LSP: Allow analyzers to start language servers
    """

    workers: int = Field(
        default=0,
        description="Parallel analysis workers. 0 picks min(CPU count, 8). "
        "Small file sets are always scanned sequentially.",
    )
    enable_lsp: bool = Field(
        default=False,
        description="Allow analyzers to use language servers in sequential mode. "
        "Pooled workers never start them.",
    )

    @field_validator("workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"workers must be >= 0, got {v}")
        return v


class GuardrailsConfig(BaseModel):
    """Paths the scanner never enumerates.

    User globs are merged onto the built-in defaults.
    """

    do_not_touch_globs: list[str] = Field(default_factory=list)
    read_only_globs: list[str] = Field(default_factory=list)


class GraphConfig(BaseModel):
    """Graph traversal limits.

    Env vars:
        PALACE__GRAPH__DEFAULT_DEPTH: Call chain depth when none is given
        PALACE__GRAPH__MAX_DEPTH: Hard depth clamp
        PALACE__GRAPH__MAX_PATHS: Leaf path cap before truncation
    """

    default_depth: int = Field(default=3, description="Default call chain depth.")
    max_depth: int = Field(
        default=10,
        description="Hard clamp on traversal depth. "
        "RISK: Raising this on dense graphs multiplies query count.",
    )
    max_paths: int = Field(
        default=100,
        description="Completed paths before branches are pruned and truncated is set.",
    )
    expansion_depth: int = Field(default=2, description="Default dependency expansion depth.")
    expansion_max_files: int = Field(
        default=50,
        description="Default cap on files visited by dependency expansion.",
    )


class ContextConfig(BaseModel):
    """Context assembly and ranking configuration.

    Env vars:
        PALACE__CONTEXT__RELEVANCE_WEIGHT, USAGE_WEIGHT, RECENCY_WEIGHT,
        DEPENDENCY_WEIGHT: Blend weights (expected to sum to 1.0)
        PALACE__CONTEXT__MAX_FILES: Ranked result cap
        PALACE__CONTEXT__MAX_TOKENS: Default token budget (0 = no limit)
    """

    relevance_weight: float = 0.4
    usage_weight: float = 0.3
    recency_weight: float = 0.2
    dependency_weight: float = 0.1
    max_files: int = Field(default=50, description="Max files in a ranked result.")
    recency_window_days: int = Field(
        default=7,
        description="Edits older than this contribute no recency signal.",
    )
    max_tokens: int = Field(default=0, description="Default token budget. 0 disables budgeting.")
    snippet_length: int = Field(default=500, description="Max characters in a file snippet.")
    default_limit: int = Field(default=20, description="Default result limit for context queries.")

    @field_validator("relevance_weight", "usage_weight", "recency_weight", "dependency_weight")
    @classmethod
    def validate_weight(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"weight must be non-negative, got {v}")
        return v

    @property
    def weight_sum(self) -> float:
        return (
            self.relevance_weight
            + self.usage_weight
            + self.recency_weight
            + self.dependency_weight
        )


class DatabaseConfig(BaseModel):
    """Database connection configuration.

    Env vars:
        PALACE__DATABASE__BUSY_TIMEOUT_MS: SQLite busy timeout
        PALACE__DATABASE__MAX_RETRIES: Max retry attempts for locked DB
    """

    busy_timeout_ms: int = Field(
        default=30000,
        description="SQLite busy timeout (ms). How long to wait for locks. "
        "RISK: Too low causes failures under contention; too high delays errors.",
    )
    max_retries: int = Field(
        default=3,
        description="Max retry attempts for locked database errors.",
    )
    retry_base_delay_sec: float = Field(
        default=0.1,
        description="Base delay between retries (exponential backoff).",
    )


class PalaceConfig(BaseModel):
    """Root configuration for palace.

    All settings can be configured via:
    1. Environment variables: PALACE__SECTION__KEY
    2. YAML config files (repo or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    guardrails: GuardrailsConfig = Field(default_factory=GuardrailsConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
