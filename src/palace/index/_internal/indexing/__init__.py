"""Indexing pipeline: enumeration, chunking, record building, change detection."""

from palace.index._internal.indexing.changes import (
    FileChange,
    IncrementalScanSummary,
    apply_changes,
    changes_from_paths,
    detect_changes,
)
from palace.index._internal.indexing.chunking import ContentChunk, chunk_content
from palace.index._internal.indexing.files import guardrail_globs, hash_file, list_files
from palace.index._internal.indexing.scanner import (
    FileRecord,
    ScanOptions,
    build_file_records,
    process_file,
    resolve_worker_count,
)

__all__ = [
    "ContentChunk",
    "FileChange",
    "FileRecord",
    "IncrementalScanSummary",
    "ScanOptions",
    "apply_changes",
    "build_file_records",
    "changes_from_paths",
    "chunk_content",
    "detect_changes",
    "guardrail_globs",
    "hash_file",
    "list_files",
    "process_file",
    "resolve_worker_count",
]
