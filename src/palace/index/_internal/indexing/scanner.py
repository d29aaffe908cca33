"""File record building: hash, chunk and analyze every candidate file.

Small file sets are processed sequentially. Larger ones go through a bounded
thread pool in which each worker owns its own AnalyzerRegistry (analyzers are
not assumed thread-safe) with language servers disabled. Results are written
into a pre-sized list at their original index, so output order always equals
the sorted input order regardless of completion order. The first worker error
cancels remaining work and is the only error raised.
"""

from __future__ import annotations

import os
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import structlog

from palace.core.errors import InternalError, PalaceError, ScanError
from palace.core.languages import UNKNOWN, detect_language
from palace.index._internal.analysis import AnalysisError, AnalyzerRegistry, FileAnalysis
from palace.index._internal.indexing.chunking import (
    DEFAULT_MAX_BYTES,
    DEFAULT_MAX_LINES,
    ContentChunk,
    chunk_content,
)
from palace.index._internal.indexing.files import hash_bytes, list_files, normalize_mod_time

logger = structlog.get_logger()

MAX_AUTO_WORKERS = 8


@dataclass(slots=True)
class FileRecord:
    """Everything the index stores for one file."""

    path: str
    hash: str
    size: int
    mod_time: datetime
    language: str
    chunks: list[ContentChunk] = field(default_factory=list)
    analysis: FileAnalysis | None = None


@dataclass(frozen=True, slots=True)
class ScanOptions:
    workers: int = 0
    chunk_max_lines: int = DEFAULT_MAX_LINES
    chunk_max_bytes: int = DEFAULT_MAX_BYTES
    enable_lsp: bool = False


def resolve_worker_count(requested: int, file_count: int) -> int:
    """Workers actually used: auto = min(CPU, 8); 1 when files < 2x workers."""
    workers = requested
    if workers <= 0:
        workers = min(os.cpu_count() or 1, MAX_AUTO_WORKERS)
    if file_count < workers * 2:
        workers = 1
    return workers


def process_file(
    root: Path,
    rel: str,
    registry: AnalyzerRegistry,
    options: ScanOptions,
) -> FileRecord:
    """Build the record for one file.

    Raises:
        ScanError: file_unreadable when stat or read fails.
    """
    abs_path = root / rel
    try:
        stat = abs_path.stat()
        data = abs_path.read_bytes()
    except OSError as e:
        raise ScanError.file_unreadable(rel, e.strerror or str(e)) from e

    language = detect_language(rel)
    analysis: FileAnalysis | None = None
    if language != UNKNOWN:
        try:
            analysis = registry.analyze(data, rel, language)
        except AnalysisError as e:
            logger.debug("analysis_failed", path=rel, reason=e.reason)

    return FileRecord(
        path=rel,
        hash=hash_bytes(data),
        size=stat.st_size,
        mod_time=normalize_mod_time(stat.st_mtime),
        language=language,
        chunks=chunk_content(
            data.decode("utf-8", errors="replace"),
            options.chunk_max_lines,
            options.chunk_max_bytes,
        ),
        analysis=analysis,
    )


def process_files_sequential(
    root: Path,
    files: list[str],
    options: ScanOptions,
) -> list[FileRecord]:
    registry = AnalyzerRegistry.with_defaults(root, enable_lsp=options.enable_lsp)
    return [process_file(root, rel, registry, options) for rel in files]


def process_files_parallel(
    root: Path,
    files: list[str],
    workers: int,
    options: ScanOptions,
) -> list[FileRecord]:
    results: list[FileRecord | None] = [None] * len(files)
    jobs: queue.SimpleQueue[int] = queue.SimpleQueue()
    for idx in range(len(files)):
        jobs.put(idx)

    cancel = threading.Event()
    lock = threading.Lock()
    first_error: list[tuple[str, Exception]] = []

    def _worker() -> None:
        registry = AnalyzerRegistry.with_defaults(root, enable_lsp=False)
        while not cancel.is_set():
            try:
                idx = jobs.get_nowait()
            except queue.Empty:
                return
            try:
                results[idx] = process_file(root, files[idx], registry, options)
            except Exception as e:
                with lock:
                    if not first_error:
                        first_error.append((files[idx], e))
                        cancel.set()
                logger.warning("scan_worker_failed", path=files[idx], error=str(e))
                return

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="palace-scan") as pool:
        futures = [pool.submit(_worker) for _ in range(workers)]
        for future in futures:
            future.result()

    if first_error:
        failed_path, err = first_error[0]
        if isinstance(err, PalaceError):
            raise err
        raise ScanError.worker_failed(failed_path, str(err)) from err

    records = [r for r in results if r is not None]
    if len(records) != len(files):
        raise InternalError.unexpected(
            f"expected {len(files)} results, got {len(records)}",
            expected=len(files),
            actual=len(records),
        )
    return records


def build_file_records(
    root: Path,
    globs: list[str],
    options: ScanOptions | None = None,
) -> list[FileRecord]:
    """Enumerate, sort and process every file under root.

    Sequential and parallel execution produce identical output for the same
    input set.
    """
    options = options or ScanOptions()
    files = list_files(root, globs)
    if not files:
        return []

    workers = resolve_worker_count(options.workers, len(files))
    logger.debug("scan_workers_resolved", workers=workers, files=len(files))
    if workers == 1:
        return process_files_sequential(root, files, options)
    return process_files_parallel(root, files, workers, options)
