"""File enumeration and hashing for the scanner."""

from __future__ import annotations

import hashlib
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from palace.core.excludes import DEFAULT_GUARDRAIL_GLOBS, matches_guardrail, merge_globs

if TYPE_CHECKING:
    from palace.config.models import GuardrailsConfig

logger = structlog.get_logger()

_HASH_BLOCK_SIZE = 64 * 1024


def guardrail_globs(guardrails: GuardrailsConfig | None = None) -> list[str]:
    """Default guardrails merged with user do-not-touch and read-only globs."""
    if guardrails is None:
        return list(DEFAULT_GUARDRAIL_GLOBS)
    user = [*guardrails.do_not_touch_globs, *guardrails.read_only_globs]
    return merge_globs(DEFAULT_GUARDRAIL_GLOBS, user)


def list_files(root: Path, globs: list[str]) -> list[str]:
    """Enumerate files under root as POSIX relative paths, sorted.

    Directories matching a guardrail glob are pruned. Symlinked directories
    are not followed; symlinks to files are included; broken symlinks and
    unreadable directories are skipped.
    """
    files: list[str] = []

    def _on_error(err: OSError) -> None:
        logger.debug("list_files_skip_dir", path=err.filename, error=err.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"

        kept_dirs: list[str] = []
        for name in sorted(dirnames):
            rel = prefix + name
            if os.path.islink(os.path.join(dirpath, name)):
                continue
            if matches_guardrail(rel, globs):
                continue
            kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for name in filenames:
            rel = prefix + name
            if matches_guardrail(rel, globs):
                continue
            full = os.path.join(dirpath, name)
            # Broken symlinks and special files
            if not os.path.isfile(full):
                continue
            files.append(rel)

    files.sort()
    return files


def hash_bytes(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def hash_file(path: Path) -> str:
    """SHA-256 hex digest of a file's content."""
    h = hashlib.sha256()
    with path.open("rb") as f:
        for block in iter(lambda: f.read(_HASH_BLOCK_SIZE), b""):
            h.update(block)
    return h.hexdigest()


def normalize_mod_time(mtime: float) -> datetime:
    """UTC, truncated to whole seconds for deterministic comparisons."""
    return datetime.fromtimestamp(int(mtime), tz=UTC)
