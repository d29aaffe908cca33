"""Exclusion tables and glob matching.

Two independent tables live here:

DEFAULT_GUARDRAIL_GLOBS: paths the scanner never enumerates. Matched against
    repo-relative POSIX paths; ``**`` crosses directory boundaries and
    ``dir/**`` also matches ``dir`` itself so whole subtrees are pruned.

DEFAULT_EXCLUDE_PATTERNS: files that are indexed but kept out of assembled
    context (tests, generated code, lockfiles, vendored trees). Callers may
    override this table per query.
"""

from __future__ import annotations

import fnmatch
import posixpath
from collections.abc import Iterable, Sequence

# =============================================================================
# Scanner guardrails - never enumerated
# =============================================================================

DEFAULT_GUARDRAIL_GLOBS: tuple[str, ...] = (
    # Version control & IDE
    ".git/**",
    ".palace/**",
    ".idea/**",
    "**/.idea/**",
    ".vscode/**",
    "**/.DS_Store",
    # Package managers & dependencies
    "node_modules/**",
    "vendor/**",
    "**/Pods/**",
    "**/.symlinks/**",
    "**/DerivedData/**",
    ".venv/**",
    "**/__pycache__/**",
    # Build outputs
    "dist/**",
    "build/**",
    "**/build/**",
    "coverage/**",
    "target/**",
    "out/**",
    # Flutter/Dart
    ".dart_tool/**",
    "**/.dart_tool/**",
    "**/*.dill",
    "**/test_cache/**",
    # JavaScript/TypeScript
    ".next/**",
    ".turbo/**",
    ".nx/**",
    ".nuxt/**",
    ".output/**",
    # Mobile
    ".gradle/**",
    "**/.gradle/**",
    "**/*.apk",
    "**/*.aab",
    "**/*.ipa",
    # Generated/minified files
    "**/*.min.*",
    "**/*.lock",
    "**/*.generated.*",
    "**/*.g.dart",
    "**/*.freezed.dart",
    "**/*.gr.dart",
    "**/*.mocks.dart",
)

# =============================================================================
# Context exclusions - indexed, but left out of assembled context
# =============================================================================

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    # Test files
    "*_test.go",
    "*_test.ts",
    "*_test.tsx",
    "*_test.js",
    "*_test.jsx",
    "*.test.ts",
    "*.test.tsx",
    "*.test.js",
    "*.test.jsx",
    "*.spec.ts",
    "*.spec.tsx",
    "*.spec.js",
    "*.spec.jsx",
    "test_*.py",
    "*_test.py",
    "*_test.rb",
    "*_spec.rb",
    # Generated files
    "*.pb.go",
    "*.pb.ts",
    "*.generated.go",
    "*.generated.ts",
    "*.gen.go",
    "*.g.dart",
    # Lockfiles
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "go.sum",
    "Cargo.lock",
    "Gemfile.lock",
    "poetry.lock",
    "composer.lock",
    # Vendor/dependencies
    "vendor/*",
    "node_modules/*",
    ".venv/*",
    "__pycache__/*",
    # VCS/IDE metadata
    ".git/*",
    ".palace/*",
    ".vscode/*",
    ".idea/*",
)


def should_exclude_file(path: str, patterns: Iterable[str]) -> bool:
    """Check a repo-relative path against context exclusion patterns.

    A pattern matches the full path, the basename, or - for ``dir/*``
    patterns - any path with ``dir`` as a leading or inner directory.
    """
    base_name = posixpath.basename(path)
    for pattern in patterns:
        if fnmatch.fnmatchcase(path, pattern) or fnmatch.fnmatchcase(base_name, pattern):
            return True
        if pattern.endswith("/*"):
            directory = pattern[:-2]
            if f"/{directory}/" in path or path.startswith(f"{directory}/"):
                return True
    return False


def _glob_candidates(glob: str) -> list[str]:
    # "**/" may match zero directories
    candidates = [glob]
    if glob.startswith("**/"):
        candidates.append(glob[3:])
    return candidates


def matches_guardrail(path: str, globs: Iterable[str]) -> bool:
    """Return True if a repo-relative path matches any guardrail glob."""
    normalized = path.replace("\\", "/")
    for glob in globs:
        if not glob:
            continue
        for candidate in _glob_candidates(glob):
            if fnmatch.fnmatchcase(normalized, candidate):
                return True
            # "dir/**" also covers "dir" itself
            if candidate.endswith("/**") and fnmatch.fnmatchcase(
                normalized + "/", candidate[:-1]
            ):
                return True
    return False


def normalize_glob(glob: str) -> str:
    return glob.strip().replace("\\", "/").removeprefix("./")


def merge_globs(defaults: Sequence[str], user: Sequence[str]) -> list[str]:
    """Merge user globs onto defaults, de-duplicated, first occurrence wins."""
    seen: set[str] = set()
    merged: list[str] = []
    for glob in (*defaults, *user):
        norm = normalize_glob(glob)
        if not norm or norm in seen:
            continue
        seen.add(norm)
        merged.append(norm)
    return merged
