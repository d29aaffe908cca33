"""Canonical language definitions.

Maps file extensions and exact filenames to language ids. Detection order:
1. Extension (case-insensitive)
2. Exact filename (e.g., "Dockerfile", "Makefile")
3. "Dockerfile.<variant>" prefix

Anything else is "unknown"; unknown files are still indexed (hash + chunks)
but never handed to an analyzer.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import Path

UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Language:
    """Canonical definition for a language id.

    Attributes:
        name: Unique identifier (lowercase, e.g., "python", "typescript")
        extensions: File extensions including dot (lowercase)
        filenames: Special filenames to detect (EXACT, case-sensitive)
    """

    name: str
    extensions: frozenset[str]
    filenames: frozenset[str] = field(default_factory=frozenset)


# =============================================================================
# Language Definitions
# =============================================================================

ALL_LANGUAGES: tuple[Language, ...] = (
    Language("go", frozenset({".go"})),
    Language("javascript", frozenset({".js", ".mjs", ".cjs", ".jsx"})),
    Language("typescript", frozenset({".ts", ".tsx", ".mts", ".cts"})),
    Language(
        "python",
        frozenset({".py", ".pyw", ".pyi"}),
        frozenset({"BUILD", "BUILD.bazel", "WORKSPACE", "WORKSPACE.bazel"}),
    ),
    Language("rust", frozenset({".rs"})),
    Language("java", frozenset({".java"})),
    Language("dart", frozenset({".dart"})),
    Language("c", frozenset({".c", ".h"})),
    Language("cpp", frozenset({".cpp", ".cc", ".cxx", ".hpp", ".hxx", ".hh"})),
    Language("csharp", frozenset({".cs"})),
    Language("ruby", frozenset({".rb", ".rake"})),
    Language("swift", frozenset({".swift"})),
    Language("kotlin", frozenset({".kt", ".kts"})),
    Language("scala", frozenset({".scala", ".sc"})),
    Language("php", frozenset({".php", ".phtml"})),
    Language(
        "bash",
        frozenset({".sh", ".bash", ".zsh"}),
        frozenset({"Makefile", "makefile", "GNUmakefile"}),
    ),
    Language("sql", frozenset({".sql"})),
    Language("html", frozenset({".html", ".htm"})),
    Language("css", frozenset({".css", ".scss", ".less"})),
    Language("yaml", frozenset({".yaml", ".yml"})),
    Language("toml", frozenset({".toml"})),
    Language("json", frozenset({".json", ".jsonc"})),
    Language("markdown", frozenset({".md", ".markdown"})),
    Language("dockerfile", frozenset(), frozenset({"Dockerfile", "dockerfile"})),
    Language("hcl", frozenset({".tf", ".tfvars", ".hcl"})),
    Language("protobuf", frozenset({".proto"})),
    Language("lua", frozenset({".lua"})),
    Language("elixir", frozenset({".ex", ".exs"})),
    Language("groovy", frozenset({".groovy", ".gradle"}), frozenset({"Jenkinsfile"})),
    Language("svelte", frozenset({".svelte"})),
    Language("ocaml", frozenset({".ml", ".mli"})),
    Language("elm", frozenset({".elm"})),
    Language("cue", frozenset({".cue"})),
)


def _build_extension_map() -> dict[str, str]:
    result: dict[str, str] = {}
    for lang in ALL_LANGUAGES:
        for ext in lang.extensions:
            result.setdefault(ext, lang.name)
    return result


def _build_filename_map() -> dict[str, str]:
    result: dict[str, str] = {}
    for lang in ALL_LANGUAGES:
        for filename in lang.filenames:
            result.setdefault(filename, lang.name)
    return result


EXTENSION_TO_NAME: dict[str, str] = _build_extension_map()
FILENAME_TO_NAME: dict[str, str] = _build_filename_map()


def detect_language(path: str | Path) -> str:
    """Detect the language id for a file path, or "unknown"."""
    base_name = posixpath.basename(str(path).replace("\\", "/"))
    _, ext = posixpath.splitext(base_name)

    if name := EXTENSION_TO_NAME.get(ext.lower()):
        return name
    if name := FILENAME_TO_NAME.get(base_name):
        return name
    if base_name.startswith(("Dockerfile.", "dockerfile.")):
        return "dockerfile"
    return UNKNOWN


def is_analyzable(path: str | Path) -> bool:
    return detect_language(path) != UNKNOWN


def supported_extensions() -> list[str]:
    return sorted(EXTENSION_TO_NAME)
