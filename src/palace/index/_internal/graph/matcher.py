"""Symbol-name matching for relationship targets.

Analyzers record call targets as written at the call site, so a call to
``parse`` may be stored as ``parse``, ``config.parse``, ``Config::parse`` or
``get parse``. A matcher turns a bare symbol name into the set of LIKE
patterns that identify calls to it. There is no formal grammar behind these
conventions; swap in another matcher for languages with different ones.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from sqlalchemy import or_


@runtime_checkable
class SymbolMatcher(Protocol):
    """Produces patterns matching call targets that name a symbol.

    The first pattern is compared for equality, the rest with LIKE.
    """

    def patterns(self, name: str) -> list[str]: ...


class DefaultSymbolMatcher:
    """Exact name plus dotted, scoped, prefixed and Dart file-suffix forms."""

    def patterns(self, name: str) -> list[str]:
        return [
            name,
            f"%.{name}",
            f"%::{name}",
            f"% {name}",
            f"%/{name}.dart",
            f"{name}%",
        ]


class QualifiedNameMatcher:
    """Exact name plus ``.name`` and ``::name``. Used for counting."""

    def patterns(self, name: str) -> list[str]:
        return [name, f"%.{name}", f"%::{name}"]


DEFAULT_MATCHER = DefaultSymbolMatcher()
QUALIFIED_MATCHER = QualifiedNameMatcher()


def match_condition(column: Any, name: str, matcher: SymbolMatcher | None = None) -> Any:
    """SQL condition: column equals or is LIKE any of the matcher's patterns."""
    matcher = matcher or DEFAULT_MATCHER
    exact, *likes = matcher.patterns(name)
    return or_(column == exact, *(column.like(p) for p in likes))
