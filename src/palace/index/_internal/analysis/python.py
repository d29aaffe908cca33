"""Tree-sitter based Python analyzer.

Extracts:
- Functions, classes, methods (nested as children) and module-level
  constants/variables
- import / from-import relationships, resolved to workspace files when the
  target module exists on disk
- call relationships with dotted callee names (e.g. "self.save", "os.path.join")
"""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Any

import tree_sitter
import tree_sitter_python

from palace.index._internal.analysis.base import (
    AnalysisError,
    FileAnalysis,
    RelationshipFact,
    SymbolFact,
)
from palace.index.models import RelationKind, SymbolKind

_SOURCE_ROOTS = ("", "src/")
_CALLEE_NODE_TYPES = frozenset({"identifier", "attribute"})


def _text(node: Any) -> str:
    raw = node.text
    return raw.decode("utf-8", errors="replace") if raw is not None else ""


def _line_range(node: Any) -> tuple[int, int]:
    return node.start_point[0] + 1, node.end_point[0] + 1


def _clean_docstring(raw: str) -> str:
    body = raw.lstrip("rRbBuUfF")
    for quote in ('"""', "'''", '"', "'"):
        if body.startswith(quote) and body.endswith(quote) and len(body) >= 2 * len(quote):
            body = body[len(quote) : -len(quote)]
            break
    return body.strip()


class PythonAnalyzer:
    """Python analyzer backed by tree-sitter-python."""

    def __init__(self, root: Path | None = None) -> None:
        self._root = root
        self._parser = tree_sitter.Parser(tree_sitter.Language(tree_sitter_python.language()))

    @property
    def language(self) -> str:
        return "python"

    def analyze(self, content: bytes, path: str) -> FileAnalysis:
        tree = self._parser.parse(content)
        root = tree.root_node
        if root.has_error:
            raise AnalysisError(path, "syntax error")

        analysis = FileAnalysis(path=path, language=self.language)
        analysis.symbols = self._symbols_in_block(root, in_class=False, module_level=True)
        self._collect_relationships(root, path, analysis.relationships)
        return analysis

    # =========================================================================
    # Symbols
    # =========================================================================

    def _symbols_in_block(
        self, block: Any, *, in_class: bool, module_level: bool
    ) -> list[SymbolFact]:
        symbols: list[SymbolFact] = []
        for child in block.named_children:
            outer = child
            if child.type == "decorated_definition":
                inner = child.child_by_field_name("definition")
                if inner is None:
                    continue
                child = inner
            if child.type == "function_definition":
                symbols.append(self._function_symbol(child, outer, in_class=in_class))
            elif child.type == "class_definition":
                symbols.append(self._class_symbol(child, outer))
            elif module_level and child.type == "expression_statement":
                symbols.extend(self._assignment_symbols(child))
        return symbols

    def _function_symbol(self, node: Any, outer: Any, *, in_class: bool) -> SymbolFact:
        name = _text(node.child_by_field_name("name"))
        params = node.child_by_field_name("parameters")
        returns = node.child_by_field_name("return_type")
        signature = f"def {name}{_text(params) if params is not None else '()'}"
        if returns is not None:
            signature += f" -> {_text(returns)}"

        if in_class:
            kind = SymbolKind.CONSTRUCTOR if name == "__init__" else SymbolKind.METHOD
        else:
            kind = SymbolKind.FUNCTION

        body = node.child_by_field_name("body")
        line_start, line_end = _line_range(outer)
        return SymbolFact(
            name=name,
            kind=kind.value,
            line_start=line_start,
            line_end=line_end,
            signature=signature,
            doc_comment=self._docstring(body),
            exported=not name.startswith("_"),
            children=(
                self._symbols_in_block(body, in_class=False, module_level=False)
                if body is not None
                else []
            ),
        )

    def _class_symbol(self, node: Any, outer: Any) -> SymbolFact:
        name = _text(node.child_by_field_name("name"))
        bases = node.child_by_field_name("superclasses")
        body = node.child_by_field_name("body")
        line_start, line_end = _line_range(outer)
        return SymbolFact(
            name=name,
            kind=SymbolKind.CLASS.value,
            line_start=line_start,
            line_end=line_end,
            signature=f"class {name}{_text(bases) if bases is not None else ''}",
            doc_comment=self._docstring(body),
            exported=not name.startswith("_"),
            children=(
                self._symbols_in_block(body, in_class=True, module_level=False)
                if body is not None
                else []
            ),
        )

    def _assignment_symbols(self, stmt: Any) -> list[SymbolFact]:
        out: list[SymbolFact] = []
        for expr in stmt.named_children:
            if expr.type != "assignment":
                continue
            left = expr.child_by_field_name("left")
            if left is None or left.type != "identifier":
                continue
            name = _text(left)
            kind = SymbolKind.CONSTANT if name.isupper() else SymbolKind.VARIABLE
            line_start, line_end = _line_range(stmt)
            out.append(
                SymbolFact(
                    name=name,
                    kind=kind.value,
                    line_start=line_start,
                    line_end=line_end,
                    exported=not name.startswith("_"),
                )
            )
        return out

    @staticmethod
    def _docstring(body: Any) -> str:
        if body is None or not body.named_children:
            return ""
        first = body.named_children[0]
        if first.type != "expression_statement" or not first.named_children:
            return ""
        string = first.named_children[0]
        if string.type != "string":
            return ""
        return _clean_docstring(_text(string))

    # =========================================================================
    # Relationships
    # =========================================================================

    def _collect_relationships(self, root: Any, path: str, out: list[RelationshipFact]) -> None:
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "import_statement":
                for name_node in node.named_children:
                    module = name_node
                    if name_node.type == "aliased_import":
                        module = name_node.child_by_field_name("name")
                    if module is not None:
                        out.append(self._import_fact(_text(module), node))
            elif node.type == "import_from_statement":
                module_node = node.child_by_field_name("module_name")
                if module_node is not None:
                    module = self._absolute_module(_text(module_node), path)
                    out.append(self._import_fact(module, node))
            elif node.type == "call":
                callee = node.child_by_field_name("function")
                if callee is not None and callee.type in _CALLEE_NODE_TYPES:
                    out.append(
                        RelationshipFact(
                            kind=RelationKind.CALL.value,
                            target_symbol=_text(callee),
                            line=node.start_point[0] + 1,
                            column=node.start_point[1],
                        )
                    )
            # Reverse so the stack visits children in source order
            stack.extend(reversed(node.named_children))
        out.sort(key=lambda r: (r.line, r.column))

    def _import_fact(self, module: str, node: Any) -> RelationshipFact:
        return RelationshipFact(
            kind=RelationKind.IMPORT.value,
            target_symbol=module,
            target_file=self._resolve_module(module),
            line=node.start_point[0] + 1,
            column=node.start_point[1],
        )

    @staticmethod
    def _absolute_module(module: str, path: str) -> str:
        """Turn a relative module ("..pkg.mod") into a dotted absolute one."""
        if not module.startswith("."):
            return module
        level = len(module) - len(module.lstrip("."))
        remainder = module[level:]
        package = posixpath.dirname(path)
        for _ in range(level - 1):
            package = posixpath.dirname(package)
        parts = [p for p in package.split("/") if p]
        if remainder:
            parts.extend(remainder.split("."))
        return ".".join(parts)

    def _resolve_module(self, module: str) -> str | None:
        if self._root is None or not module:
            return None
        rel = module.replace(".", "/")
        for source_root in _SOURCE_ROOTS:
            for candidate in (f"{source_root}{rel}.py", f"{source_root}{rel}/__init__.py"):
                if (self._root / candidate).is_file():
                    return candidate
        return None
