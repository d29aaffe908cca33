"""Shared fixtures for index tests."""

from __future__ import annotations

import tempfile
from collections.abc import Callable, Generator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from palace.index._internal.analysis import FileAnalysis, RelationshipFact, SymbolFact
from palace.index._internal.db import Database, open_database, write_scan
from palace.index._internal.indexing.chunking import chunk_content
from palace.index._internal.indexing.files import hash_bytes
from palace.index._internal.indexing.scanner import FileRecord

FIXED_MOD_TIME = datetime(2024, 1, 1, tzinfo=UTC)

RecordFactory = Callable[..., FileRecord]


def _make_record(
    path: str,
    content: str = "",
    symbols: list[SymbolFact] | None = None,
    relationships: list[RelationshipFact] | None = None,
    language: str = "python",
) -> FileRecord:
    content = content or f"# {path}\n"
    data = content.encode("utf-8")
    return FileRecord(
        path=path,
        hash=hash_bytes(data),
        size=len(data),
        mod_time=FIXED_MOD_TIME,
        language=language,
        chunks=chunk_content(content),
        analysis=FileAnalysis(
            path=path,
            language=language,
            symbols=symbols or [],
            relationships=relationships or [],
        ),
    )


def func(name: str, start: int, end: int, doc: str = "", signature: str = "") -> SymbolFact:
    return SymbolFact(
        name=name,
        kind="function",
        line_start=start,
        line_end=end,
        signature=signature,
        doc_comment=doc,
        exported=True,
    )


def call(target: str, line: int) -> RelationshipFact:
    return RelationshipFact(kind="call", target_symbol=target, line=line)


def imports(target_file: str, line: int = 1) -> RelationshipFact:
    module = target_file.removesuffix(".py").replace("/", ".")
    return RelationshipFact(
        kind="import", target_symbol=module, target_file=target_file, line=line
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db(temp_dir: Path) -> Generator[Database, None, None]:
    """Create a temporary, fully migrated database."""
    db = open_database(temp_dir / "index" / "test.db")
    yield db
    db.close()


@pytest.fixture
def make_record() -> RecordFactory:
    """Factory for in-memory file records with analyzer facts."""
    return _make_record


@pytest.fixture
def seed_index(temp_db: Database) -> Callable[[list[FileRecord]], Database]:
    """Write records into temp_db as a full scan and return the database."""

    def _seed(records: list[FileRecord]) -> Database:
        write_scan(temp_db, "/repo", records, datetime.now(UTC))
        return temp_db

    return _seed


@pytest.fixture
def call_graph_db(seed_index: Callable[[list[FileRecord]], Database]) -> Database:
    """Three-file project with call and import edges.

    app.py:      main (1-10) calls run (line 2) and helper (line 4)
    service.py:  run (1-8) calls helper (3) and save (5);
                 helper (10-14) calls format_value (12)
    util.py:     save (1-4), format_value (6-9)

    app.py imports service.py, which imports util.py.
    """
    app_src = "\n".join(
        [
            "def main():",
            "    run()",
            "    # then",
            "    helper()",
            *["    pass"] * 6,
        ]
    )
    service_src = "\n".join(
        [
            "def run():",
            "    '''Run the service.'''",
            "    helper()",
            "    x = 1",
            "    save(x)",
            *["    pass"] * 3,
            "",
            "def helper():",
            "    '''Format and log.'''",
            "    format_value(1)",
            "    pass",
            "    pass",
        ]
    )
    util_src = "\n".join(
        [
            "def save(value):",
            "    '''Persist a value.'''",
            "    pass",
            "    pass",
            "",
            "def format_value(value):",
            "    '''Render a value.'''",
            "    pass",
            "    pass",
        ]
    )
    return seed_index(
        [
            _make_record(
                "app.py",
                app_src,
                symbols=[func("main", 1, 10, signature="def main()")],
                relationships=[imports("service.py"), call("run", 2), call("helper", 4)],
            ),
            _make_record(
                "service.py",
                service_src,
                symbols=[
                    func("run", 1, 8, doc="Run the service."),
                    func("helper", 10, 14, doc="Format and log."),
                ],
                relationships=[
                    imports("util.py"),
                    call("helper", 3),
                    call("save", 5),
                    call("format_value", 12),
                ],
            ),
            _make_record(
                "util.py",
                util_src,
                symbols=[
                    func("save", 1, 4, doc="Persist a value."),
                    func("format_value", 6, 9, doc="Render a value."),
                ],
            ),
        ]
    )
