"""CLI test fixtures."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner, Result

from palace.cli.main import cli
from palace.config import loader


@pytest.fixture(autouse=True)
def isolated_cli(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Ignore any real global config and undo the logging setup each command installs."""
    monkeypatch.setattr(loader, "GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Two files: a.py imports b.py and calls beta()."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "a.py").write_text("from b import beta\n\n\ndef alpha():\n    return beta()\n")
    (root / "b.py").write_text('def beta():\n    """Second letter."""\n    return 2\n')
    return root


@pytest.fixture
def invoke() -> Callable[..., Result]:
    """Run the palace CLI with the given arguments."""
    runner = CliRunner()

    def _invoke(*args: str) -> Result:
        return runner.invoke(cli, list(args))

    return _invoke


@pytest.fixture
def scanned(project: Path, invoke: Callable[..., Result]) -> Path:
    result = invoke("scan", str(project))
    assert result.exit_code == 0, result.output
    return project
