"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages.
"""

import sys
from pathlib import Path

# Insert local src directory at the beginning of sys.path
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of palace modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("palace"):
        del sys.modules[module_name]

from collections.abc import Callable  # noqa: E402

import pygit2  # noqa: E402
import pytest  # noqa: E402

_SIGNATURE = pygit2.Signature("Test User", "test@example.com")


def _commit_all(repo: pygit2.Repository, message: str) -> str:
    repo.index.add_all()
    repo.index.write()
    tree = repo.index.write_tree()
    parents = [] if repo.head_is_unborn else [repo.head.target]
    oid = repo.create_commit("HEAD", _SIGNATURE, _SIGNATURE, message, tree, parents)
    return str(oid)


@pytest.fixture
def git_workspace(tmp_path: Path) -> pygit2.Repository:
    """A git repository with three committed Python files."""
    repo_path = tmp_path / "repo"
    repo_path.mkdir()
    repo = pygit2.init_repository(str(repo_path), initial_head="main")
    repo.config["user.name"] = "Test User"
    repo.config["user.email"] = "test@example.com"

    (repo_path / ".gitignore").write_text(".palace/\n")
    (repo_path / "a.py").write_text("def alpha():\n    return beta()\n")
    (repo_path / "b.py").write_text("def beta():\n    return 2\n")
    (repo_path / "c.py").write_text("def gamma():\n    pass\n")
    _commit_all(repo, "Initial commit")
    return repo


@pytest.fixture
def commit_all() -> Callable[[pygit2.Repository, str], str]:
    """Stage every change in the working tree and commit it on HEAD."""
    return _commit_all
