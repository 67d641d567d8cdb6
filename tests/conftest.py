from __future__ import annotations

"""
Global Pytest Configuration and Fixtures.

This module sets up the testing environment, including:
1. Path manipulation to ensure the 'src' directory is importable.
2. An in-memory version-control backend for unit tests.
3. Real temporary git repositories for integration tests.
"""

import hashlib
import os
import shutil
import subprocess
import sys
from itertools import combinations
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

import pytest

# -----------------------------------------------------------------------------
# Path Configuration
# -----------------------------------------------------------------------------
_SRC_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if _SRC_PATH not in sys.path:
    sys.path.insert(0, _SRC_PATH)

from tangl.domain.commit_models import Commit, MergeResult  # noqa: E402
from tangl.domain.errors import GitCommandError  # noqa: E402
from tangl.domain.qualified_path import QualifiedPath  # noqa: E402


# -----------------------------------------------------------------------------
# In-memory backend
# -----------------------------------------------------------------------------
class FakeBackend:
    """
    Minimal git stand-in.

    Each branch holds a newest-first list of (commit, merged-features)
    snapshots. A merge conflicts when any pair among the branch's merged
    paths and the incoming paths is listed in `conflicts`.
    """

    def __init__(self, branches: Iterable[str] = ("main",), current: str = "main") -> None:
        self._counter = 0
        self.history: Dict[str, List[Tuple[Commit, Tuple[str, ...]]]] = {}
        root = self._new_commit("initial commit")
        for branch in branches:
            self.history[QualifiedPath.from_git_branch(branch).to_git_branch()] = [(root, ())]
        self.current = current
        self.tags: List[str] = []
        self.conflicts: Set[FrozenSet[str]] = set()
        self.pending: Optional[Tuple[str, ...]] = None
        self.fail_on: Dict[str, GitCommandError] = {}
        self.calls: List[Tuple[str, Tuple]] = []
        self.changed_files: Dict[str, List[str]] = {}
        self.managed_files: Dict[str, List[str]] = {}
        self.cherry_pick_ok = True
        self.cherry_picked: List[Tuple[str, str]] = []

    # --- helpers -------------------------------------------------------------

    def _new_commit(self, message: str) -> Commit:
        self._counter += 1
        return Commit(hashlib.sha1(f"commit {self._counter}".encode()).hexdigest(), message)

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))
        if name in self.fail_on:
            raise self.fail_on[name]

    def _require(self, branch: str) -> None:
        if branch not in self.history:
            raise GitCommandError(f"unknown branch '{branch}'", command=[branch], returncode=1)

    def add_conflict(self, left: str, right: str) -> None:
        self.conflicts.add(frozenset({str(QualifiedPath(left)), str(QualifiedPath(right))}))

    def merged(self, branch: Optional[str] = None) -> Tuple[str, ...]:
        return self.history[branch or self.current][0][1]

    def add_commit(self, message: str, changed: Sequence[str] = ()) -> Commit:
        commit = self._new_commit(message)
        self.history[self.current].insert(0, (commit, self.merged()))
        self.changed_files[commit.hash] = list(changed)
        return commit

    # --- backend API ---------------------------------------------------------

    def list_branches(self) -> List[str]:
        return sorted(self.history)

    def list_tags(self) -> List[str]:
        return list(self.tags)

    def current_branch(self) -> QualifiedPath:
        self._record("current_branch")
        return QualifiedPath.from_git_branch(self.current)

    def head_commit(self) -> str:
        return self.history[self.current][0][0].hash

    def checkout(self, path: QualifiedPath) -> None:
        self._record("checkout", str(path))
        branch = path.to_git_branch()
        self._require(branch)
        self.current = branch

    def create_branch(self, path: QualifiedPath, start_point: Optional[str] = None) -> None:
        self._record("create_branch", str(path))
        branch = path.to_git_branch()
        if branch in self.history:
            raise GitCommandError(f"branch '{branch}' already exists", returncode=128)
        self.history[branch] = list(self.history[self.current])

    def delete_branch(self, path: QualifiedPath) -> None:
        self._record("delete_branch", str(path))
        branch = path.to_git_branch()
        self._require(branch)
        if branch == self.current:
            raise GitCommandError(f"cannot delete checked out branch '{branch}'", returncode=1)
        del self.history[branch]

    def merge(self, paths: Sequence[QualifiedPath]) -> MergeResult:
        self._record("merge", tuple(str(p) for p in paths))
        if self.pending is not None:
            return MergeResult(False, "", "merge in progress")
        incoming = [str(p) for p in paths]
        already = self.merged()
        new = [p for p in incoming if p not in already]
        if not new:
            return MergeResult(True, "Already up to date.", "")
        combined = list(already) + new
        for left, right in combinations(combined, 2):
            if frozenset({left, right}) in self.conflicts and (left in new or right in new):
                self.pending = tuple(new)
                return MergeResult(False, "", "CONFLICT")
        commit = self._new_commit(f"Merge {', '.join(new)}")
        self.history[self.current].insert(0, (commit, tuple(combined)))
        return MergeResult(True, "Merge made", "")

    def abort_in_progress_merge(self) -> bool:
        self._record("abort_in_progress_merge")
        was_pending = self.pending is not None
        self.pending = None
        return was_pending

    def merge_in_progress(self) -> bool:
        return self.pending is not None

    def commit(self, message: str) -> None:
        """Concludes a pending merge the way a user resolution would."""
        self._record("commit", message)
        merged = self.merged() + (self.pending or ())
        self.pending = None
        commit = self._new_commit(message)
        self.history[self.current].insert(0, (commit, merged))

    def empty_commit(self, message: str) -> None:
        self._record("empty_commit")
        commit = self._new_commit(message)
        self.history[self.current].insert(0, (commit, self.merged()))

    def commit_history(self, branch: QualifiedPath) -> List[Commit]:
        name = branch.to_git_branch()
        self._require(name)
        return [commit for commit, _ in self.history[name]]

    def files_changed_by(self, commit: str) -> List[str]:
        return list(self.changed_files.get(commit, []))

    def files_managed_by(self, branch: QualifiedPath) -> List[str]:
        return list(self.managed_files.get(str(branch), []))

    def cherry_pick(self, commit: str) -> MergeResult:
        self._record("cherry_pick", commit)
        if not self.cherry_pick_ok:
            return MergeResult(False, "", "CONFLICT")
        self.cherry_picked.append((self.current, commit))
        return MergeResult(True, "", "")

    def abort_cherry_pick(self) -> bool:
        self._record("abort_cherry_pick")
        return True

    def reset_hard(self, commit: str) -> None:
        self._record("reset_hard", commit)
        entries = self.history[self.current]
        if commit == "HEAD":
            return
        for i, (entry, _) in enumerate(entries):
            if entry.hash == commit:
                self.history[self.current] = entries[i:]
                return
        raise GitCommandError(f"unknown revision '{commit}'", returncode=128)

    def create_tag(self, path: QualifiedPath) -> None:
        self._record("create_tag", str(path))
        self.tags.append(path.to_git_branch())

    def delete_tag(self, path: QualifiedPath) -> None:
        self._record("delete_tag", str(path))
        self.tags.remove(path.to_git_branch())

    def init(self) -> None:
        self._record("init")

    def status(self) -> str:
        return f"On branch {self.current}\nnothing to commit, working tree clean\n"


# -----------------------------------------------------------------------------
# Shared Fixtures
# -----------------------------------------------------------------------------
STANDARD_BRANCHES = (
    "main",
    "_main/_feature/root",
    "_main/_feature/_root/foo",
    "_main/_feature/_root/bar",
    "_main/_product/myprod",
)


@pytest.fixture
def fake_backend() -> FakeBackend:
    """Backend with one area, a small feature tree and one product."""
    return FakeBackend(STANDARD_BRANCHES, current="main")


@pytest.fixture
def backend_factory():
    """Factory for custom in-memory backends."""
    return FakeBackend


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the user data directory to a temporary location."""
    home = tmp_path / "tangl_home"
    monkeypatch.setenv("TANGL_HOME", str(home))
    return home


# -----------------------------------------------------------------------------
# Real git repositories
# -----------------------------------------------------------------------------
class GitRepo:
    """Test helper driving a real repository through the git binary."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def git(self, *args: str) -> str:
        proc = subprocess.run(
            ["git", "-C", str(self.path)] + list(args),
            capture_output=True,
            text=True,
            check=True,
        )
        return proc.stdout

    def write(self, name: str, content: str) -> None:
        (self.path / name).write_text(content, encoding="utf-8")

    def commit_file(self, name: str, content: str, message: str) -> str:
        self.write(name, content)
        self.git("add", "-A")
        self.git("commit", "-m", message)
        return self.git("rev-parse", "HEAD").strip()

    def branch_with_file(self, branch: str, name: str, content: str, start: str = "main") -> None:
        """Create branch at start with one commit writing name."""
        current = self.current()
        self.git("checkout", "-q", "-b", branch, start)
        self.commit_file(name, content, f"{branch}: {name}")
        self.git("checkout", "-q", current)

    def current(self) -> str:
        return self.git("branch", "--show-current").strip()

    def branches(self) -> List[str]:
        return [b.strip() for b in self.git("branch", "--format=%(refname:short)").splitlines() if b.strip()]


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepo:
    """Empty repository on 'main' with one initial commit."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    path = tmp_path / "repo"
    path.mkdir()
    repo = GitRepo(path)
    repo.git("init", "-q", "--initial-branch=main")
    repo.git("config", "user.email", "dev@example.com")
    repo.git("config", "user.name", "Dev")
    repo.git("config", "commit.gpgsign", "false")
    repo.commit_file("base.txt", "line one\nline two\n", "initial commit")
    return repo
