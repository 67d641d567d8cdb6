from __future__ import annotations

"""
Git Backend Infrastructure.

Defines the VersionControlBackend contract the core depends on and its git
implementation, which shells out to the git binary for every operation.
Namespace paths cross this boundary as QualifiedPath values and are turned
into flat branch names here.
"""

import logging
import os
import subprocess
from typing import List, Optional, Protocol, Sequence

from tangl.domain.commit_models import Commit, MergeResult
from tangl.domain.errors import GitCommandError, WrongNodeTypeError
from tangl.domain.qualified_path import QualifiedPath
from tangl.domain.tree_models import TreeDataModel

logger = logging.getLogger(__name__)

GIT_BINARY = "git"
INITIAL_BRANCH = "main"

# -----------------------------------------------------------------------------
# BACKEND CONTRACT
# -----------------------------------------------------------------------------

class VersionControlBackend(Protocol):
    """
    Operations the core needs from a version-control system.

    Branch arguments are namespace paths. Failures raise GitCommandError,
    except merge and cherry_pick which report conflicts in a MergeResult.
    """

    def list_branches(self) -> List[str]: ...

    def list_tags(self) -> List[str]: ...

    def current_branch(self) -> QualifiedPath: ...

    def head_commit(self) -> str: ...

    def checkout(self, path: QualifiedPath) -> None: ...

    def create_branch(self, path: QualifiedPath, start_point: Optional[str] = None) -> None: ...

    def delete_branch(self, path: QualifiedPath) -> None: ...

    def merge(self, paths: Sequence[QualifiedPath]) -> MergeResult: ...

    def abort_in_progress_merge(self) -> bool: ...

    def merge_in_progress(self) -> bool: ...

    def commit(self, message: str) -> None: ...

    def empty_commit(self, message: str) -> None: ...

    def commit_history(self, branch: QualifiedPath) -> List[Commit]: ...

    def files_changed_by(self, commit: str) -> List[str]: ...

    def files_managed_by(self, branch: QualifiedPath) -> List[str]: ...

    def cherry_pick(self, commit: str) -> MergeResult: ...

    def abort_cherry_pick(self) -> bool: ...

    def reset_hard(self, commit: str) -> None: ...

    def create_tag(self, path: QualifiedPath) -> None: ...

    def delete_tag(self, path: QualifiedPath) -> None: ...

    def init(self) -> None: ...

    def status(self) -> str: ...

# -----------------------------------------------------------------------------
# RAW COMMAND RUNNER
# -----------------------------------------------------------------------------

class GitCLI:
    """
    Thin wrapper around the git executable.

    Args:
        repo_path: Repository directory. None runs git in the current
            working directory.
    """

    def __init__(self, repo_path: Optional[str] = None) -> None:
        self.repo_path = os.path.abspath(repo_path) if repo_path else None

    def _base_args(self) -> List[str]:
        if self.repo_path is None:
            return [GIT_BINARY]
        return [
            GIT_BINARY,
            f"--git-dir={os.path.join(self.repo_path, '.git')}",
            f"--work-tree={self.repo_path}",
        ]

    def run(self, args: Sequence[str], check: bool = True) -> subprocess.CompletedProcess:
        """
        Run one git command and capture its output.

        Args:
            args: Arguments after the binary name.
            check: Raise GitCommandError on a non-zero exit status.

        Raises:
            GitCommandError: If git cannot be started, or exits non-zero
                while check is set.
        """
        command = list(args)
        logger.debug(f"git {' '.join(command)}")
        try:
            proc = subprocess.run(
                self._base_args() + command,
                check=False,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise GitCommandError(f"Cannot run git: {e}", command=command) from e

        if check and proc.returncode != 0:
            stderr = proc.stderr.strip()
            message = stderr or proc.stdout.strip() or f"git {command[0]} failed"
            raise GitCommandError(
                message,
                command=command,
                returncode=proc.returncode,
                stderr=stderr,
            )
        return proc

# -----------------------------------------------------------------------------
# GIT IMPLEMENTATION
# -----------------------------------------------------------------------------

def _lines(output: str) -> List[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


class GitBackend:
    """VersionControlBackend backed by the git command line."""

    def __init__(self, repo_path: Optional[str] = None) -> None:
        self.cli = GitCLI(repo_path)

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    def list_branches(self) -> List[str]:
        out = self.cli.run(["branch", "--format=%(refname:short)"]).stdout
        return _lines(out)

    def list_tags(self) -> List[str]:
        return _lines(self.cli.run(["tag"]).stdout)

    def current_branch(self) -> QualifiedPath:
        """Absolute path of the checked-out branch."""
        name = self.cli.run(["branch", "--show-current"]).stdout.strip()
        if not name:
            raise GitCommandError("HEAD is not on a branch", command=["branch", "--show-current"])
        return QualifiedPath.from_git_branch(name)

    def head_commit(self) -> str:
        return self.cli.run(["rev-parse", "HEAD"]).stdout.strip()

    # -------------------------------------------------------------------------
    # Branches and working tree
    # -------------------------------------------------------------------------

    def checkout(self, path: QualifiedPath) -> None:
        self.cli.run(["checkout", path.to_git_branch()])

    def create_branch(self, path: QualifiedPath, start_point: Optional[str] = None) -> None:
        args = ["branch", path.to_git_branch()]
        if start_point:
            args.append(start_point)
        self.cli.run(args)

    def delete_branch(self, path: QualifiedPath) -> None:
        self.cli.run(["branch", "-D", path.to_git_branch()])

    def merge(self, paths: Sequence[QualifiedPath]) -> MergeResult:
        args = ["merge", "--no-edit"] + [p.to_git_branch() for p in paths]
        proc = self.cli.run(args, check=False)
        return MergeResult(proc.returncode == 0, proc.stdout, proc.stderr)

    def abort_in_progress_merge(self) -> bool:
        """Abort a stopped merge; False if there was none to abort."""
        return self.cli.run(["merge", "--abort"], check=False).returncode == 0

    def merge_in_progress(self) -> bool:
        """True while a stopped merge waits to be concluded."""
        return self.cli.run(["rev-parse", "-q", "--verify", "MERGE_HEAD"], check=False).returncode == 0

    def commit(self, message: str) -> None:
        self.cli.run(["commit", "-m", message])

    def empty_commit(self, message: str) -> None:
        self.cli.run(["commit", "--allow-empty", "-m", message])

    def cherry_pick(self, commit: str) -> MergeResult:
        proc = self.cli.run(["cherry-pick", commit], check=False)
        return MergeResult(proc.returncode == 0, proc.stdout, proc.stderr)

    def abort_cherry_pick(self) -> bool:
        return self.cli.run(["cherry-pick", "--abort"], check=False).returncode == 0

    def reset_hard(self, commit: str) -> None:
        self.cli.run(["reset", "--hard", commit])

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def commit_history(self, branch: QualifiedPath) -> List[Commit]:
        """Commits reachable from branch, newest first, with trimmed messages."""
        out = self.cli.run(["log", "-z", "--format=%H%n%B", branch.to_git_branch()]).stdout
        commits: List[Commit] = []
        for entry in out.split("\0"):
            entry = entry.strip()
            if not entry:
                continue
            commit_hash, _, message = entry.partition("\n")
            commits.append(Commit(commit_hash.strip(), message.strip()))
        return commits

    def files_changed_by(self, commit: str) -> List[str]:
        out = self.cli.run(["diff-tree", "--no-commit-id", "--name-only", "-r", commit]).stdout
        return _lines(out)

    def files_managed_by(self, branch: QualifiedPath) -> List[str]:
        out = self.cli.run(["ls-tree", "-r", "--name-only", branch.to_git_branch()]).stdout
        return _lines(out)

    # -------------------------------------------------------------------------
    # Tags and repository
    # -------------------------------------------------------------------------

    def create_tag(self, path: QualifiedPath) -> None:
        self.cli.run(["tag", path.to_git_branch()])

    def delete_tag(self, path: QualifiedPath) -> None:
        self.cli.run(["tag", "-d", path.to_git_branch()])

    def init(self) -> None:
        if self.cli.repo_path is not None:
            os.makedirs(self.cli.repo_path, exist_ok=True)
        self.cli.run(["init", f"--initial-branch={INITIAL_BRANCH}"])

    def status(self) -> str:
        return self.cli.run(["status"]).stdout

# -----------------------------------------------------------------------------
# MODEL CONSTRUCTION
# -----------------------------------------------------------------------------

def build_model(backend: VersionControlBackend) -> TreeDataModel:
    """
    Build the namespace tree from the backend's branches and tags.

    Branches are inserted first so tags always find their owner. Names that
    do not fit the area/feature/product layout are skipped with a warning.
    """
    model = TreeDataModel()
    for branch in backend.list_branches():
        try:
            model.insert_qualified_path(QualifiedPath.from_git_branch(branch))
        except WrongNodeTypeError as e:
            logger.warning(f"Skipping branch '{branch}': {e}")
    for tag in backend.list_tags():
        try:
            model.insert_qualified_path(QualifiedPath.from_git_branch(tag), is_tag=True)
        except WrongNodeTypeError as e:
            logger.warning(f"Skipping tag '{tag}': {e}")
    logger.debug(f"Namespace model built with {len(model)} nodes")
    return model
