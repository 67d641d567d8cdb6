from __future__ import annotations

"""
Version Control Result Models.

Plain value objects returned by the version-control backend.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Commit:
    """
    A commit as seen in the history of a branch.

    Attributes:
        hash: Full object id.
        message: Complete commit message, trimmed.
    """
    hash: str
    message: str = field(default="", compare=False)


@dataclass(frozen=True)
class MergeResult:
    """
    Outcome of an operation that may stop on conflicts (merge, cherry-pick).

    Attributes:
        succeeded: True if git exited cleanly.
        stdout: Captured output stream.
        stderr: Captured error stream.
    """
    succeeded: bool
    stdout: str = ""
    stderr: str = ""
