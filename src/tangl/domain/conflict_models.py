from __future__ import annotations

"""
Conflict Check Result Models.

A ConflictStatistic records the outcome of one speculative merge of two or
more paths; ConflictStatistics partitions a batch of them by outcome and is
the contract between the conflict checker and the derivation engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from tangl.domain.qualified_path import QualifiedPath

# -----------------------------------------------------------------------------
# SINGLE RESULT
# -----------------------------------------------------------------------------

class ConflictKind(Enum):
    OK = "OK"
    CONFLICT = "CONFLICT"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ConflictStatistic:
    """
    Outcome of merging a set of paths together.

    Equality and hashing cover the kind and the paths, never the cause.

    Attributes:
        kind: OK, CONFLICT or ERROR.
        paths: The two or more paths that were merged together.
        cause: Backend exception for ERROR results.
    """
    kind: ConflictKind
    paths: Tuple[QualifiedPath, ...]
    cause: Optional[BaseException] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if len(self.paths) < 2:
            raise ValueError("A conflict statistic needs at least two paths")

    @classmethod
    def ok(cls, *paths: QualifiedPath) -> ConflictStatistic:
        return cls(ConflictKind.OK, tuple(paths))

    @classmethod
    def conflict(cls, *paths: QualifiedPath) -> ConflictStatistic:
        return cls(ConflictKind.CONFLICT, tuple(paths))

    @classmethod
    def error(cls, cause: BaseException, *paths: QualifiedPath) -> ConflictStatistic:
        return cls(ConflictKind.ERROR, tuple(paths), cause)

    @property
    def is_ok(self) -> bool:
        return self.kind is ConflictKind.OK

    def __str__(self) -> str:
        joined = " and ".join(str(p) for p in self.paths)
        if self.kind is ConflictKind.ERROR and self.cause is not None:
            return f"{joined} {self.kind.value} ({self.cause})"
        return f"{joined} {self.kind.value}"

# -----------------------------------------------------------------------------
# PARTITIONED COLLECTION
# -----------------------------------------------------------------------------

class ConflictStatistics:
    """Append-only collection of statistics, partitioned by kind."""

    def __init__(self, statistics: Optional[Iterable[ConflictStatistic]] = None) -> None:
        self._partitions: Dict[ConflictKind, List[ConflictStatistic]] = {
            kind: [] for kind in ConflictKind
        }
        for statistic in statistics or ():
            self.push(statistic)

    def push(self, statistic: ConflictStatistic) -> None:
        self._partitions[statistic.kind].append(statistic)

    def iter_ok(self) -> Iterator[ConflictStatistic]:
        return iter(self._partitions[ConflictKind.OK])

    def iter_conflicts(self) -> Iterator[ConflictStatistic]:
        return iter(self._partitions[ConflictKind.CONFLICT])

    def iter_errors(self) -> Iterator[ConflictStatistic]:
        return iter(self._partitions[ConflictKind.ERROR])

    def iter_all(self) -> Iterator[ConflictStatistic]:
        """OK results first, then conflicts, then errors."""
        for kind in ConflictKind:
            yield from self._partitions[kind]

    def n_ok(self) -> int:
        return len(self._partitions[ConflictKind.OK])

    def n_conflict(self) -> int:
        return len(self._partitions[ConflictKind.CONFLICT])

    def n_errors(self) -> int:
        return len(self._partitions[ConflictKind.ERROR])

    def contains(self, statistic: ConflictStatistic) -> bool:
        return statistic in self._partitions[statistic.kind]

    def __contains__(self, statistic: object) -> bool:
        return isinstance(statistic, ConflictStatistic) and self.contains(statistic)

    def __len__(self) -> int:
        return sum(len(p) for p in self._partitions.values())

    def __iter__(self) -> Iterator[ConflictStatistic]:
        return self.iter_all()

    def summary(self) -> Dict[str, int]:
        return {
            "ok": self.n_ok(),
            "conflict": self.n_conflict(),
            "error": self.n_errors(),
        }
