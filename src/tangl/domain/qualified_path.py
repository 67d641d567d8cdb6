from __future__ import annotations

"""
Qualified Path Algebra.

A QualifiedPath is the hierarchical address of a node in the namespace tree.
It behaves like a POSIX path: an empty first segment marks an absolute path,
an empty last segment marks a directory reference, and '.'/'..' are resolved
by the '+' operator. Git has no branch hierarchy, so every segment but the
last is prefixed with a marker character when the path is written as a
branch name.
"""

from typing import Iterable, Iterator, List, Optional, Tuple, Union, overload

# -----------------------------------------------------------------------------
# CONSTANTS
# -----------------------------------------------------------------------------

SEPARATOR = "/"
BRANCH_MARKER = "_"

# Characters that only exist in the branch form and never inside a segment
_RESERVED_CHARS: Tuple[str, ...] = ("*", BRANCH_MARKER)

PathLike = Union["QualifiedPath", str]


def _split(raw: str) -> Tuple[str, ...]:
    """Strip reserved characters and split a raw string into segments."""
    cleaned = raw
    for char in _RESERVED_CHARS:
        cleaned = cleaned.replace(char, "")
    return tuple(cleaned.strip().split(SEPARATOR))

# -----------------------------------------------------------------------------
# VALUE TYPE
# -----------------------------------------------------------------------------

class QualifiedPath:
    """
    Immutable, ordered sequence of path segments.

    Construction never fails. Strings are parsed (reserved marker characters
    are dropped, so branch names can be passed directly), iterables are
    parsed element by element and other paths are copied.
    """

    __slots__ = ("_segments",)

    def __init__(self, value: Union[None, PathLike, Iterable[str]] = None) -> None:
        segments: Tuple[str, ...] = ()
        if isinstance(value, QualifiedPath):
            segments = value._segments
        elif isinstance(value, str):
            segments = _split(value)
        elif value is not None:
            parts: List[str] = []
            for item in value:
                parts.extend(_split(item))
            segments = tuple(parts)
        self._segments = segments

    @classmethod
    def _from_segments(cls, segments: Iterable[str]) -> QualifiedPath:
        path = cls()
        path._segments = tuple(segments)
        return path

    @classmethod
    def from_git_branch(cls, branch: str) -> QualifiedPath:
        """
        Parse a git branch name into its absolute namespace path.

        Args:
            branch: Branch name in marker form, e.g. '_main/_feature/root'.

        Returns:
            QualifiedPath: Absolute path, e.g. '/main/feature/root'.
        """
        return cls("").push(branch)

    # -------------------------------------------------------------------------
    # Construction by combination
    # -------------------------------------------------------------------------

    def push(self, segment: str) -> QualifiedPath:
        """Return a new path with the '/'-separated parts of segment appended."""
        return QualifiedPath._from_segments(self._segments + _split(segment))

    def __add__(self, rhs: PathLike) -> QualifiedPath:
        """
        Resolve rhs against self as the current directory.

        '.' is a no-op, '..' pops one segment (never below zero), an absolute
        rhs replaces self and an empty final segment keeps the result a
        directory reference.
        """
        other = rhs if isinstance(rhs, QualifiedPath) else QualifiedPath(rhs)
        result = list(self._segments)
        if len(result) > 1 and result[-1] == "":
            result.pop()

        parts = other._segments
        for i, part in enumerate(parts):
            if part == ".":
                continue
            if part == "..":
                if result:
                    result.pop()
                continue
            if part == "":
                if i == 0 and len(parts) > 1:
                    return other
                if i == len(parts) - 1 or not result:
                    result.append(part)
                continue
            result.append(part)
        return QualifiedPath._from_segments(result)

    def insert(self, index: int, segment: str) -> QualifiedPath:
        new_segments = list(self._segments)
        new_segments.insert(index, segment)
        return QualifiedPath._from_segments(new_segments)

    # -------------------------------------------------------------------------
    # Slicing
    # -------------------------------------------------------------------------

    def strip_n(self, n_left: int, n_right: int) -> QualifiedPath:
        """Keep the segments in the half-open range [n_left, n_right)."""
        return QualifiedPath._from_segments(self._segments[n_left:n_right])

    def strip_n_left(self, n: int) -> QualifiedPath:
        """Drop the first n segments."""
        return self.strip_n(n, len(self._segments))

    def strip_n_right(self, n: int) -> QualifiedPath:
        """Keep only the first n segments."""
        return self.strip_n(0, n)

    def trim_whitespaces(self) -> QualifiedPath:
        """Drop the absolute marker and the directory marker, if present."""
        segments = list(self._segments)
        if segments and segments[0] == "":
            segments.pop(0)
        if segments and segments[-1] == "":
            segments.pop()
        return QualifiedPath._from_segments(segments)

    def as_dir(self) -> QualifiedPath:
        return QualifiedPath._from_segments(self._segments + ("",))

    def as_absolute(self) -> QualifiedPath:
        return QualifiedPath._from_segments(("",) + self._segments)

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    @property
    def segments(self) -> Tuple[str, ...]:
        return self._segments

    def first(self) -> Optional[QualifiedPath]:
        if not self._segments:
            return None
        return QualifiedPath._from_segments(self._segments[:1])

    def last(self) -> Optional[str]:
        if not self._segments:
            return None
        return self._segments[-1]

    def get(self, index: int) -> Optional[QualifiedPath]:
        if not 0 <= index < len(self._segments):
            return None
        return QualifiedPath._from_segments((self._segments[index],))

    def iter_paths(self) -> Iterator[QualifiedPath]:
        """Yield every segment as a single-segment path."""
        for segment in self._segments:
            yield QualifiedPath._from_segments((segment,))

    def starts_with(self, prefix: PathLike) -> bool:
        return str(self).startswith(str(prefix))

    def is_empty(self) -> bool:
        return not self._segments

    def is_dir(self) -> bool:
        return len(self._segments) > 1 and self._segments[-1] == ""

    def is_absolute(self) -> bool:
        return len(self._segments) > 0 and self._segments[0] == ""

    def to_git_branch(self) -> str:
        """
        Render the path in git's flat branch form.

        Every segment except the last gets the marker prefix, so
        '/main/feature/root' becomes '_main/_feature/root'.
        """
        segments = self.trim_whitespaces()._segments
        if not segments:
            return ""
        prefixed = [BRANCH_MARKER + s for s in segments[:-1]]
        prefixed.append(segments[-1])
        return SEPARATOR.join(prefixed)

    # -------------------------------------------------------------------------
    # Python protocol
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[str]:
        return iter(self._segments)

    @overload
    def __getitem__(self, index: int) -> str: ...

    @overload
    def __getitem__(self, index: slice) -> QualifiedPath: ...

    def __getitem__(self, index: Union[int, slice]) -> Union[str, QualifiedPath]:
        if isinstance(index, slice):
            return QualifiedPath._from_segments(self._segments[index])
        return self._segments[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, QualifiedPath):
            return self._segments == other._segments
        if isinstance(other, str):
            return str(self) == other
        return NotImplemented

    def __hash__(self) -> int:
        # Consistent with equality against plain strings
        return hash(SEPARATOR.join(self._segments))

    def __lt__(self, other: QualifiedPath) -> bool:
        return self._segments < other._segments

    def __str__(self) -> str:
        return SEPARATOR.join(self._segments)

    def __repr__(self) -> str:
        return f"QualifiedPath({str(self)!r})"
