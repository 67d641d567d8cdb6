from __future__ import annotations

"""
Node Path Filtering.

Composable predicates over streams of NodePath values. Every filter maps a
path to itself (kept) or None (dropped); transform() applies a filter
lazily to an iterable, and ChainingFilter short-circuits on the first drop.
"""

from enum import Enum
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from tangl.domain.node_path import NodePath
from tangl.domain.qualified_path import QualifiedPath

# -----------------------------------------------------------------------------
# BASE
# -----------------------------------------------------------------------------

class NodePathFilter:
    """Base class; subclasses implement apply()."""

    def apply(self, node_path: NodePath) -> Optional[NodePath]:
        raise NotImplementedError

    def transform(self, node_paths: Iterable[NodePath]) -> Iterator[NodePath]:
        for node_path in node_paths:
            result = self.apply(node_path)
            if result is not None:
                yield result

# -----------------------------------------------------------------------------
# CONCRETE FILTERS
# -----------------------------------------------------------------------------

class HasBranchFilter(NodePathFilter):
    """Keep paths whose has_branch flag equals the configured value."""

    def __init__(self, has_branch: bool) -> None:
        self.has_branch = has_branch

    def apply(self, node_path: NodePath) -> Optional[NodePath]:
        if node_path.get_metadata().has_branch == self.has_branch:
            return node_path
        return None


class FilterMode(Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"


class ByPathFilter(NodePathFilter):
    """
    Keep (INCLUDE) or drop (EXCLUDE) paths listed by absolute qualified path.

    Args:
        paths: Absolute qualified paths to match.
        mode: Whether matches are kept or dropped.
    """

    def __init__(
            self,
            paths: Sequence[Union[QualifiedPath, str]],
            mode: FilterMode = FilterMode.INCLUDE,
    ) -> None:
        self.paths: List[QualifiedPath] = [QualifiedPath(p) for p in paths]
        self.mode = mode

    def apply(self, node_path: NodePath) -> Optional[NodePath]:
        listed = node_path.get_qualified_path() in self.paths
        if listed == (self.mode is FilterMode.INCLUDE):
            return node_path
        return None


class ChainingFilter(NodePathFilter):
    """Apply filters in order; a path survives only if every filter keeps it."""

    def __init__(self, filters: Sequence[NodePathFilter]) -> None:
        self.filters = list(filters)

    def apply(self, node_path: NodePath) -> Optional[NodePath]:
        result: Optional[NodePath] = node_path
        for node_filter in self.filters:
            result = node_filter.apply(result)
            if result is None:
                return None
        return result
