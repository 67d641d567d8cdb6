from __future__ import annotations

"""
Namespace Tree Data Models.

Holds the in-memory tree that maps git's flat branch list onto the
area/feature/product hierarchy. Nodes live in an arena (a flat list) and
reference each other by index; index 0 is the synthetic virtual root.
The tree is rebuilt for every invocation and nodes are never removed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple, Union

from tangl.domain.errors import WrongNodeTypeError
from tangl.domain.qualified_path import QualifiedPath

if TYPE_CHECKING:
    from tangl.domain.node_path import AreaPath, NodePath, VirtualRootPath

# -----------------------------------------------------------------------------
# LAYOUT CONSTANTS
# -----------------------------------------------------------------------------

FEATURES_PREFIX = "feature"
PRODUCTS_PREFIX = "product"
ROOT_INDEX = 0

# -----------------------------------------------------------------------------
# STRUCTURAL COMPONENTS
# -----------------------------------------------------------------------------

class NodeType(Enum):
    """Namespace role of a node, fixed by its position in the tree."""
    VIRTUAL_ROOT = "virtual_root"
    AREA = "area"
    FEATURE_ROOT = "feature_root"
    FEATURE = "feature"
    PRODUCT_ROOT = "product_root"
    PRODUCT = "product"
    TAG = "tag"


@dataclass(frozen=True)
class NodeMetadata:
    """
    Backend facts recorded for a node.

    Attributes:
        has_branch: True if a real git branch exists at this path.
    """
    has_branch: bool = False


@dataclass
class Node:
    """
    Arena entry of the namespace tree.

    Attributes:
        name: Segment name (empty for the virtual root).
        node_type: Namespace role.
        metadata: Backend facts (branch existence).
        parent: Arena index of the parent, None for the virtual root.
        children: Mapping of child segment name to arena index.
    """
    name: str
    node_type: NodeType
    metadata: NodeMetadata = field(default_factory=NodeMetadata)
    parent: Optional[int] = None
    children: Dict[str, int] = field(default_factory=dict)

# -----------------------------------------------------------------------------
# CLASSIFICATION RULES
# -----------------------------------------------------------------------------

def classify_node(parent_type: NodeType, name: str, is_tag: bool) -> NodeType:
    """
    Derive the role of a new node from its parent role and its name.

    Args:
        parent_type: Role of the node the new child is attached to.
        name: Segment name of the new child.
        is_tag: True if the child is the leaf of a tag insertion.

    Returns:
        NodeType: Role of the new child.

    Raises:
        WrongNodeTypeError: If the position is not allowed by the layout.
    """
    if parent_type is NodeType.VIRTUAL_ROOT:
        if is_tag:
            raise WrongNodeTypeError(f"Tag '{name}' is not attached to any area")
        return NodeType.AREA

    if parent_type is NodeType.TAG:
        raise WrongNodeTypeError(f"Cannot attach '{name}' below a tag")

    if is_tag:
        return NodeType.TAG

    if parent_type is NodeType.AREA:
        if name == FEATURES_PREFIX:
            return NodeType.FEATURE_ROOT
        if name == PRODUCTS_PREFIX:
            return NodeType.PRODUCT_ROOT
        raise WrongNodeTypeError(
            f"'{name}' is neither '{FEATURES_PREFIX}' nor '{PRODUCTS_PREFIX}'"
        )

    if parent_type in (NodeType.FEATURE_ROOT, NodeType.FEATURE):
        return NodeType.FEATURE
    return NodeType.PRODUCT

# -----------------------------------------------------------------------------
# TREE MODEL
# -----------------------------------------------------------------------------

class TreeDataModel:
    """
    Arena-backed namespace tree plus the list of paths that carry a branch.
    """

    def __init__(self) -> None:
        self._nodes: List[Node] = [Node(name="", node_type=NodeType.VIRTUAL_ROOT)]
        self._paths_with_branch: List[QualifiedPath] = []

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def insert_qualified_path(
            self,
            path: Union[QualifiedPath, str],
            is_tag: bool = False,
    ) -> None:
        """
        Insert a branch or tag path, creating missing nodes on the way.

        Intermediate nodes are created without a branch. Re-inserting an
        existing path is idempotent. The path is validated completely before
        any node is created.

        Args:
            path: Absolute or relative namespace path.
            is_tag: True if the leaf is a git tag rather than a branch.

        Raises:
            WrongNodeTypeError: If any segment lands in a forbidden position.
        """
        segments, current, plan = self._plan_insert(path, is_tag)

        for name, node_type in plan:
            current = self._add_node(current, name, node_type)

        if is_tag:
            return

        self._nodes[current].metadata = NodeMetadata(has_branch=True)
        absolute = QualifiedPath(segments).as_absolute()
        if absolute not in self._paths_with_branch:
            self._paths_with_branch.append(absolute)

    def validate_qualified_path(self, path: Union[QualifiedPath, str], is_tag: bool = False) -> None:
        """Raise WrongNodeTypeError if path could not be inserted; never mutates."""
        self._plan_insert(path, is_tag)

    def _plan_insert(
            self,
            path: Union[QualifiedPath, str],
            is_tag: bool,
    ) -> Tuple[Tuple[str, ...], int, List[Tuple[str, NodeType]]]:
        """
        Walk the existing prefix of path and classify the nodes to create.

        Returns:
            The trimmed segments, the index of the deepest existing node and
            the (name, type) pairs still to be created below it.
        """
        segments = QualifiedPath(path).trim_whitespaces().segments
        if not segments or any(s == "" for s in segments):
            raise WrongNodeTypeError(f"Cannot insert malformed path '{path}'")

        plan: List[Tuple[str, NodeType]] = []
        current = ROOT_INDEX
        current_type = NodeType.VIRTUAL_ROOT
        for depth, name in enumerate(segments):
            is_leaf = depth == len(segments) - 1
            existing = self._nodes[current].children.get(name) if not plan else None
            if existing is not None:
                current_type = self._nodes[existing].node_type
                if current_type is NodeType.TAG and not (is_tag and is_leaf):
                    raise WrongNodeTypeError(f"'{name}' is a tag")
                if is_tag and is_leaf and current_type is not NodeType.TAG:
                    raise WrongNodeTypeError(f"'{name}' is already a {current_type.value} node")
                current = existing
                continue
            current_type = classify_node(current_type, name, is_tag and is_leaf)
            plan.append((name, current_type))
        return segments, current, plan

    def _add_node(self, parent: int, name: str, node_type: NodeType) -> int:
        index = len(self._nodes)
        self._nodes.append(Node(name=name, node_type=node_type, parent=parent))
        self._nodes[parent].children[name] = index
        return index

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def node(self, index: int) -> Node:
        return self._nodes[index]

    def __len__(self) -> int:
        return len(self._nodes)

    def has_branch(self, path: Union[QualifiedPath, str]) -> bool:
        """Linear membership test against the recorded branch paths."""
        target = QualifiedPath(path)
        return any(p == target for p in self._paths_with_branch)

    def get_qualified_paths_with_branches(self) -> List[QualifiedPath]:
        return list(self._paths_with_branch)

    def qualified_path_of(self, indices: Sequence[int]) -> QualifiedPath:
        """Build the absolute path of a chain of node indices."""
        return QualifiedPath([self._nodes[i].name for i in indices])

    # -------------------------------------------------------------------------
    # Navigation entry points
    # -------------------------------------------------------------------------

    def get_virtual_root(self) -> VirtualRootPath:
        from tangl.domain.node_path import VirtualRootPath
        return VirtualRootPath(self, (ROOT_INDEX,))

    def get_area(self, path: Union[QualifiedPath, str]) -> Optional[AreaPath]:
        """Resolve the area named by the first segment of path."""
        first = QualifiedPath(path).trim_whitespaces().first()
        if first is None:
            return None
        return self.get_virtual_root().to_area(first)

    def get_node_path(self, path: Union[QualifiedPath, str]) -> Optional[NodePath]:
        """Resolve a full namespace path, or None if any segment is missing."""
        trimmed = QualifiedPath(path).trim_whitespaces()
        area = self.get_area(trimmed)
        if area is None:
            return None
        return area.to(trimmed.strip_n_left(1))
