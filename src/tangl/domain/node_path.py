from __future__ import annotations

"""
Typed Node Paths.

A NodePath is a non-empty chain of arena indices from the virtual root to a
target node. Generic navigation returns untyped NodePath values; the role
wrappers (AreaPath, FeaturePath, ...) can only be built through their
validating constructor, so a wrong role is reported where the path enters
role-specific code instead of deep inside a call chain. concretize() is the
single place where the runtime NodeType is turned back into a wrapper.
"""

from typing import TYPE_CHECKING, ClassVar, Dict, FrozenSet, Iterator, List, Optional, Sequence, Type, TypeVar, Union

from tangl.domain.errors import NamespaceError
from tangl.domain.qualified_path import QualifiedPath
from tangl.domain.tree_models import (
    FEATURES_PREFIX,
    PRODUCTS_PREFIX,
    Node,
    NodeMetadata,
    NodeType,
)

if TYPE_CHECKING:
    from tangl.domain.tree_models import TreeDataModel

P = TypeVar("P", bound="NodePath")

PathArg = Union[QualifiedPath, str]

# -----------------------------------------------------------------------------
# GENERIC NODE PATH
# -----------------------------------------------------------------------------

class NodePath:
    """
    Chain of node indices starting at the virtual root.

    Subclasses narrow EXPECTED_TYPES; the constructor rejects chains whose
    target node has another role.
    """

    EXPECTED_TYPES: ClassVar[Optional[FrozenSet[NodeType]]] = None

    __slots__ = ("_model", "_indices")

    def __init__(self, model: TreeDataModel, indices: Sequence[int]) -> None:
        if not indices:
            raise NamespaceError("A node path needs at least one node")
        self._model = model
        self._indices = tuple(indices)

        expected = self.EXPECTED_TYPES
        if expected is not None and self.get_node_type() not in expected:
            wanted = ", ".join(sorted(t.value for t in expected))
            raise NamespaceError(
                f"'{self.get_qualified_path()}' is a {self.get_node_type().value}, "
                f"expected {wanted}"
            )

    @classmethod
    def of(cls: Type[P], other: NodePath) -> P:
        """Re-wrap another node path, validating the role."""
        return cls(other._model, other._indices)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def model(self) -> TreeDataModel:
        return self._model

    @property
    def indices(self) -> tuple:
        return self._indices

    def get_node(self) -> Node:
        return self._model.node(self._indices[-1])

    def get_node_type(self) -> NodeType:
        return self.get_node().node_type

    def get_metadata(self) -> NodeMetadata:
        return self.get_node().metadata

    def get_name(self) -> str:
        return self.get_node().name

    def get_qualified_path(self) -> QualifiedPath:
        return self._model.qualified_path_of(self._indices)

    def transform_to_any_type(self) -> NodePath:
        return NodePath(self._model, self._indices)

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def to(self, path: PathArg) -> Optional[NodePath]:
        """
        Walk down the children named by path.

        Empty segments (directory markers) are skipped.

        Returns:
            Optional[NodePath]: Untyped path to the target, or None as soon
            as a segment does not exist.
        """
        indices: List[int] = list(self._indices)
        for segment in QualifiedPath(path):
            if segment == "":
                continue
            child = self._model.node(indices[-1]).children.get(segment)
            if child is None:
                return None
            indices.append(child)
        return NodePath(self._model, indices)

    def to_last_valid(self, path: PathArg) -> NodePath:
        """Walk as far as possible and return the deepest reachable node."""
        current = self.transform_to_any_type()
        for part in QualifiedPath(path).iter_paths():
            following = current.to(part)
            if following is None:
                break
            current = following
        return current

    def iter_children(self) -> Iterator[NodePath]:
        """Yield direct children ordered by name."""
        children = self.get_node().children
        for name in sorted(children):
            yield NodePath(self._model, self._indices + (children[name],))

    def iter_children_req(self) -> Iterator[NodePath]:
        """Yield all descendants in pre-order."""
        for child in self.iter_children():
            yield child
            yield from child.iter_children_req()

    def get_tags(self) -> List[QualifiedPath]:
        """Names of the tags directly attached to this node."""
        return [
            QualifiedPath(child.get_name())
            for child in self.iter_children()
            if child.get_node_type() is NodeType.TAG
        ]

    def display_tree(self, show_tags: bool = False) -> str:
        from tangl.core.tree_renderer import render_tree
        return render_tree(self, show_tags)

    def concretize(self) -> NodePathVariant:
        """Return the role wrapper matching the runtime node type."""
        return _ROLE_BY_TYPE[self.get_node_type()].of(self)

    # -------------------------------------------------------------------------
    # Python protocol
    # -------------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NodePath):
            return NotImplemented
        return self._model is other._model and self._indices == other._indices

    def __hash__(self) -> int:
        return hash(self._indices)

    def __len__(self) -> int:
        return len(self._indices)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.get_qualified_path())!r})"

# -----------------------------------------------------------------------------
# ROLE WRAPPERS
# -----------------------------------------------------------------------------

class _FeatureNavigation(NodePath):
    __slots__ = ()

    def to_feature(self, path: PathArg) -> Optional[FeaturePath]:
        """Resolve a descendant feature; NamespaceError if it is not one."""
        target = self.to(path)
        if target is None:
            return None
        return FeaturePath.of(target)


class _ProductNavigation(NodePath):
    __slots__ = ()

    def to_product(self, path: PathArg) -> Optional[ProductPath]:
        """Resolve a descendant product; NamespaceError if it is not one."""
        target = self.to(path)
        if target is None:
            return None
        return ProductPath.of(target)


class VirtualRootPath(NodePath):
    EXPECTED_TYPES = frozenset({NodeType.VIRTUAL_ROOT})
    __slots__ = ()

    def to_area(self, area: PathArg) -> Optional[AreaPath]:
        target = self.to(area)
        if target is None:
            return None
        return AreaPath.of(target)


class AreaPath(NodePath):
    EXPECTED_TYPES = frozenset({NodeType.AREA})
    __slots__ = ()

    def get_path_to_feature_root(self) -> QualifiedPath:
        return self.get_qualified_path() + FEATURES_PREFIX

    def get_path_to_product_root(self) -> QualifiedPath:
        return self.get_qualified_path() + PRODUCTS_PREFIX

    def to_feature_root(self) -> Optional[FeatureRootPath]:
        target = self.to(FEATURES_PREFIX)
        if target is None:
            return None
        return FeatureRootPath.of(target)

    def to_product_root(self) -> Optional[ProductRootPath]:
        target = self.to(PRODUCTS_PREFIX)
        if target is None:
            return None
        return ProductRootPath.of(target)


class FeatureRootPath(_FeatureNavigation):
    EXPECTED_TYPES = frozenset({NodeType.FEATURE_ROOT})
    __slots__ = ()


class FeaturePath(_FeatureNavigation):
    EXPECTED_TYPES = frozenset({NodeType.FEATURE})
    __slots__ = ()


class ProductRootPath(_ProductNavigation):
    EXPECTED_TYPES = frozenset({NodeType.PRODUCT_ROOT})
    __slots__ = ()


class ProductPath(_ProductNavigation):
    EXPECTED_TYPES = frozenset({NodeType.PRODUCT})
    __slots__ = ()


class TagPath(NodePath):
    EXPECTED_TYPES = frozenset({NodeType.TAG})
    __slots__ = ()


NodePathVariant = Union[
    VirtualRootPath,
    AreaPath,
    FeatureRootPath,
    FeaturePath,
    ProductRootPath,
    ProductPath,
    TagPath,
]

_ROLE_BY_TYPE: Dict[NodeType, Type[NodePath]] = {
    NodeType.VIRTUAL_ROOT: VirtualRootPath,
    NodeType.AREA: AreaPath,
    NodeType.FEATURE_ROOT: FeatureRootPath,
    NodeType.FEATURE: FeaturePath,
    NodeType.PRODUCT_ROOT: ProductRootPath,
    NodeType.PRODUCT: ProductPath,
    NodeType.TAG: TagPath,
}

if set(_ROLE_BY_TYPE) != set(NodeType):
    raise RuntimeError("Every NodeType needs a role wrapper")
