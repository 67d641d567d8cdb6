from __future__ import annotations

"""
Unit tests for typed Node Paths.

Verifies:
1. Navigation (to, to_last_valid, pre-order iteration).
2. Role wrappers reject nodes of another type.
3. concretize() maps every node type to its wrapper.
4. Tag listing of a node.
"""

import pytest

from tangl.domain.errors import NamespaceError
from tangl.domain.node_path import (
    AreaPath,
    FeaturePath,
    FeatureRootPath,
    NodePath,
    ProductPath,
    ProductRootPath,
    TagPath,
    VirtualRootPath,
)
from tangl.domain.tree_models import TreeDataModel


@pytest.fixture
def model() -> TreeDataModel:
    """Area 'main' with a small feature tree, one product and one tag."""
    m = TreeDataModel()
    for path in (
            "/main",
            "/main/feature/root",
            "/main/feature/root/foo",
            "/main/feature/root/bar",
            "/main/product/p",
    ):
        m.insert_qualified_path(path)
    m.insert_qualified_path("/main/feature/root/v1", is_tag=True)
    return m

# -----------------------------------------------------------------------------
# Navigation
# -----------------------------------------------------------------------------

def test_to_returns_none_for_missing_segment(model: TreeDataModel) -> None:
    root = model.get_virtual_root()
    assert root.to("main/feature/root") is not None
    assert root.to("main/feature/nope") is None


def test_to_skips_directory_markers(model: TreeDataModel) -> None:
    area = model.get_area("main")
    target = area.to("feature/root/")
    assert str(target.get_qualified_path()) == "/main/feature/root"


def test_to_last_valid_stops_at_deepest_existing_node(model: TreeDataModel) -> None:
    root = model.get_virtual_root()
    deepest = root.to_last_valid("main/feature/nope/deeper")
    assert str(deepest.get_qualified_path()) == "/main/feature"


def test_iter_children_req_is_sorted_pre_order(model: TreeDataModel) -> None:
    area = model.get_area("main")
    visited = [str(p.get_qualified_path()) for p in area.iter_children_req()]
    assert visited == [
        "/main/feature",
        "/main/feature/root",
        "/main/feature/root/bar",
        "/main/feature/root/foo",
        "/main/feature/root/v1",
        "/main/product",
        "/main/product/p",
    ]


def test_get_tags(model: TreeDataModel) -> None:
    feature = model.get_node_path("/main/feature/root")
    assert feature.get_tags() == ["v1"]
    assert model.get_node_path("/main/feature/root/foo").get_tags() == []

# -----------------------------------------------------------------------------
# Role wrappers
# -----------------------------------------------------------------------------

def test_wrapper_rejects_wrong_role(model: TreeDataModel) -> None:
    feature = model.get_node_path("/main/feature/root")
    with pytest.raises(NamespaceError):
        AreaPath.of(feature)
    with pytest.raises(NamespaceError):
        ProductPath.of(feature)
    assert isinstance(FeaturePath.of(feature), FeaturePath)


def test_empty_index_chain_is_rejected(model: TreeDataModel) -> None:
    with pytest.raises(NamespaceError):
        NodePath(model, [])


def test_typed_navigation(model: TreeDataModel) -> None:
    area = model.get_virtual_root().to_area("main")
    assert isinstance(area, AreaPath)

    feature_root = area.to_feature_root()
    assert isinstance(feature_root, FeatureRootPath)
    assert isinstance(feature_root.to_feature("root/foo"), FeaturePath)
    assert feature_root.to_feature("nope") is None

    product_root = area.to_product_root()
    assert isinstance(product_root, ProductRootPath)
    assert isinstance(product_root.to_product("p"), ProductPath)

    assert str(area.get_path_to_feature_root()) == "/main/feature"
    assert str(area.get_path_to_product_root()) == "/main/product"


def test_typed_navigation_rejects_tag(model: TreeDataModel) -> None:
    feature_root = model.get_area("main").to_feature_root()
    with pytest.raises(NamespaceError):
        feature_root.to_feature("root/v1")


@pytest.mark.parametrize(
    "path, wrapper",
    [
        ("/main", AreaPath),
        ("/main/feature", FeatureRootPath),
        ("/main/feature/root", FeaturePath),
        ("/main/product", ProductRootPath),
        ("/main/product/p", ProductPath),
        ("/main/feature/root/v1", TagPath),
    ],
)
def test_concretize(model: TreeDataModel, path: str, wrapper: type) -> None:
    assert isinstance(model.get_node_path(path).concretize(), wrapper)


def test_concretize_virtual_root(model: TreeDataModel) -> None:
    assert isinstance(model.get_virtual_root().transform_to_any_type().concretize(), VirtualRootPath)


def test_equality_is_by_model_and_indices(model: TreeDataModel) -> None:
    a = model.get_node_path("/main/feature/root")
    b = FeaturePath.of(a)
    assert a == b
    assert hash(a) == hash(b)
    assert a != model.get_node_path("/main/feature/root/foo")
