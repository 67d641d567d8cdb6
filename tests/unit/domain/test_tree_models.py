from __future__ import annotations

"""
Unit tests for the Namespace Tree model.

Verifies:
1. Node classification by position (area, feature root, product, tag).
2. Branch bookkeeping for leaves versus intermediate nodes.
3. Rejection of paths that violate the layout, without partial inserts.
4. Resolution of areas and full node paths.
"""

import pytest

from tangl.domain.errors import WrongNodeTypeError
from tangl.domain.qualified_path import QualifiedPath
from tangl.domain.tree_models import NodeType, TreeDataModel, classify_node


def build_model(*paths: str) -> TreeDataModel:
    """Helper to build a model from branch paths."""
    model = TreeDataModel()
    for path in paths:
        model.insert_qualified_path(path)
    return model

# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------

@pytest.mark.parametrize(
    "parent, name, is_tag, expected",
    [
        (NodeType.VIRTUAL_ROOT, "main", False, NodeType.AREA),
        (NodeType.AREA, "feature", False, NodeType.FEATURE_ROOT),
        (NodeType.AREA, "product", False, NodeType.PRODUCT_ROOT),
        (NodeType.FEATURE_ROOT, "root", False, NodeType.FEATURE),
        (NodeType.FEATURE, "child", False, NodeType.FEATURE),
        (NodeType.PRODUCT_ROOT, "p", False, NodeType.PRODUCT),
        (NodeType.PRODUCT, "variant", False, NodeType.PRODUCT),
        (NodeType.FEATURE, "v1", True, NodeType.TAG),
        (NodeType.AREA, "v1", True, NodeType.TAG),
    ],
)
def test_classify_node(parent: NodeType, name: str, is_tag: bool, expected: NodeType) -> None:
    assert classify_node(parent, name, is_tag) is expected


@pytest.mark.parametrize(
    "parent, name, is_tag",
    [
        (NodeType.AREA, "other", False),
        (NodeType.VIRTUAL_ROOT, "v1", True),
        (NodeType.TAG, "x", False),
    ],
)
def test_classify_node_rejects_layout_violations(parent: NodeType, name: str, is_tag: bool) -> None:
    with pytest.raises(WrongNodeTypeError):
        classify_node(parent, name, is_tag)

# -----------------------------------------------------------------------------
# Insertion
# -----------------------------------------------------------------------------

def test_insert_creates_typed_intermediate_nodes() -> None:
    model = build_model("/main/feature/root/foo")

    assert model.get_node_path("/main").get_node_type() is NodeType.AREA
    assert model.get_node_path("/main/feature").get_node_type() is NodeType.FEATURE_ROOT
    assert model.get_node_path("/main/feature/root").get_node_type() is NodeType.FEATURE
    assert model.get_node_path("/main/feature/root/foo").get_node_type() is NodeType.FEATURE


def test_only_leaves_carry_a_branch() -> None:
    model = build_model("/main/feature/root/foo")

    assert model.has_branch("/main/feature/root/foo")
    assert not model.has_branch("/main/feature/root")
    assert not model.get_node_path("/main/feature/root").get_metadata().has_branch
    assert model.get_node_path("/main/feature/root/foo").get_metadata().has_branch


def test_relative_insert_is_recorded_as_absolute() -> None:
    model = build_model("main", "main/product/p")
    assert model.get_qualified_paths_with_branches() == [
        QualifiedPath("/main"),
        QualifiedPath("/main/product/p"),
    ]
    assert model.has_branch("/main/product/p")


def test_insert_is_idempotent() -> None:
    model = build_model("/main/feature/root", "/main/feature/root")
    size = len(model)
    model.insert_qualified_path("/main/feature/root")
    assert len(model) == size
    assert len(model.get_qualified_paths_with_branches()) == 1


def test_inserting_an_intermediate_later_marks_it() -> None:
    model = build_model("/main/feature/root/foo", "/main/feature/root")
    assert model.has_branch("/main/feature/root")
    assert model.get_node_path("/main/feature/root").get_metadata().has_branch


def test_invalid_path_leaves_model_untouched() -> None:
    model = build_model("main")
    size = len(model)

    with pytest.raises(WrongNodeTypeError):
        model.insert_qualified_path("/main/other/x")

    assert len(model) == size
    assert model.get_node_path("/main/other") is None


def test_tags_do_not_carry_branches() -> None:
    model = build_model("/main/feature/root")
    model.insert_qualified_path("/main/feature/root/v1", is_tag=True)

    tag = model.get_node_path("/main/feature/root/v1")
    assert tag.get_node_type() is NodeType.TAG
    assert not model.has_branch("/main/feature/root/v1")


def test_nothing_attaches_below_a_tag() -> None:
    model = build_model("/main/feature/root")
    model.insert_qualified_path("/main/feature/root/v1", is_tag=True)

    with pytest.raises(WrongNodeTypeError):
        model.insert_qualified_path("/main/feature/root/v1/x")


def test_tag_on_virtual_root_is_rejected() -> None:
    with pytest.raises(WrongNodeTypeError):
        TreeDataModel().insert_qualified_path("/v1", is_tag=True)


def test_malformed_path_is_rejected() -> None:
    with pytest.raises(WrongNodeTypeError):
        TreeDataModel().insert_qualified_path("/main//feature")

# -----------------------------------------------------------------------------
# Resolution
# -----------------------------------------------------------------------------

def test_get_area_uses_first_segment() -> None:
    model = build_model("/main/product/p", "/dev")
    assert model.get_area("/main/product/p").get_name() == "main"
    assert model.get_area("dev").get_name() == "dev"
    assert model.get_area("/unknown") is None


def test_get_node_path_missing_segment() -> None:
    model = build_model("/main/feature/root")
    assert model.get_node_path("/main/feature/nope") is None
    assert model.get_node_path("/nope") is None
    assert str(model.get_node_path("/main/feature/root").get_qualified_path()) == "/main/feature/root"


def test_branch_cannot_reuse_a_tag_name() -> None:
    model = build_model("/main/feature/root")
    model.insert_qualified_path("/main/feature/root/v1", is_tag=True)

    with pytest.raises(WrongNodeTypeError):
        model.insert_qualified_path("/main/feature/root/v1")


def test_validate_never_mutates() -> None:
    model = build_model("main")
    size = len(model)

    model.validate_qualified_path("/main/feature/new")
    with pytest.raises(WrongNodeTypeError):
        model.validate_qualified_path("/main/other")

    assert len(model) == size
    assert not model.has_branch("/main/feature/new")


def test_membership_of_sibling_without_branch() -> None:
    model = build_model("/main", "/main/feature/root", "/main/feature/root/foo")
    assert model.has_branch("/main/feature/root/foo")
    assert not model.has_branch("/main/feature/root/bar")


def test_tag_cannot_take_the_place_of_an_existing_node() -> None:
    model = build_model("/main/feature/root", "/main/feature/root/foo")

    with pytest.raises(WrongNodeTypeError):
        model.insert_qualified_path("/main/feature/root/foo", is_tag=True)
    with pytest.raises(WrongNodeTypeError):
        model.validate_qualified_path("/main/feature", is_tag=True)

    assert model.get_node_path("/main/feature/root/foo").get_node_type() is NodeType.FEATURE
