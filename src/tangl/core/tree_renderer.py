from __future__ import annotations

"""
Tree Renderer.

Converts a namespace subtree into an ASCII representation using the usual
connectors (├──, └──). Nodes without a branch of their own are printed in
parentheses; tags are only listed on request.
"""

from typing import List

from tangl.domain.node_path import NodePath
from tangl.domain.tree_models import NodeType

# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def render_tree(node_path: NodePath, show_tags: bool = False) -> str:
    """
    Render the subtree rooted at node_path.

    Args:
        node_path: Root of the subtree; the virtual root renders as '/'.
        show_tags: Include tag leaves, marked with '[tag]'.

    Returns:
        str: Multi-line tree, one node per line.
    """
    lines: List[str] = [_label(node_path)]
    render_tree_structure(node_path, lines, show_tags=show_tags)
    return "\n".join(lines)


def render_tree_structure(
        node_path: NodePath,
        lines: List[str],
        prefix: str = "",
        show_tags: bool = False,
) -> None:
    """
    Recursively append the children of node_path to lines.

    Args:
        node_path: Current node.
        lines: Accumulator list for output strings.
        prefix: Indentation prefix for the current recursion level.
        show_tags: Include tag leaves.
    """
    children = [
        child for child in node_path.iter_children()
        if show_tags or child.get_node_type() is not NodeType.TAG
    ]
    total = len(children)

    for i, child in enumerate(children):
        is_last = (i == total - 1)
        connector = "└── " if is_last else "├── "
        lines.append(f"{prefix}{connector}{_label(child)}")
        new_prefix = prefix + ("    " if is_last else "│   ")
        render_tree_structure(child, lines, prefix=new_prefix, show_tags=show_tags)

# -----------------------------------------------------------------------------
# PRIVATE HELPERS
# -----------------------------------------------------------------------------

def _label(node_path: NodePath) -> str:
    node_type = node_path.get_node_type()
    if node_type is NodeType.VIRTUAL_ROOT:
        return "/"
    name = node_path.get_name()
    if node_type is NodeType.TAG:
        return f"{name} [tag]"
    if not node_path.get_metadata().has_branch:
        return f"({name})"
    return name
