"""Row projection of an outline and the cursor moves defined over it.

Everything here is a pure function of the tree, the expansion mapping and
the current cursor path; nothing in this module mutates the tree.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from node_models import NodePath, OutlineNode, OutlineTree, as_path


ExpansionState = Dict[NodePath, bool]


@dataclass(frozen=True)
class ViewRow:
    node_path: NodePath
    depth: int
    has_children: bool
    is_expanded: bool


def flatten(tree: OutlineTree, expansion: Mapping[NodePath, bool]) -> List[ViewRow]:
    """Depth-first rows, descending only into expanded nodes."""
    rows: List[ViewRow] = []
    stack: List[Tuple[NodePath, OutlineNode]] = [
        ((index,), node) for index, node in reversed(list(enumerate(tree.nodes)))
    ]
    while stack:
        path, node = stack.pop()
        has_children = bool(node.children)
        expanded = bool(expansion.get(path, False))
        rows.append(ViewRow(path, len(path) - 1, has_children, expanded))
        if has_children and expanded:
            for index in range(len(node.children) - 1, -1, -1):
                stack.append((path + (index,), node.children[index]))
    return rows


def row_index(rows: Sequence[ViewRow], path: Optional[Sequence[int]]) -> Optional[int]:
    if path is None:
        return None
    path = as_path(path)
    for index, row in enumerate(rows):
        if row.node_path == path:
            return index
    return None


def revalidate_cursor(tree: OutlineTree, path: Optional[Sequence[int]]) -> Optional[NodePath]:
    """Bring a cursor path captured before a mutation back onto the tree."""
    if tree.is_empty():
        return None
    if path is None or not path:
        return (0,)
    path = as_path(path)
    if tree.contains(path):
        return path
    parent = path[:-1]
    while not tree.contains(parent):
        parent = parent[:-1]
    count = tree.num_children(parent)
    if count:
        return parent + (min(path[len(parent)], count - 1),)
    return parent


def visible_anchor(
    tree: OutlineTree, expansion: Mapping[NodePath, bool], path: Optional[Sequence[int]]
) -> Optional[NodePath]:
    """Nearest row that is actually shown for ``path``.

    A node hidden under a collapsed ancestor is represented by the highest
    collapsed ancestor.
    """
    path = revalidate_cursor(tree, path)
    if path is None:
        return None
    for length in range(1, len(path)):
        prefix = path[:length]
        if not expansion.get(prefix, False):
            return prefix
    return path


def cursor_first(tree: OutlineTree, expansion: Mapping[NodePath, bool]) -> Optional[NodePath]:
    return (0,) if tree.nodes else None


def cursor_last(tree: OutlineTree, expansion: Mapping[NodePath, bool]) -> Optional[NodePath]:
    rows = flatten(tree, expansion)
    return rows[-1].node_path if rows else None


def cursor_step(
    tree: OutlineTree,
    expansion: Mapping[NodePath, bool],
    path: Optional[Sequence[int]],
    offset: int,
) -> Optional[NodePath]:
    rows = flatten(tree, expansion)
    if not rows:
        return None
    index = row_index(rows, visible_anchor(tree, expansion, path))
    if index is None:
        return rows[0].node_path
    index = max(0, min(len(rows) - 1, index + offset))
    return rows[index].node_path


def cursor_next(
    tree: OutlineTree, expansion: Mapping[NodePath, bool], path: Optional[Sequence[int]]
) -> Optional[NodePath]:
    return cursor_step(tree, expansion, path, 1)


def cursor_prev(
    tree: OutlineTree, expansion: Mapping[NodePath, bool], path: Optional[Sequence[int]]
) -> Optional[NodePath]:
    return cursor_step(tree, expansion, path, -1)


def cursor_parent(
    tree: OutlineTree, expansion: Mapping[NodePath, bool], path: Optional[Sequence[int]]
) -> Optional[NodePath]:
    anchor = visible_anchor(tree, expansion, path)
    if anchor is None or len(anchor) == 1:
        return anchor
    return anchor[:-1]


def toggle_expansion(
    tree: OutlineTree, expansion: Mapping[NodePath, bool], path: Optional[Sequence[int]]
) -> ExpansionState:
    updated = dict(expansion)
    if path is None or not path or not tree.contains(path):
        return updated
    path = as_path(path)
    if tree.num_children(path):
        updated[path] = not updated.get(path, False)
    return updated


def expand(
    tree: OutlineTree, expansion: Mapping[NodePath, bool], path: Optional[Sequence[int]]
) -> ExpansionState:
    updated = dict(expansion)
    if path and tree.contains(path) and tree.num_children(path):
        updated[as_path(path)] = True
    return updated


def collapse(
    tree: OutlineTree, expansion: Mapping[NodePath, bool], path: Optional[Sequence[int]]
) -> ExpansionState:
    updated = dict(expansion)
    if path:
        updated.pop(as_path(path), None)
    return updated


def expand_all(tree: OutlineTree) -> ExpansionState:
    return {path: True for path, node in tree.walk() if node.children}


def expand_to_level(tree: OutlineTree, level: int) -> ExpansionState:
    """Expand every node above ``level`` so rows down to that depth show."""
    return {path: True for path, node in tree.walk() if node.children and len(path) < level}


def capture_expansion(
    tree: OutlineTree, expansion: Mapping[NodePath, bool]
) -> List[OutlineNode]:
    """Remember which node objects are expanded, ahead of a structural edit."""
    captured: List[OutlineNode] = []
    for path, expanded in expansion.items():
        if expanded and path and tree.contains(path):
            captured.append(tree.node_at(path))
    return captured


def restore_expansion(tree: OutlineTree, captured: Sequence[OutlineNode]) -> ExpansionState:
    """Re-key captured expansion state by the nodes' current paths."""
    wanted = {id(node) for node in captured}
    return {path: True for path, node in tree.walk() if id(node) in wanted}
