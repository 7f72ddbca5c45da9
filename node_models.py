import copy
from dataclasses import dataclass, field
from typing import Iterator, List, Literal, Sequence, Tuple

from outline_errors import CycleRejected, InvalidOperation, PathNotFound


NodePath = Tuple[int, ...]

NEW_ENTRY_TITLE = "New bookmark"
NEW_ENTRY_TARGET = "#1"


@dataclass
class OutlineNode:
    title: str
    # Opaque to the editor: "#12" for a page number, "#page0008.djvu" for a
    # component name, or any other string djvused accepts.
    target: str
    children: List["OutlineNode"] = field(default_factory=list)


def as_path(path: Sequence[int]) -> NodePath:
    return tuple(int(index) for index in path)


@dataclass
class OutlineTree:
    """Top-level bookmark list of a document.

    The tree root is implicit: it has no title or target, only the ordered
    top-level entries. Nodes are addressed by path, the sequence of sibling
    indices leading from the root, and every operation resolves its paths
    against the current shape before touching anything.
    """

    nodes: List[OutlineNode] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.nodes

    def node_at(self, path: Sequence[int]) -> OutlineNode:
        path = as_path(path)
        if not path:
            raise InvalidOperation("The outline root is not a bookmark")
        siblings = self.nodes
        node = None
        for index in path:
            if not 0 <= index < len(siblings):
                raise PathNotFound(path)
            node = siblings[index]
            siblings = node.children
        return node

    def children_of(self, path: Sequence[int]) -> List[OutlineNode]:
        """Return the live child list of ``path`` (the top-level list for ``()``)."""
        if not path:
            return self.nodes
        return self.node_at(path).children

    def num_children(self, path: Sequence[int]) -> int:
        return len(self.children_of(path))

    def contains(self, path: Sequence[int]) -> bool:
        if not path:
            return True
        try:
            self.node_at(path)
        except PathNotFound:
            return False
        return True

    def walk(self) -> Iterator[Tuple[NodePath, OutlineNode]]:
        """Yield ``(path, node)`` pairs in depth-first document order."""
        stack: List[Tuple[NodePath, OutlineNode]] = [
            ((index,), node) for index, node in reversed(list(enumerate(self.nodes)))
        ]
        while stack:
            path, node = stack.pop()
            yield path, node
            for index in range(len(node.children) - 1, -1, -1):
                stack.append((path + (index,), node.children[index]))

    def copy(self) -> "OutlineTree":
        return copy.deepcopy(self)

    # Structural edits -------------------------------------------------

    def insert(self, parent_path: Sequence[int], index: int, node: OutlineNode) -> NodePath:
        siblings = self.children_of(parent_path)
        if index < 0:
            raise InvalidOperation(f"Negative insertion index {index}")
        index = min(index, len(siblings))
        siblings.insert(index, node)
        return as_path(parent_path) + (index,)

    def delete(self, path: Sequence[int]) -> OutlineNode:
        path = as_path(path)
        if not path:
            raise InvalidOperation("Cannot delete the outline root")
        self.node_at(path)
        return self.children_of(path[:-1]).pop(path[-1])

    def move(self, path: Sequence[int], new_parent_path: Sequence[int], new_index: int) -> NodePath:
        """Re-attach the subtree at ``path`` under ``new_parent_path``.

        ``new_parent_path`` is read in the coordinates of the tree as it is
        before the move; ``new_index`` is the final position among the new
        parent's children, appended when past the end. Returns the moved
        node's new path. Nothing changes unless every check passes.
        """
        path = as_path(path)
        destination = as_path(new_parent_path)
        if not path:
            raise InvalidOperation("Cannot move the outline root")
        self.node_at(path)
        if destination[: len(path)] == path:
            raise CycleRejected(path, destination)
        self.children_of(destination)
        if new_index < 0:
            raise InvalidOperation(f"Negative insertion index {new_index}")

        parent = path[:-1]
        depth = len(parent)
        # Detaching the node shifts its later siblings one slot to the left.
        if (
            len(destination) > depth
            and destination[:depth] == parent
            and destination[depth] > path[-1]
        ):
            destination = destination[:depth] + (destination[depth] - 1,) + destination[depth + 1 :]

        node = self.children_of(parent).pop(path[-1])
        siblings = self.children_of(destination)
        index = min(new_index, len(siblings))
        siblings.insert(index, node)
        return destination + (index,)

    def rename(self, path: Sequence[int], new_title: str) -> None:
        self.node_at(path).title = new_title

    def retarget(self, path: Sequence[int], new_target: str) -> None:
        self.node_at(path).target = new_target

    def reorder_sibling(self, path: Sequence[int], direction: Literal["up", "down"]) -> NodePath:
        path = as_path(path)
        if direction not in ("up", "down"):
            raise InvalidOperation(f"Unknown direction {direction!r}")
        self.node_at(path)
        offset = -1 if direction == "up" else 1
        target = path[-1] + offset
        if not 0 <= target < self.num_children(path[:-1]):
            return path
        return self.move(path, path[:-1], target)

    def indent(self, path: Sequence[int]) -> NodePath:
        """Make the node the last child of its preceding sibling."""
        path = as_path(path)
        self.node_at(path)
        if path[-1] == 0:
            return path
        previous = path[:-1] + (path[-1] - 1,)
        return self.move(path, previous, self.num_children(previous))

    def outdent(self, path: Sequence[int]) -> NodePath:
        """Promote the node to sit right after its current parent."""
        path = as_path(path)
        self.node_at(path)
        if len(path) == 1:
            return path
        parent = path[:-1]
        return self.move(path, parent[:-1], parent[-1] + 1)

    def new_sibling_below(self, path: Sequence[int]) -> NodePath:
        path = as_path(path)
        entry = OutlineNode(NEW_ENTRY_TITLE, NEW_ENTRY_TARGET)
        if not path:
            return self.insert((), len(self.nodes), entry)
        self.node_at(path)
        return self.insert(path[:-1], path[-1] + 1, entry)

    def new_first_child(self, path: Sequence[int]) -> NodePath:
        return self.insert(path, 0, OutlineNode(NEW_ENTRY_TITLE, NEW_ENTRY_TARGET))
