"""One editing session over a document outline.

The session exclusively owns the tree, the expansion mapping and the cursor.
Structural edits go through :class:`node_models.OutlineTree`, the rows are
re-derived from scratch afterwards, and the document tool and the title
editor are only reached through the small collaborator protocols below.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from node_models import NodePath, OutlineNode, OutlineTree
from outline_errors import DocumentLoadFailed, InvalidOperation, MalformedOutline
from outline_io import parse_outline, serialize_outline
from outline_view import (
    ExpansionState,
    ViewRow,
    capture_expansion,
    collapse,
    cursor_first,
    cursor_last,
    cursor_next,
    cursor_parent,
    cursor_prev,
    cursor_step,
    expand,
    expand_all,
    expand_to_level,
    flatten,
    restore_expansion,
    revalidate_cursor,
    row_index,
    toggle_expansion,
    visible_anchor,
)


logger = logging.getLogger(__name__)


class OutlineSource(Protocol):
    def read_outline(self, document: Path) -> str: ...

    def write_outline(self, document: Path, text: str) -> None: ...


class TextEditor(Protocol):
    def edit(self, text: str) -> str: ...


class EditSession:
    def __init__(
        self,
        document: Path,
        tree: OutlineTree,
        *,
        tool: OutlineSource,
        editor: Optional[TextEditor] = None,
    ) -> None:
        self.document = Path(document)
        self.tree = tree
        self.tool = tool
        self.editor = editor
        self.expansion: ExpansionState = {}
        self.selected: Optional[NodePath] = cursor_first(tree, self.expansion)
        self.dirty = False

    @classmethod
    def open(
        cls,
        document: Path,
        *,
        tool: OutlineSource,
        editor: Optional[TextEditor] = None,
    ) -> "EditSession":
        text = tool.read_outline(document)
        try:
            tree = parse_outline(text)
        except MalformedOutline as exc:
            raise DocumentLoadFailed(f"Could not parse the outline of {document}: {exc}") from exc
        logger.info("Loaded %d top-level bookmarks from %s", len(tree.nodes), document)
        return cls(document, tree, tool=tool, editor=editor)

    # Projection ---------------------------------------------------------

    def rows(self) -> List[ViewRow]:
        return flatten(self.tree, self.expansion)

    def selected_node(self) -> Optional[OutlineNode]:
        if self.selected is None:
            return None
        return self.tree.node_at(self.selected)

    def selected_row_index(self) -> Optional[int]:
        return row_index(self.rows(), self.selected)

    def outline_text(self, *, pretty: bool = False) -> str:
        return serialize_outline(self.tree, pretty=pretty)

    # Cursor and expansion ----------------------------------------------

    def select(self, path: Optional[NodePath]) -> None:
        self.selected = visible_anchor(self.tree, self.expansion, path)

    def cursor_down(self) -> None:
        self.selected = cursor_next(self.tree, self.expansion, self.selected)

    def cursor_up(self) -> None:
        self.selected = cursor_prev(self.tree, self.expansion, self.selected)

    def cursor_page(self, offset: int) -> None:
        self.selected = cursor_step(self.tree, self.expansion, self.selected, offset)

    def cursor_parent(self) -> None:
        self.selected = cursor_parent(self.tree, self.expansion, self.selected)

    def cursor_first(self) -> None:
        self.selected = cursor_first(self.tree, self.expansion)

    def cursor_last(self) -> None:
        self.selected = cursor_last(self.tree, self.expansion)

    def toggle(self) -> None:
        self.expansion = toggle_expansion(self.tree, self.expansion, self.selected)

    def expand_selected(self) -> None:
        self.expansion = expand(self.tree, self.expansion, self.selected)

    def collapse_or_parent(self) -> None:
        """Close the selected node, or step out to its parent when already closed."""
        if self.selected is None:
            return
        node = self.tree.node_at(self.selected)
        if node.children and self.expansion.get(self.selected, False):
            self.expansion = collapse(self.tree, self.expansion, self.selected)
        else:
            self.cursor_parent()

    def expand_all(self) -> None:
        self.expansion = expand_all(self.tree)

    def collapse_all(self) -> None:
        self.expansion = {}
        self.selected = visible_anchor(self.tree, self.expansion, self.selected)

    def expand_to_level(self, level: int) -> None:
        self.expansion = expand_to_level(self.tree, level)
        self.selected = visible_anchor(self.tree, self.expansion, self.selected)

    # Structural edits ---------------------------------------------------

    def _require_selection(self) -> NodePath:
        if self.selected is None:
            raise InvalidOperation("No bookmark selected")
        return self.selected

    def _reveal(self, path: NodePath) -> None:
        for length in range(1, len(path)):
            self.expansion[path[:length]] = True

    def _restructure(self, operation: Callable[[NodePath], NodePath]) -> NodePath:
        path = self._require_selection()
        captured = capture_expansion(self.tree, self.expansion)
        new_path = operation(path)
        self.expansion = restore_expansion(self.tree, captured)
        if new_path != path:
            self.dirty = True
        self._reveal(new_path)
        self.selected = new_path
        return new_path

    def move_up(self) -> NodePath:
        return self._restructure(lambda path: self.tree.reorder_sibling(path, "up"))

    def move_down(self) -> NodePath:
        return self._restructure(lambda path: self.tree.reorder_sibling(path, "down"))

    def indent(self) -> NodePath:
        return self._restructure(self.tree.indent)

    def outdent(self) -> NodePath:
        return self._restructure(self.tree.outdent)

    def delete_selected(self) -> OutlineNode:
        path = self._require_selection()
        captured = capture_expansion(self.tree, self.expansion)
        removed = self.tree.delete(path)
        self.expansion = restore_expansion(self.tree, captured)
        self.dirty = True
        self.selected = visible_anchor(self.tree, self.expansion, revalidate_cursor(self.tree, path))
        logger.debug("Deleted %r at %s", removed.title, list(path))
        return removed

    def add_entry_below(self) -> NodePath:
        """Add a placeholder entry after the selection.

        An expanded selection receives it as its first child, anything else
        as its next sibling; an empty outline gets its first entry.
        """
        captured = capture_expansion(self.tree, self.expansion)
        path = self.selected
        if path is None:
            new_path = self.tree.new_sibling_below(())
        elif self.tree.node_at(path).children and self.expansion.get(path, False):
            new_path = self.tree.new_first_child(path)
        else:
            new_path = self.tree.new_sibling_below(path)
        self.expansion = restore_expansion(self.tree, captured)
        self._reveal(new_path)
        self.selected = new_path
        self.dirty = True
        return new_path

    def rename_selected(self, title: str) -> None:
        path = self._require_selection()
        if self.tree.node_at(path).title != title:
            self.tree.rename(path, title)
            self.dirty = True

    def retarget_selected(self, target: str) -> None:
        path = self._require_selection()
        if self.tree.node_at(path).target != target:
            self.tree.retarget(path, target)
            self.dirty = True

    def _editor_round_trip(self, current: str) -> str:
        if self.editor is None:
            raise InvalidOperation("No editor configured")
        return self.editor.edit(current)

    def edit_selected_title(self) -> str:
        """Hand the title to the external editor; EditorAbandoned keeps it as is."""
        path = self._require_selection()
        title = self._editor_round_trip(self.tree.node_at(path).title)
        self.rename_selected(title)
        return title

    def edit_selected_target(self) -> str:
        path = self._require_selection()
        target = self._editor_round_trip(self.tree.node_at(path).target)
        self.retarget_selected(target)
        return target

    # Persistence ----------------------------------------------------------

    def save(self) -> None:
        text = serialize_outline(self.tree)
        self.tool.write_outline(self.document, text)
        self.dirty = False
        logger.info("Saved %d top-level bookmarks to %s", len(self.tree.nodes), self.document)
