from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
import sys
from typing import Callable, Iterable, Optional

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.logging import TextualHandler
from textual.screen import ModalScreen
from textual.widgets import Footer, Header, OptionList, Static
from textual.widgets.option_list import Option
from rich.text import Text

from djvused import DjvusedTool, ExternalEditor
from edit_session import EditSession
from outline_errors import (
    DocumentLoadFailed,
    DocumentSaveFailed,
    EditorAbandoned,
    TreeOperationError,
)
from outline_view import ViewRow
from settings import Settings


logger = logging.getLogger(__name__)

PROG = "djvu-nav-edit"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class OutlineList(OptionList):
    """Option list showing one flattened outline row per option."""


class ConfirmQuitScreen(ModalScreen[bool]):
    """Asks before dropping unsaved outline edits."""

    DEFAULT_CSS = """
    ConfirmQuitScreen {
        align: center middle;
    }

    #confirm-quit-panel {
        width: 56;
        height: auto;
        background: $panel;
        border: round $warning;
        padding: 1 2;
    }

    #confirm-quit-title {
        text-style: bold;
        padding-bottom: 1;
    }
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-quit-panel"):
            yield Static("Unsaved changes", id="confirm-quit-title")
            yield Static("Quit and discard the edited outline? (y/n)")

    def on_key(self, event: events.Key) -> None:
        if event.key in ("y", "q"):
            event.stop()
            self.dismiss(True)
        elif event.key in ("n", "escape"):
            event.stop()
            self.dismiss(False)


class NavEditApp(App[None]):
    """Textual user interface for editing a DjVu bookmark outline."""

    TITLE = PROG

    CSS = """
    #outline-list {
        height: 1fr;
        border: none;
    }
    #outline-empty {
        padding: 1 2;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("q", "quit_editor", "Quit"),
        Binding("w", "save", "Save"),
        Binding("j,down", "cursor_down", "Down", show=False, priority=True),
        Binding("k,up", "cursor_up", "Up", show=False, priority=True),
        Binding("h,left", "collapse_or_parent", "Collapse", show=False, priority=True),
        Binding("l,right", "expand", "Expand", show=False, priority=True),
        Binding("g,home", "cursor_first", "First", show=False, priority=True),
        Binding("G,end", "cursor_last", "Last", show=False, priority=True),
        Binding("pageup", "cursor_page(-1)", "Page up", show=False, priority=True),
        Binding("pagedown", "cursor_page(1)", "Page down", show=False, priority=True),
        Binding("p", "cursor_parent", "Parent", show=False),
        Binding("space", "toggle", "Toggle", priority=True),
        Binding("a", "expand_all", "Expand all"),
        Binding("A", "collapse_all", "Collapse all", show=False),
        Binding("i", "edit_title", "Title"),
        Binding("t", "edit_target", "Target"),
        Binding("o", "add_entry", "New"),
        Binding("d", "delete_entry", "Delete"),
        Binding("K", "move_up", "Move up", show=False),
        Binding("J", "move_down", "Move down", show=False),
        Binding(">", "indent", "Indent"),
        Binding("<", "outdent", "Outdent"),
        Binding("1", "expand_level(1)", "Levels", key_display="1-9"),
    ] + [
        Binding(str(i), f"expand_level({i})", "Levels", show=False)
        for i in range(2, 10)
    ]

    def __init__(self, session: EditSession, *, editor_command: Optional[str] = None) -> None:
        super().__init__()
        self.session = session
        if session.editor is None and editor_command:
            session.editor = ExternalEditor(editor_command, suspend=self.suspend)
        self._outline_list: Optional[OutlineList] = None
        self._rows: list[ViewRow] = []

    def compose(self) -> ComposeResult:
        yield Header()
        outline = OutlineList(id="outline-list")
        self._outline_list = outline
        yield outline
        yield Footer()

    def on_mount(self) -> None:
        self.refresh_rows()
        self.require_list().focus()
        if self.session.tree.is_empty():
            self.show_status("No bookmarks yet. Press o to add one.")
        else:
            self.show_status(f"Loaded {self.session.document.name}")

    def require_list(self) -> OutlineList:
        if self._outline_list is None:
            raise RuntimeError("Outline list not initialised")
        return self._outline_list

    # Rendering -----------------------------------------------------------

    def _format_row(self, row: ViewRow) -> Text:
        node = self.session.tree.node_at(row.node_path)
        if row.has_children:
            marker = "▾ " if row.is_expanded else "▸ "
        else:
            marker = "  "
        label = Text("  " * row.depth)
        label.append(marker, style="bold")
        label.append(node.title or "(untitled)")
        label.append(f"  {node.target}", style="dim italic")
        return label

    def refresh_rows(self) -> None:
        outline = self.require_list()
        self._rows = self.session.rows()
        outline.clear_options()
        outline.add_options([Option(self._format_row(row)) for row in self._rows])
        index = self.session.selected_row_index()
        if index is not None:
            outline.highlighted = index
            outline.scroll_to_highlight()

    def show_status(self, message: str | None = None) -> None:
        count = sum(1 for _ in self.session.tree.walk())
        state = "modified" if self.session.dirty else "saved"
        base = f"{self.session.document.name} · {count} bookmarks · {state}"
        self.sub_title = f"{base} · {message}" if message else base

    # Cursor actions --------------------------------------------------------

    def _navigate(self, move: Callable[[], None]) -> None:
        move()
        self.refresh_rows()

    def action_cursor_down(self) -> None:
        self._navigate(self.session.cursor_down)

    def action_cursor_up(self) -> None:
        self._navigate(self.session.cursor_up)

    def action_cursor_page(self, direction: int) -> None:
        page = max(1, self.require_list().size.height - 1)
        self._navigate(lambda: self.session.cursor_page(direction * page))

    def action_cursor_first(self) -> None:
        self._navigate(self.session.cursor_first)

    def action_cursor_last(self) -> None:
        self._navigate(self.session.cursor_last)

    def action_cursor_parent(self) -> None:
        self._navigate(self.session.cursor_parent)

    def action_collapse_or_parent(self) -> None:
        self._navigate(self.session.collapse_or_parent)

    def action_expand(self) -> None:
        self._navigate(self.session.expand_selected)

    def action_toggle(self) -> None:
        self._navigate(self.session.toggle)

    def action_expand_all(self) -> None:
        self._navigate(self.session.expand_all)

    def action_collapse_all(self) -> None:
        self._navigate(self.session.collapse_all)

    def action_expand_level(self, level: int) -> None:
        self._navigate(lambda: self.session.expand_to_level(level))
        self.show_status(f"Showing {level} level{'s' if level != 1 else ''}")

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        if 0 <= event.option_index < len(self._rows):
            self.session.select(self._rows[event.option_index].node_path)
            self.refresh_rows()

    # Edit actions ----------------------------------------------------------

    def _edit(self, label: str, operation: Callable[[], object]) -> None:
        try:
            operation()
        except TreeOperationError as exc:
            self.bell()
            self.show_status(f"{label} rejected: {exc}")
            return
        self.refresh_rows()
        self.show_status(label)

    def action_move_up(self) -> None:
        self._edit("Moved up", self.session.move_up)

    def action_move_down(self) -> None:
        self._edit("Moved down", self.session.move_down)

    def action_indent(self) -> None:
        self._edit("Indented", self.session.indent)

    def action_outdent(self) -> None:
        self._edit("Outdented", self.session.outdent)

    def action_delete_entry(self) -> None:
        self._edit("Bookmark deleted", self.session.delete_selected)

    def action_add_entry(self) -> None:
        self._edit("Bookmark added", self.session.add_entry_below)

    def _edit_with_editor(self, label: str, operation: Callable[[], str]) -> None:
        try:
            operation()
        except EditorAbandoned as exc:
            self.show_status(f"{label} abandoned: {exc}")
            return
        except TreeOperationError as exc:
            self.bell()
            self.show_status(f"{label} rejected: {exc}")
            return
        finally:
            self.refresh()
        self.refresh_rows()
        self.show_status(f"{label} updated")

    def action_edit_title(self) -> None:
        self._edit_with_editor("Title", self.session.edit_selected_title)

    def action_edit_target(self) -> None:
        self._edit_with_editor("Target", self.session.edit_selected_target)

    def action_save(self) -> None:
        try:
            self.session.save()
        except DocumentSaveFailed as exc:
            logger.warning("Save failed: %s", exc)
            self.bell()
            self.show_status(f"Save failed: {exc}")
            return
        self.show_status(f"Saved to {self.session.document.name}")

    def action_quit_editor(self) -> None:
        if not self.session.dirty:
            self.exit()
            return

        def apply_choice(discard: bool | None) -> None:
            if discard:
                self.exit()
            else:
                self.show_status("Quit cancelled.")

        self.push_screen(ConfirmQuitScreen(), apply_choice)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=PROG, description="Edit the bookmark outline of a DjVu document")
    parser.add_argument("document", type=Path, help="DjVu document whose outline is edited")
    parser.add_argument("--djvused", help="djvused executable (default: $DJVUSED or djvused)")
    parser.add_argument("--editor", help="Command used to edit titles (default: $VISUAL, $EDITOR or vi)")
    parser.add_argument("--log-file", type=Path, help="Write logs to this file")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING)")
    parser.add_argument(
        "--print",
        dest="print_outline",
        action="store_true",
        help="Print the outline and exit instead of opening the editor",
    )
    parser.add_argument(
        "--pretty",
        action="store_true",
        help="With --print, use the indented layout djvused prints",
    )
    return parser


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.WARNING)
    if settings.log_file is not None:
        handler: logging.Handler = logging.FileHandler(settings.log_file, encoding="utf-8")
    else:
        # Routed to the Textual devtools console while the app owns the terminal.
        handler = TextualHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(None if argv is None else list(argv))

    settings = Settings.from_env().with_overrides(
        djvused=args.djvused,
        editor=args.editor,
        log_file=args.log_file,
        log_level=args.log_level,
    )
    configure_logging(settings)

    document: Path = args.document.expanduser()
    if not document.is_file() or not os.access(document, os.R_OK):
        print(f"{PROG}: cannot read {document}", file=sys.stderr)
        return 2

    try:
        session = EditSession.open(document, tool=DjvusedTool(settings.djvused))
    except DocumentLoadFailed as exc:
        logger.error("Failed to load %s: %s", document, exc)
        print(f"{PROG}: {exc}", file=sys.stderr)
        return 1

    if args.print_outline:
        text = session.outline_text(pretty=args.pretty)
        sys.stdout.write(text if text.endswith("\n") else f"{text}\n")
        return 0

    NavEditApp(session, editor_command=settings.editor).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
