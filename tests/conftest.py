from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple
import sys

import pytest

# Ensure project root is on sys.path for absolute imports
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from node_models import OutlineNode, OutlineTree
from outline_errors import DocumentSaveFailed, EditorAbandoned


SAMPLE_OUTLINE = (
    '(bookmarks ("Preface" "#3") '
    '("Chapter 1" "#5" ("Section 1.1" "#6" ("Lemma" "#7")) ("Section 1.2" "#9")) '
    '("Chapter 2" "#15"))'
)


class FakeTool:
    """Stands in for djvused: serves fixed text and records writes."""

    def __init__(self, text: str = SAMPLE_OUTLINE, *, fail_save: bool = False) -> None:
        self.text = text
        self.fail_save = fail_save
        self.writes: List[Tuple[Path, str]] = []

    def read_outline(self, document: Path) -> str:
        return self.text

    def write_outline(self, document: Path, text: str) -> None:
        if self.fail_save:
            raise DocumentSaveFailed("djvused could not write", returncode=10, stderr="read-only")
        self.writes.append((document, text))


class FakeEditor:
    """Returns a canned answer, or abandons the edit when ``result`` is None."""

    def __init__(self, result: Optional[str]) -> None:
        self.result = result
        self.seen: List[str] = []

    def edit(self, text: str) -> str:
        self.seen.append(text)
        if self.result is None:
            raise EditorAbandoned("Editor exited with status 1", returncode=1)
        return self.result


@pytest.fixture
def sample_tree() -> OutlineTree:
    return OutlineTree(
        [
            OutlineNode("Preface", "#3"),
            OutlineNode(
                "Chapter 1",
                "#5",
                [
                    OutlineNode("Section 1.1", "#6", [OutlineNode("Lemma", "#7")]),
                    OutlineNode("Section 1.2", "#9"),
                ],
            ),
            OutlineNode("Chapter 2", "#15"),
        ]
    )


@pytest.fixture
def fake_tool() -> FakeTool:
    return FakeTool()
