import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Literal, Optional, Tuple

from node_models import OutlineNode, OutlineTree
from outline_errors import MalformedOutline


BOOKMARKS_KEYWORD = "bookmarks"

_WHITESPACE_PATTERN = re.compile(r"\s*")
_SYMBOL_PATTERN = re.compile(r'[^\s()"]+')
_PLAIN_RUN_PATTERN = re.compile(r'[^"\\]+')
_OCTAL_PATTERN = re.compile(r"[0-7]{1,3}")
_NEEDS_ESCAPE_PATTERN = re.compile(r'["\\\x00-\x1f\x7f]')

# C-style escapes djvused writes inside strings.
_ESCAPED_CHARACTERS = {
    '"': '"',
    "\\": "\\",
    "a": "\a",
    "b": "\b",
    "t": "\t",
    "n": "\n",
    "v": "\v",
    "f": "\f",
    "r": "\r",
}
_ESCAPE_LETTERS = {char: letter for letter, char in _ESCAPED_CHARACTERS.items()}


@dataclass(frozen=True)
class Token:
    kind: Literal["open", "close", "string", "symbol"]
    value: str
    offset: int


def _escape_character(match: "re.Match[str]") -> str:
    char = match.group()
    letter = _ESCAPE_LETTERS.get(char)
    if letter is not None:
        return f"\\{letter}"
    return f"\\{ord(char):03o}"


def escape_string(value: str) -> str:
    return _NEEDS_ESCAPE_PATTERN.sub(_escape_character, value)


def _read_string(text: str, start: int) -> Tuple[str, int]:
    """Decode the string whose opening quote sits at ``start``.

    Returns the decoded value and the offset just past the closing quote.
    Understands the C escapes djvused emits (``\\"``, ``\\\\``, ``\\n``,
    ``\\t``, ``\\r`` and friends, octal ``\\ooo``). A backslash before any
    other character is dropped and the character kept, as the C reader does.
    Literal control characters are accepted as they are.
    """
    chunks: List[str] = []
    index = start + 1
    length = len(text)
    while index < length:
        plain = _PLAIN_RUN_PATTERN.match(text, index)
        if plain:
            chunks.append(plain.group())
            index = plain.end()
            continue
        char = text[index]
        if char == '"':
            return "".join(chunks), index + 1
        if index + 1 >= length:
            break
        octal = _OCTAL_PATTERN.match(text, index + 1)
        if octal:
            chunks.append(chr(int(octal.group(), 8)))
            index = octal.end()
            continue
        following = text[index + 1]
        chunks.append(_ESCAPED_CHARACTERS.get(following, following))
        index += 2
    raise MalformedOutline("Unterminated string", start)


def tokenize(text: str) -> Iterator[Token]:
    """Split outline text into tokens, yielding each one as soon as it is complete."""
    offset = 0
    length = len(text)
    while True:
        offset = _WHITESPACE_PATTERN.match(text, offset).end()
        if offset >= length:
            return
        char = text[offset]
        if char == "(":
            yield Token("open", char, offset)
            offset += 1
        elif char == ")":
            yield Token("close", char, offset)
            offset += 1
        elif char == '"':
            value, end = _read_string(text, offset)
            yield Token("string", value, offset)
            offset = end
        else:
            match = _SYMBOL_PATTERN.match(text, offset)
            yield Token("symbol", match.group(), offset)
            offset = match.end()


class OutlineBuilder:
    """Push-style parser: feed it tokens, then call :meth:`finish`.

    Keeps an explicit stack of open child lists, so nesting depth is bounded
    only by memory. Errors carry the offending token's character index; callers
    that hold the full text locate it with :meth:`MalformedOutline.at`.
    """

    def __init__(self) -> None:
        self.tree = OutlineTree()
        self._state: Literal["start", "header", "items", "title", "target", "done"] = "start"
        self._stack: List[List[OutlineNode]] = []
        self._pending_title: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self._state == "done"

    @property
    def depth(self) -> int:
        return len(self._stack)

    def feed(self, token: Token) -> None:
        state = self._state
        if state == "start":
            if token.kind != "open":
                raise MalformedOutline("Expected '(' to open the bookmark list", token.offset)
            self._state = "header"
        elif state == "header":
            if token.kind != "symbol" or token.value != BOOKMARKS_KEYWORD:
                raise MalformedOutline(
                    f"Expected '{BOOKMARKS_KEYWORD}' after the opening '('", token.offset
                )
            self._stack.append(self.tree.nodes)
            self._state = "items"
        elif state == "items":
            if token.kind == "open":
                self._state = "title"
            elif token.kind == "close":
                self._stack.pop()
                if not self._stack:
                    self._state = "done"
            else:
                raise MalformedOutline(f"Unexpected {token.kind} {token.value!r}", token.offset)
        elif state == "title":
            if token.kind != "string":
                raise MalformedOutline("Expected a quoted bookmark title", token.offset)
            self._pending_title = token.value
            self._state = "target"
        elif state == "target":
            if token.kind != "string":
                raise MalformedOutline("Bookmark is missing its target string", token.offset)
            node = OutlineNode(self._pending_title or "", token.value)
            self._pending_title = None
            self._stack[-1].append(node)
            self._stack.append(node.children)
            self._state = "items"
        else:
            if token.kind == "close":
                raise MalformedOutline("Unbalanced parentheses: unexpected ')'", token.offset)
            raise MalformedOutline("Trailing content after the bookmark list", token.offset)

    def finish(self, end_offset: int) -> OutlineTree:
        if self._state == "done":
            return self.tree
        if self._state == "start":
            raise MalformedOutline("Empty outline", end_offset)
        if self._state in ("title", "target"):
            raise MalformedOutline("Unexpected end of input inside a bookmark", end_offset)
        raise MalformedOutline("Unbalanced parentheses: missing ')'", end_offset)


def build_outline(tokens: Iterable[Token], end_offset: int) -> OutlineTree:
    builder = OutlineBuilder()
    for token in tokens:
        builder.feed(token)
    return builder.finish(end_offset)


def parse_outline(text: str) -> OutlineTree:
    """Parse ``djvused`` outline text into an :class:`OutlineTree`."""
    try:
        return build_outline(tokenize(text), len(text))
    except MalformedOutline as exc:
        raise MalformedOutline.at(text, exc.offset, exc.reason) from None


def serialize_outline(tree: OutlineTree, *, pretty: bool = False) -> str:
    """Serialize ``tree`` back to the bookmark grammar.

    The compact form is canonical: parsing it and serializing again yields
    the same bytes. ``pretty=True`` mirrors the indented layout ``djvused``
    prints; it parses back to an equal tree but is not canonical.
    """
    if pretty:
        return _serialize_pretty(tree)
    parts: List[str] = [f"({BOOKMARKS_KEYWORD}"]
    stack: List[Iterator[OutlineNode]] = [iter(tree.nodes)]
    while stack:
        node = next(stack[-1], None)
        if node is None:
            stack.pop()
            parts.append(")")
            continue
        parts.append(f' ("{escape_string(node.title)}" "{escape_string(node.target)}"')
        stack.append(iter(node.children))
    return "".join(parts)


def _serialize_pretty(tree: OutlineTree) -> str:
    parts: List[str] = [f"({BOOKMARKS_KEYWORD}"]
    stack: List[Tuple[Iterator[OutlineNode], int]] = [(iter(tree.nodes), 1)]
    while stack:
        children, depth = stack[-1]
        node = next(children, None)
        if node is None:
            stack.pop()
            parts.append(" )")
            continue
        pad = " " * depth
        parts.append(
            f'\n{pad}("{escape_string(node.title)}"\n{pad} "{escape_string(node.target)}"'
        )
        stack.append((iter(node.children), depth + 1))
    parts.append("\n")
    return "".join(parts)
