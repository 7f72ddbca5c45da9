import pytest

from conftest import SAMPLE_OUTLINE
from node_models import OutlineNode, OutlineTree
from outline_errors import MalformedOutline
from outline_io import (
    OutlineBuilder,
    Token,
    escape_string,
    parse_outline,
    serialize_outline,
    tokenize,
)


def test_parse_two_chapters_with_nested_section():
    tree = parse_outline('(bookmarks ("Ch1" "#1") ("Ch2" "#5" ("S1" "#6")))')

    assert tree == OutlineTree(
        [
            OutlineNode("Ch1", "#1"),
            OutlineNode("Ch2", "#5", [OutlineNode("S1", "#6")]),
        ]
    )


def test_parse_djvused_layout_with_newlines():
    text = (
        "(bookmarks\n"
        ' ("Introduction"\n'
        '  "#21"\n'
        '  ("Historical Sketch"\n'
        '   "#21" )\n'
        '  ("Some terminology and notation"\n'
        '   "#26" ) ) )\n'
    )

    tree = parse_outline(text)

    assert [node.title for node in tree.nodes] == ["Introduction"]
    assert [child.title for child in tree.nodes[0].children] == [
        "Historical Sketch",
        "Some terminology and notation",
    ]
    assert tree.nodes[0].children[1].target == "#26"


def test_empty_bookmark_list_is_an_empty_tree():
    tree = parse_outline("(bookmarks)")

    assert tree.is_empty()
    assert serialize_outline(tree) == "(bookmarks)"


def test_escaped_quotes_round_trip():
    text = '(bookmarks ("A \\"quoted\\" title" "#1"))'

    tree = parse_outline(text)

    assert tree.nodes[0].title == 'A "quoted" title'
    assert serialize_outline(tree) == text


def test_backslashes_are_escaped_and_unescaped():
    tree = parse_outline('(bookmarks ("C:\\\\docs" "#2"))')

    assert tree.nodes[0].title == "C:\\docs"
    assert serialize_outline(tree) == '(bookmarks ("C:\\\\docs" "#2"))'


@pytest.mark.parametrize(
    "text, title",
    [
        ('(bookmarks ("line\\nbreak" "#2"))', "line\nbreak"),
        ('(bookmarks ("col\\tumn\\r" "#2"))', "col\tumn\r"),
        ('(bookmarks ("bell\\a" "#2"))', "bell\a"),
        ('(bookmarks ("esc\\033[1m" "#2"))', "esc\x1b[1m"),
    ],
)
def test_djvused_escapes_load_and_save_unchanged(text, title):
    tree = parse_outline(text)

    assert tree.nodes[0].title == title
    assert serialize_outline(tree) == text


def test_escape_before_ordinary_character_keeps_the_character():
    tree = parse_outline('(bookmarks ("a\\qb" "#2"))')

    assert tree.nodes[0].title == "aqb"
    assert serialize_outline(tree) == '(bookmarks ("aqb" "#2"))'


def test_non_ascii_passes_through_and_literal_newlines_are_accepted():
    tree = parse_outline('(bookmarks ("4.2 CONVEXITY—ALGEBRAIC\nÉtude" "#90"))')

    assert tree.nodes[0].title == "4.2 CONVEXITY—ALGEBRAIC\nÉtude"
    text = serialize_outline(tree)
    assert text == '(bookmarks ("4.2 CONVEXITY—ALGEBRAIC\\nÉtude" "#90"))'
    assert parse_outline(text) == tree


def test_uri_targets_are_opaque():
    tree = parse_outline('(bookmarks ("Web" "https://example.org/?q=\\"x\\""))')

    assert tree.nodes[0].target == 'https://example.org/?q="x"'


def test_serialized_text_is_stable(sample_tree):
    once = serialize_outline(sample_tree)

    assert once == SAMPLE_OUTLINE
    assert serialize_outline(parse_outline(once)) == once
    assert parse_outline(once) == sample_tree


def test_pretty_layout_matches_djvused_and_parses_back(sample_tree):
    small = OutlineTree([OutlineNode("Ch2", "#5", [OutlineNode("S1", "#6")])])

    assert serialize_outline(small, pretty=True) == (
        '(bookmarks\n ("Ch2"\n  "#5"\n  ("S1"\n   "#6" ) ) )\n'
    )
    assert parse_outline(serialize_outline(sample_tree, pretty=True)) == sample_tree
    assert serialize_outline(OutlineTree(), pretty=True) == "(bookmarks )\n"


def test_deep_nesting_does_not_hit_recursion_limit():
    depth = 5000
    text = "(bookmarks" + ' ("x" "#1"' * depth + ")" * depth + ")"

    tree = parse_outline(text)

    node = tree.nodes[0]
    levels = 1
    while node.children:
        node = node.children[0]
        levels += 1
    assert levels == depth
    assert serialize_outline(tree) == text


def test_tokenize_reports_offsets():
    tokens = list(tokenize('(bookmarks ("a" "#1"))'))

    assert tokens[:4] == [
        Token("open", "(", 0),
        Token("symbol", "bookmarks", 1),
        Token("open", "(", 11),
        Token("string", "a", 12),
    ]
    assert tokens[-1] == Token("close", ")", 21)


def test_builder_accepts_tokens_one_at_a_time():
    builder = OutlineBuilder()
    for token in tokenize('(bookmarks ("a" "#1" ("b" "#2"))'):
        builder.feed(token)
        assert not builder.complete
    builder.feed(Token("close", ")", 33))

    assert builder.complete
    assert builder.finish(34).nodes[0].children[0].title == "b"


@pytest.mark.parametrize(
    "text, reason",
    [
        ('(bookmarks ("a" "#1))', "Unterminated string"),
        ('(bookmarks ("a" "#1")', "missing ')'"),
        ('(bookmarks ("a" "#1")))', "unexpected ')'"),
        ('(bookmarks ("only title"))', "missing its target"),
        ('(bookmarks ("a" "#1")) extra', "Trailing content"),
        ('(outline ("a" "#1"))', "Expected 'bookmarks'"),
        ('(bookmarks (#1 "a"))', "quoted bookmark title"),
        ('(bookmarks "stray")', "Unexpected string"),
        ("", "Empty outline"),
        ('(bookmarks ("a"', "end of input"),
    ],
)
def test_malformed_outlines_are_rejected(text, reason):
    with pytest.raises(MalformedOutline) as excinfo:
        parse_outline(text)

    assert reason in str(excinfo.value)


def test_error_location_points_at_offending_token():
    text = '(bookmarks\n ("a" "#1")\n ("b"))'

    with pytest.raises(MalformedOutline) as excinfo:
        parse_outline(text)

    error = excinfo.value
    assert error.offset == text.index('("b")') + 4
    assert error.line == 3
    assert error.column == 6


def test_unterminated_string_reports_its_opening_quote():
    text = '(bookmarks ("a" "#1'

    with pytest.raises(MalformedOutline) as excinfo:
        parse_outline(text)

    assert excinfo.value.offset == text.rindex('"')


def test_error_offset_counts_utf8_bytes():
    text = '(bookmarks ("Étude" "#1") ("b"))'

    with pytest.raises(MalformedOutline) as excinfo:
        parse_outline(text)

    error = excinfo.value
    assert error.offset == len(text[: text.index('("b")') + 4].encode("utf-8"))
    assert error.offset == text.index('("b")') + 5
    assert error.column == text.index('("b")') + 5


def test_escape_string():
    assert escape_string('a"b\\c\td\x01') == 'a\\"b\\\\c\\td\\001'
    assert escape_string("Étude — 1") == "Étude — 1"
