"""Tests for the tag scanner.

The scanner only emits tags from plain text; inside `{...}` regions it
tracks strings, comments and nesting so that comparison operators and quoted
braces never produce tokens.
"""

import pytest

from glassc.scanner import (CODE, INTERPOLATION, BraceRegion, LexicalError,
                            Tag, TagScanner, classify_brace_source,
                            match_tags, scan, scan_tags)


def test_simple_tags():
    """Opening and closing tags with offsets"""
    text = "<System>hi</System>"
    tags = scan_tags(text)
    assert [(t.name, t.is_closing) for t in tags] == [("System", False), ("System", True)]
    assert tags[0].start == 0
    assert tags[0].end == 8
    assert tags[1].start == 10
    assert text[tags[1].start : tags[1].end] == "</System>"


def test_self_closing_tag_with_attributes():
    """Quoted attribute values are unquoted"""
    tags = scan_tags('<Request model="gpt-4" />')
    assert len(tags) == 1
    assert tags[0].is_self_closing
    assert tags[0].attributes == {"model": "gpt-4"}


def test_expression_attribute():
    """Brace attribute values keep their source text"""
    tag = scan_tags('<For each={examples} as="example">')[0]
    assert tag.attributes == {"each": "examples", "as": "example"}
    assert not tag.is_self_closing


def test_boolean_attribute():
    tag = scan_tags("<User cached>")[0]
    assert tag.attributes == {"cached": True}


def test_comparison_operators_inside_braces():
    """`<` and `>` inside an interpolation are not tags"""
    tokens = list(scan("{a < b ? x : y} <User>"))
    assert isinstance(tokens[0], BraceRegion)
    assert tokens[0].source == "a < b ? x : y"
    assert tokens[0].kind == INTERPOLATION
    assert [t.name for t in tokens if isinstance(t, Tag)] == ["User"]


def test_brace_inside_string_literal():
    """A quoted closing brace does not end the region"""
    tokens = list(scan('{say("}")} after'))
    assert len(tokens) == 1
    assert tokens[0].source == 'say("}")'


def test_tag_inside_string_literal():
    assert scan_tags('{"<System>"}') == []


def test_comment_inside_code():
    """Line comments hide braces and tags"""
    text = "{\n  // <User> }\n  x\n}"
    tokens = list(scan(text))
    assert len(tokens) == 1
    assert isinstance(tokens[0], BraceRegion)
    assert tokens[0].end == len(text)


def test_block_comment_inside_code():
    tokens = list(scan("{ /* } */ x }"))
    assert len(tokens) == 1
    assert tokens[0].source == " /* } */ x "


def test_escaped_braces_are_text():
    assert list(scan("\\{foo\\}")) == []


def test_plain_less_than_is_text():
    assert list(scan("a < b and c > d")) == []


def test_html_comments_are_skipped():
    assert scan_tags("<!-- <System> -->text") == []


def test_code_tag_body_is_opaque():
    """Nothing inside <Code> is tokenized"""
    text = "<Code>\nconst a = b < c ? {x: 1} : 2\n</Code>"
    tokens = list(scan(text))
    assert [(t.name, t.is_closing) for t in tokens] == [("Code", False), ("Code", True)]


def test_unterminated_brace_recovers():
    """An unterminated region is reported and scanning resumes after it"""
    tokens = list(scan("{foo <User>"))
    assert isinstance(tokens[0], LexicalError)
    assert tokens[0].start == 0
    assert isinstance(tokens[1], Tag)
    assert tokens[1].name == "User"


def test_unterminated_tag():
    tokens = list(scan("<User"))
    assert len(tokens) == 1
    assert isinstance(tokens[0], LexicalError)
    assert "User" in tokens[0].message


def test_restart_from_offset():
    """Scanning from a token boundary gives the tail of a full scan"""
    text = "<System>a</System>\n<User>{q}</User>"
    full = list(scan(text))
    offset = full[2].start
    assert list(scan(text, start=offset)) == full[2:]


def test_scanner_instance_is_reusable():
    scanner = TagScanner("<User>{q}</User>")
    assert list(scanner.scan()) == list(scanner.scan())


def test_match_braces():
    scanner = TagScanner("{ a { b } '}' }tail")
    assert scanner.match_braces(0) == 15
    assert TagScanner("{ a { b }").match_braces(0) is None


@pytest.mark.parametrize(
    "source,kind",
    [
        ("foo", INTERPOLATION),
        ("foo.bar", INTERPOLATION),
        ("sayHello({ name: 'chat' })", INTERPOLATION),
        ("function f() { return 1 }", CODE),
        ("\n  const x = 1\n  return x\n", CODE),
        ("\n  for (const x of xs) {\n  }\n", CODE),
        ("\n  items.map((x) => {\n    return x\n  })\n", CODE),
    ],
)
def test_classify_brace_source(source, kind):
    assert classify_brace_source(source) == kind


class TestMatchTags:
    """Pairing with the shared stack discipline"""

    def test_nested_pairs(self):
        result = match_tags(scan_tags("<For each={a} as=\"x\"><User></User></For>"))
        assert len(result.pairs) == 2
        assert result.unmatched == []
        outer, inner = result.pairs
        assert outer.opening.name == "For"
        assert inner.opening.name == "User"

    def test_nested_same_name(self):
        """Inner For closes first"""
        text = '<For each={a} as="x"><For each={x} as="y"></For></For>'
        result = match_tags(scan_tags(text))
        assert len(result.pairs) == 2
        outer, inner = result.pairs
        assert outer.start < inner.start < inner.closing_start < outer.closing_start

    def test_reopened_chat_role_is_one_unmatched(self):
        """A mistyped closing tag leaves exactly one unmatched opening"""
        result = match_tags(scan_tags("<System>\nhello\n<System>"))
        assert result.pairs == []
        assert len(result.unmatched) == 1
        assert result.unmatched[0].name == "System"
        assert result.unmatched[0].start == 0

    def test_stray_closing_tag(self):
        result = match_tags(scan_tags("hello</User>"))
        assert len(result.unmatched) == 1
        assert result.unmatched[0].is_closing

    def test_self_closing_never_unmatched(self):
        result = match_tags(scan_tags("<Request model=\"a\" />"))
        assert result.pairs == []
        assert result.unmatched == []

    def test_crossed_tags_are_not_nested(self):
        """A closing tag leaves tags opened after its partner unmatched"""
        result = match_tags(scan_tags("<User>\n<System>\nhi\n</User>\n</System>"))
        assert [(p.start, p.closing_start) for p in result.pairs] == [(0, 19)]
        assert [(t.name, t.is_closing, t.start) for t in result.unmatched] == [
            ("System", False, 7),
            ("System", True, 27),
        ]

    def test_reopened_role_that_is_closed_pairs_innermost(self):
        result = match_tags(scan_tags("<User>\na\n<User>\nb\n</User>"))
        assert [(p.start, p.closing_start) for p in result.pairs] == [(9, 18)]
        assert [(t.name, t.start) for t in result.unmatched] == [("User", 0)]

    def test_implicitly_closed_reopenings_reported_once(self):
        result = match_tags(scan_tags("<User>a<System>b<System>c</User>"))
        assert len(result.pairs) == 1
        assert [(t.name, t.start) for t in result.unmatched] == [("System", 7)]

    def test_unsupported_tags_do_not_break_nesting(self):
        """Unsupported tags pair among themselves"""
        result = match_tags(scan_tags("<Foo><User></Foo></User>"))
        assert [p.opening.name for p in result.pairs] == ["Foo", "User"]
        assert result.unmatched == []
