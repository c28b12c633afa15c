"""Tests for frontmatter declarations"""

import pytest

from glassc.errors import GlassFrontmatterError
from glassc.frontmatter import (has_frontmatter, is_valid_type,
                                parse_frontmatter, split_frontmatter)


def test_declarations_keep_order():
    text = "---\nfoo: number\nbar: string\n---\n{foo} {bar}"
    frontmatter, body, offset = split_frontmatter(text)
    assert list(frontmatter.items()) == [("foo", "number"), ("bar", "string")]
    assert body == "{foo} {bar}"
    assert text[offset:] == body


def test_no_frontmatter():
    text = "Hello {name}"
    assert split_frontmatter(text) == ({}, text, 0)
    assert not has_frontmatter(text)


def test_array_and_extra_whitespace():
    frontmatter = parse_frontmatter("---\n  items :  string[]\n\nflag: boolean\n---\n")
    assert frontmatter == {"items": "string[]", "flag": "boolean"}


def test_empty_block():
    frontmatter, body, _ = split_frontmatter("---\n---\nbody")
    assert frontmatter == {}
    assert body == "body"


@pytest.mark.parametrize(
    "type_name,valid",
    [("string", True), ("number[]", True), ("any", True), ("banana", False), ("string[][]", False)],
)
def test_is_valid_type(type_name, valid):
    assert is_valid_type(type_name) is valid


class TestFrontmatterErrors:
    """Malformed frontmatter is the only hard error"""

    def test_unknown_type(self):
        with pytest.raises(GlassFrontmatterError) as exc_info:
            split_frontmatter("---\nfoo: banana\n---\n")
        assert exc_info.value.line_number == 2
        assert "banana" in str(exc_info.value)

    def test_duplicate_name(self):
        with pytest.raises(GlassFrontmatterError) as exc_info:
            split_frontmatter("---\nfoo: string\nfoo: number\n---\n")
        assert exc_info.value.line_number == 3
        assert "foo" in str(exc_info.value)

    def test_malformed_line(self):
        with pytest.raises(GlassFrontmatterError) as exc_info:
            split_frontmatter("---\nfoo number\n---\n")
        assert exc_info.value.line_number == 2
        assert "Line 2: foo number" in str(exc_info.value)

    def test_unclosed_block(self):
        with pytest.raises(GlassFrontmatterError) as exc_info:
            split_frontmatter("---\nfoo: string\n{foo}")
        assert exc_info.value.line_number == 1
