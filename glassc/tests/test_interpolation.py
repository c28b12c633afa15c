"""Tests for interpolation indexing and argument inference"""

import pytest

from glassc.blocks import parse_glass_ast
from glassc.interpolation import (CODE, INTERPOLATION, LOOP,
                                  index_interpolations, infer_arguments,
                                  reference_root)


def index(text, **kwargs):
    return index_interpolations(parse_glass_ast(text), **kwargs)


def test_positional_indices():
    """Every occurrence gets its own index"""
    indexed = index("{foo} {bar} {foo}\n{bar}")
    assert indexed.template == "{0} {1} {2}\n{3}"
    assert [e.source for e in indexed.entries] == ["foo", "bar", "foo", "bar"]
    assert [e.index for e in indexed.entries] == [0, 1, 2, 3]


def test_deduplicated_indices():
    indexed = index("{foo} {bar} {foo}\n{bar}", deduplicate=True)
    assert indexed.template == "{0} {1} {0}\n{1}"
    assert [e.source for e in indexed.entries] == ["foo", "bar"]


def test_escaped_braces_not_indexed():
    indexed = index("{foo} and \\{foo\\}")
    assert indexed.template == "{0} and {foo}"
    assert len(indexed.entries) == 1


def test_no_interpolations():
    indexed = index("just text")
    assert indexed.template == "just text"
    assert indexed.entries == []


def test_chat_tags_stay_in_template():
    indexed = index("<User>{q}</User>")
    assert indexed.template == "<User>{0}</User>"


def test_loop_shares_the_counter():
    """Loops take the next index in document order"""
    indexed = index('Intro {topic}\n<For each={examples} as="ex">{ex.q}</For>\n{closing}')
    assert indexed.template == "Intro {0}\n{1}\n{2}"
    assert [e.kind for e in indexed.entries] == [INTERPOLATION, LOOP, INTERPOLATION]
    assert [e.index for e in indexed.loops] == [1]
    assert [e.index for e in indexed.interpolations] == [0, 2]


def test_inline_code_is_indexed():
    indexed = index("a {\n  const x = 1\n  return x\n} b")
    assert indexed.template == "a {0} b"
    assert indexed.entries[0].kind == CODE


def test_hoisted_code_and_request_removed():
    indexed = index('<Code>\nconst a = 1\n</Code>\n<Request model="m" temperature={0.2} />\n{a}')
    assert indexed.template == "\n\n{0}"


@pytest.mark.parametrize(
    "expression,root",
    [
        ("foo", "foo"),
        ("foo.bar.baz", "foo"),
        ("foo?.bar", "foo"),
        ("sayHello()", None),
        ("a + b", None),
        ("true", None),
        ("'text'", None),
    ],
)
def test_reference_root(expression, root):
    assert reference_root(expression) == root


class TestInferArguments:
    """Arguments inferred when there is no frontmatter"""

    def test_first_occurrence_order(self):
        assert infer_arguments(parse_glass_ast("{b} {a} {b}")) == {"b": "string", "a": "string"}

    def test_member_access(self):
        assert infer_arguments(parse_glass_ast("{user.name}")) == {"user": "string"}

    def test_loop_iterable_and_alias(self):
        doc = parse_glass_ast('<For each={examples} as="ex">{ex.q} {tone}</For>')
        assert infer_arguments(doc) == {"examples": "any[]", "tone": "string"}

    def test_imports_and_declarations_excluded(self):
        doc = parse_glass_ast(
            "import {sayHello} from './say-hello'\n"
            "<Code>\nconst greeting = 'hi'\n</Code>\n"
            "{sayHello} {greeting} {name}"
        )
        assert infer_arguments(doc) == {"name": "string"}

    def test_calls_are_not_arguments(self):
        assert infer_arguments(parse_glass_ast("{sayHello()}")) == {}
