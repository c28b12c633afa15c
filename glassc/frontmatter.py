"""Frontmatter parsing for glass documents.

A document may open with a metadata block declaring its arguments::

    ---
    foo: number
    bar: string
    ---

Declaration order is preserved and becomes the order of the generated
function's arguments.
"""

import logging
from typing import Dict, Tuple

from lark import Lark, Transformer
from lark.exceptions import LarkError

from .errors import GlassFrontmatterError

logger = logging.getLogger(__name__)

FRONTMATTER_DELIMITER = "---"

PRIMITIVE_TYPES = ("string", "number", "boolean", "object", "any", "unknown")

# Mini-grammar for a single `name: type` declaration line
_declaration_grammar = """
start: CNAME _COLON type_expr

type_expr: CNAME ARRAY_SUFFIX?

ARRAY_SUFFIX: "[]"
_COLON: ":"

%import common.CNAME
%import common.WS_INLINE
%ignore WS_INLINE
"""

_cached_declaration_parser = None


def _get_declaration_parser():
    """Get cached mini-parser for declaration lines."""
    global _cached_declaration_parser
    if _cached_declaration_parser is None:
        _cached_declaration_parser = Lark(_declaration_grammar, parser="lalr")
    return _cached_declaration_parser


class DeclarationTransformer(Transformer):
    """Turns a declaration parse tree into a ``(name, type)`` tuple."""

    def start(self, items):
        return str(items[0]), items[1]

    def type_expr(self, items):
        return "".join(str(item) for item in items)


def is_valid_type(type_name: str) -> bool:
    base = type_name[:-2] if type_name.endswith("[]") else type_name
    return base in PRIMITIVE_TYPES


def has_frontmatter(text: str) -> bool:
    first_line = text.split("\n", 1)[0]
    return first_line.rstrip() == FRONTMATTER_DELIMITER


def split_frontmatter(text: str) -> Tuple[Dict[str, str], str, int]:
    """Separate the frontmatter block from the document body.

    Returns:
        (frontmatter, body, body_offset) where ``body_offset`` is the index of
        the body's first character in ``text``. Without a frontmatter block
        the mapping is empty and the body is the whole text.

    Raises:
        GlassFrontmatterError: the block is unclosed, a line cannot be parsed,
            a type is unknown or a name is declared twice.
    """
    if not has_frontmatter(text):
        return {}, text, 0

    lines = text.split("\n")
    closing_index = None
    for index, line in enumerate(lines[1:], start=1):
        if line.rstrip() == FRONTMATTER_DELIMITER:
            closing_index = index
            break

    if closing_index is None:
        raise GlassFrontmatterError(
            "Frontmatter block is not closed", line_number=1, line=lines[0]
        )

    frontmatter = parse_declarations(lines[1:closing_index], first_line_number=2)
    body_offset = sum(len(line) + 1 for line in lines[: closing_index + 1])
    body_offset = min(body_offset, len(text))
    logger.debug(f"Parsed frontmatter with {len(frontmatter)} variables")
    return frontmatter, text[body_offset:], body_offset


def parse_declarations(lines, first_line_number: int = 1) -> Dict[str, str]:
    """Parse ``name: type`` lines into an insertion-ordered mapping."""
    parser = _get_declaration_parser()
    transformer = DeclarationTransformer()
    declarations: Dict[str, str] = {}

    for offset, line in enumerate(lines):
        line_number = first_line_number + offset
        if not line.strip():
            continue
        try:
            name, type_name = transformer.transform(parser.parse(line.strip()))
        except LarkError:
            raise GlassFrontmatterError(
                "Expected a `name: type` declaration", line_number=line_number, line=line
            )
        if not is_valid_type(type_name):
            raise GlassFrontmatterError(
                f"Unknown type '{type_name}' for variable '{name}'",
                line_number=line_number,
                line=line,
            )
        if name in declarations:
            raise GlassFrontmatterError(
                f"Variable '{name}' is declared more than once",
                line_number=line_number,
                line=line,
            )
        declarations[name] = type_name

    return declarations


def parse_frontmatter(text: str) -> Dict[str, str]:
    """Return only the frontmatter mapping of a document."""
    return split_frontmatter(text)[0]
