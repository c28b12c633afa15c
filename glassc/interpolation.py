"""Interpolation indexing.

Walks the block tree depth-first, left to right, gives every interpolation,
inline code fragment and loop a positional index and rewrites the document
into a template that only contains literal text and ``{<index>}``
placeholders.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .blocks import (Block, ChatRoleBlock, CodeBlock, ForLoopBlock,
                     GlassDocument, InterpolationBlock, TextBlock)
from .errors import STRUCTURAL, GlassIssue

logger = logging.getLogger(__name__)

INTERPOLATION = "interpolation"
CODE = "code"
LOOP = "loop"

REFERENCE = re.compile(r"^([A-Za-z_$][\w$]*)(?:\??\.[A-Za-z_$][\w$]*)*$")
NOT_VARIABLES = frozenset({"true", "false", "null", "undefined", "this", "NaN", "Infinity"})

DEFAULT_TYPE = "string"
ITERABLE_TYPE = "any[]"


@dataclass
class IndexedEntry:
    index: int
    kind: str
    source: str
    block: Optional[Block] = None


@dataclass
class IndexedTemplate:
    template: str
    entries: List[IndexedEntry] = field(default_factory=list)

    @property
    def interpolations(self) -> List[IndexedEntry]:
        """Entries evaluated once, in index order."""
        return [e for e in self.entries if e.kind != LOOP]

    @property
    def loops(self) -> List[IndexedEntry]:
        return [e for e in self.entries if e.kind == LOOP]


def reference_root(expression: str) -> Optional[str]:
    """Variable name referenced by ``foo`` or ``foo.bar.baz``, else None."""
    match = REFERENCE.match(expression.strip())
    if match is None or match.group(1) in NOT_VARIABLES:
        return None
    return match.group(1)


class InterpolationIndexer:
    def __init__(self, deduplicate: bool = False):
        self.deduplicate = deduplicate
        self.entries: List[IndexedEntry] = []
        self.by_source: Dict[str, int] = {}

    def placeholder(self, kind: str, source: str, block: Block) -> str:
        if self.deduplicate and kind != LOOP and source in self.by_source:
            return "{%d}" % self.by_source[source]
        index = len(self.entries)
        self.entries.append(IndexedEntry(index, kind, source, block))
        if kind != LOOP:
            self.by_source.setdefault(source, index)
        return "{%d}" % index

    def render(self, blocks: List[Block]) -> str:
        parts = []
        for block in blocks:
            if isinstance(block, TextBlock):
                parts.append(block.text)
            elif isinstance(block, InterpolationBlock):
                parts.append(self.placeholder(INTERPOLATION, block.source, block))
            elif isinstance(block, CodeBlock):
                if not block.hoisted:
                    parts.append(self.placeholder(CODE, block.source, block))
            elif isinstance(block, ChatRoleBlock):
                parts.append(block.open_tag)
                parts.append(self.render(block.children))
                parts.append(block.close_tag)
            elif isinstance(block, ForLoopBlock):
                parts.append(self.placeholder(LOOP, block.each, block))
        return "".join(parts)


def index_interpolations(document: GlassDocument, deduplicate: bool = False) -> IndexedTemplate:
    """Index a document and build its placeholder template.

    By default every occurrence gets a fresh index, so ``{foo} {foo}``
    becomes ``{0} {1}``. With ``deduplicate=True`` occurrences with
    byte-identical source text share the index of the first one.
    """
    indexer = InterpolationIndexer(deduplicate=deduplicate)
    template = indexer.render(document.blocks)
    logger.debug(f"Indexed {len(indexer.entries)} placeholders")
    return IndexedTemplate(template, indexer.entries)


def variable_references(document: GlassDocument) -> List[Tuple[str, str, Block]]:
    """``(name, type, block)`` for every variable reference, in document order.

    Imported names, names declared in ``<Code>`` blocks and loop aliases in
    scope are not references. Loop iterables are typed as arrays.
    """
    excluded: Set[str] = set(document.imported_names)
    for code in document.hoisted_code:
        excluded.update(code.declared_names)

    references: List[Tuple[str, str, Block]] = []

    def visit(blocks: List[Block], aliases: Set[str]):
        for block in blocks:
            if isinstance(block, InterpolationBlock):
                name = reference_root(block.source)
                if name and name not in aliases and name not in excluded:
                    references.append((name, DEFAULT_TYPE, block))
            elif isinstance(block, ForLoopBlock):
                name = reference_root(block.each)
                if name and name not in aliases and name not in excluded:
                    references.append((name, ITERABLE_TYPE, block))
                visit(block.children, aliases | {block.alias})
            elif isinstance(block, ChatRoleBlock):
                visit(block.children, aliases)

    visit(document.blocks, set())
    return references


def infer_arguments(document: GlassDocument) -> Dict[str, str]:
    """Argument names and types for a document without frontmatter.

    Names are collected in first-occurrence order; a name used as a loop
    iterable anywhere is typed as an array.
    """
    arguments: Dict[str, str] = {}
    for name, type_name, _ in variable_references(document):
        if type_name == ITERABLE_TYPE:
            arguments[name] = type_name
        else:
            arguments.setdefault(name, type_name)
    return arguments


def undeclared_references(document: GlassDocument) -> List[GlassIssue]:
    """Issues for references missing from the frontmatter, one per name."""
    if not document.frontmatter:
        return []
    issues = []
    reported: Set[str] = set()
    for name, _, block in variable_references(document):
        if name in document.frontmatter or name in reported:
            continue
        reported.add(name)
        message = f"'{name}' is not declared in the frontmatter"
        logger.warning(f"{message} (offset {block.start})")
        issues.append(GlassIssue(STRUCTURAL, message, block.start, block.end))
    return issues
