"""Block tree for glass documents.

``parse_glass_ast`` turns raw document text into a ``GlassDocument``: the
frontmatter, the lifted import statements and an ordered, nestable list of
blocks. Structural problems never abort parsing; they are recorded on the
document and the tree is recovered with a stack:

- a closing tag closes the nearest open tag with the same name, implicitly
  closing anything opened after it; with no open tag of that name it is
  kept as literal text
- tags still open at the end of the document are closed there
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Union

from .config import REQUEST_ATTRIBUTES, RequestConfig
from .errors import LEXICAL, STRUCTURAL, UNMATCHED, GlassIssue
from .frontmatter import split_frontmatter
from .imports import extract_code_imports, lift_leading_imports
from .scanner import (CHAT_ROLE_TAGS, BraceRegion, LexicalError, Tag,
                      match_tags, scan)

logger = logging.getLogger(__name__)

ESCAPED_BRACE = re.compile(r"\\([{}])")

# names declared at the top level of a hoisted code fragment
DECLARED_NAME = re.compile(
    r"^[ \t]*(?:export\s+)?(?:const|let|var|class|function|async\s+function)\s+([A-Za-z_$][\w$]*)",
    re.MULTILINE,
)


class ChatRole(Enum):
    SYSTEM = "System"
    USER = "User"
    ASSISTANT = "Assistant"


def decode_escapes(text: str) -> str:
    """``\\{`` and ``\\}`` become literal braces."""
    return ESCAPED_BRACE.sub(r"\1", text)


@dataclass
class TextBlock:
    text: str
    start: int = 0
    end: int = 0


@dataclass
class InterpolationBlock:
    source: str
    start: int = 0
    end: int = 0


@dataclass
class CodeBlock:
    """Opaque embedded code, reproduced verbatim and never evaluated.

    ``hoisted`` fragments come from ``<Code>`` tags and are emitted as
    statements ahead of the template; the others come from ``{...}`` regions
    and stand in for their return value.
    """

    source: str
    hoisted: bool = False
    start: int = 0
    end: int = 0

    @property
    def declared_names(self) -> List[str]:
        return DECLARED_NAME.findall(self.source) if self.hoisted else []


@dataclass
class ChatRoleBlock:
    role: ChatRole
    children: List["Block"] = field(default_factory=list)
    open_tag: str = ""
    close_tag: str = ""
    start: int = 0
    end: int = 0


@dataclass
class ForLoopBlock:
    each: str
    alias: str
    children: List["Block"] = field(default_factory=list)
    open_tag: str = ""
    close_tag: str = ""
    start: int = 0
    end: int = 0


@dataclass
class RequestBlock:
    attributes: Dict[str, Union[str, bool]] = field(default_factory=dict)
    source: str = ""
    start: int = 0
    end: int = 0

    def to_config(self) -> RequestConfig:
        values = {
            key: (str(value).lower() if isinstance(value, bool) else value)
            for key, value in self.attributes.items()
            if key in REQUEST_ATTRIBUTES
        }
        return RequestConfig(**values)


Block = Union[TextBlock, InterpolationBlock, CodeBlock, ChatRoleBlock, ForLoopBlock, RequestBlock]
ContainerBlock = (ChatRoleBlock, ForLoopBlock)


@dataclass
class GlassDocument:
    source: str
    frontmatter: Dict[str, str] = field(default_factory=dict)
    body_offset: int = 0
    content_start: int = 0
    blocks: List[Block] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    imported_names: List[str] = field(default_factory=list)
    errors: List[GlassIssue] = field(default_factory=list)

    @property
    def body(self) -> str:
        return self.source[self.body_offset :]

    def walk(self) -> Iterator[Block]:
        """Depth-first, left-to-right traversal of every block."""
        yield from walk_blocks(self.blocks)

    @property
    def has_chat_roles(self) -> bool:
        return any(isinstance(block, ChatRoleBlock) for block in self.walk())

    @property
    def request_blocks(self) -> List[RequestBlock]:
        return [block for block in self.walk() if isinstance(block, RequestBlock)]

    @property
    def request(self) -> Optional[RequestBlock]:
        blocks = self.request_blocks
        return blocks[0] if blocks else None

    @property
    def hoisted_code(self) -> List[CodeBlock]:
        return [b for b in self.walk() if isinstance(b, CodeBlock) and b.hoisted]


def walk_blocks(blocks: List[Block]) -> Iterator[Block]:
    for block in blocks:
        yield block
        if isinstance(block, ContainerBlock):
            yield from walk_blocks(block.children)


@dataclass
class _Frame:
    tag: Optional[Tag]
    block: Optional[Block]
    children: List[Block] = field(default_factory=list)


class GlassASTBuilder:
    """Consumes scanner tokens and assembles the block tree."""

    def __init__(self, document: GlassDocument):
        self.document = document
        self.source = document.source
        self.stack: List[_Frame] = [_Frame(tag=None, block=None)]
        self.tags: List[Tag] = []
        self.request_count = 0

    @property
    def top(self) -> _Frame:
        return self.stack[-1]

    def issue(self, message: str, start: int, end: int, tag: Optional[str] = None, kind=STRUCTURAL):
        logger.warning(f"{message} (offset {start})")
        self.document.errors.append(GlassIssue(kind, message, start, end, tag))

    def build(self) -> List[Block]:
        pos = self.document.content_start
        for token in scan(self.source, self.document.content_start):
            if isinstance(token, LexicalError):
                self.issue(token.message, token.start, token.end, kind=LEXICAL)
                continue
            self.add_text(pos, token.start)
            if isinstance(token, BraceRegion):
                self.add_brace_region(token)
            else:
                self.tags.append(token)
                self.add_tag(token)
            pos = token.end

        self.add_text(pos, len(self.source))
        while len(self.stack) > 1:
            self.close_frame(None, len(self.source))

        self.record_unmatched_tags()
        return self.top.children

    def add_text(self, start: int, end: int):
        if end <= start:
            return
        raw = self.source[start:end]
        self.top.children.append(TextBlock(decode_escapes(raw), start, end))

    def add_brace_region(self, region: BraceRegion):
        if region.is_code:
            block = CodeBlock(region.source, False, region.start, region.end)
        else:
            block = InterpolationBlock(region.source.strip(), region.start, region.end)
        self.top.children.append(block)

    def add_tag(self, tag: Tag):
        raw = self.source[tag.start : tag.end]
        if not tag.is_supported:
            self.top.children.append(TextBlock(raw, tag.start, tag.end))
            return

        if tag.is_closing:
            self.close_tag(tag)
            return

        if tag.name == "Request":
            self.add_request(tag, raw)
            if not tag.is_self_closing:
                self.stack.append(_Frame(tag, None))
            return

        if tag.name == "Code":
            self.stack.append(_Frame(tag, None))
            if tag.is_self_closing:
                self.close_frame(tag, tag.end)
            return

        if tag.name in CHAT_ROLE_TAGS:
            if any(f.tag is not None and f.tag.name in CHAT_ROLE_TAGS for f in self.stack):
                self.issue(
                    f"<{tag.name}> cannot be nested inside another chat role",
                    tag.start,
                    tag.end,
                    tag.name,
                )
            block = ChatRoleBlock(ChatRole(tag.name), open_tag=raw, start=tag.start)
        else:
            each = tag.attributes.get("each")
            alias = tag.attributes.get("as")
            for attribute, value in (("each", each), ("as", alias)):
                if not isinstance(value, str) or not value:
                    self.issue(
                        f"<For> requires an '{attribute}' attribute", tag.start, tag.end, tag.name
                    )
            block = ForLoopBlock(
                each if isinstance(each, str) else "",
                alias if isinstance(alias, str) else "",
                open_tag=raw,
                start=tag.start,
            )

        frame = _Frame(tag, block)
        self.stack.append(frame)
        if tag.is_self_closing:
            self.close_frame(tag, tag.end)

    def add_request(self, tag: Tag, raw: str):
        self.request_count += 1
        if self.request_count > 1:
            self.issue(
                "Only one <Request> is allowed per document; the first one is used",
                tag.start,
                tag.end,
                tag.name,
            )
        for name in tag.attributes:
            if name not in REQUEST_ATTRIBUTES:
                self.issue(
                    f"Unsupported attribute '{name}' on <Request>", tag.start, tag.end, tag.name
                )
        self.top.children.append(RequestBlock(dict(tag.attributes), raw, tag.start, tag.end))

    def close_tag(self, tag: Tag):
        for depth in range(len(self.stack) - 1, 0, -1):
            if self.stack[depth].tag.name == tag.name:
                while len(self.stack) - 1 > depth:
                    self.close_frame(None, tag.start)
                self.close_frame(tag, tag.end)
                return

        raw = self.source[tag.start : tag.end]
        self.top.children.append(TextBlock(raw, tag.start, tag.end))

    def close_frame(self, closing: Optional[Tag], end: int):
        frame = self.stack.pop()
        parent = self.top
        close_raw = self.source[closing.start : closing.end] if closing else ""
        opening = frame.tag

        if opening.name == "Code":
            content_end = closing.start if closing is not None and not closing.is_self_closing else end
            if opening.is_self_closing:
                content_end = opening.end
            code = self.source[opening.end : content_end]
            code, imports, names = extract_code_imports(code)
            self.document.imports.extend(imports)
            self.document.imported_names.extend(names)
            parent.children.append(CodeBlock(code, True, opening.start, end))
            return

        if frame.block is None:
            # body of a non self-closing <Request> tag
            parent.children.extend(frame.children)
            if close_raw:
                parent.children.append(TextBlock(close_raw, closing.start, closing.end))
            return

        block = frame.block
        block.children = frame.children
        if closing is not None and closing is not opening:
            block.close_tag = close_raw
        block.end = end
        parent.children.append(block)

    def record_unmatched_tags(self):
        supported = [tag for tag in self.tags if tag.is_supported]
        for tag in match_tags(supported).unmatched:
            if tag.is_closing:
                message = f"</{tag.name}> has no matching <{tag.name}> tag"
            else:
                message = f"<{tag.name}> tag requires a closing </{tag.name}> tag."
            self.issue(message, tag.start, tag.end, tag.name, kind=UNMATCHED)


def parse_glass_ast(text: str) -> GlassDocument:
    """Parse a glass document into its block tree.

    Raises:
        GlassFrontmatterError: the frontmatter block is malformed. All other
            problems are recorded on ``GlassDocument.errors``.
    """
    frontmatter, _, body_offset = split_frontmatter(text)
    imports, names, content_start = lift_leading_imports(text, body_offset)

    document = GlassDocument(
        source=text,
        frontmatter=frontmatter,
        body_offset=body_offset,
        content_start=content_start,
        imports=imports,
        imported_names=names,
    )
    document.blocks = GlassASTBuilder(document).build()
    logger.debug(
        f"Built {len(document.blocks)} top-level blocks, "
        f"{len(document.imports)} imports, {len(document.errors)} issues"
    )
    return document
