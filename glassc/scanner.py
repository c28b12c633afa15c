"""Tag scanner for glass documents.

A small hand-rolled finite-state lexer shared by the AST builder, the
diagnostics engine and the folding engine. It walks raw document text and
yields three kinds of tokens:

- ``Tag`` for ``<Name ...>``, ``</Name>`` and ``<Name ... />``
- ``BraceRegion`` for ``{...}`` regions, classified as an interpolation or
  as embedded code
- ``LexicalError`` for unterminated constructs; scanning always resumes
  right after the offending character so the rest of the document is still
  tokenized

Only the NORMAL state emits tags. Inside a brace region the scanner tracks
brace depth, string literals and comments so that ``<``/``>`` comparison
operators or quoted braces never produce tokens.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


SUPPORTED_TAGS = ("System", "User", "Assistant", "For", "Request", "Code")
CHAT_ROLE_TAGS = ("System", "User", "Assistant")

# tags whose body is opaque source text
RAW_TEXT_TAGS = ("Code",)

# tags that may not be nested inside another tag of the same name;
# reopening one while it is open reads as a mistyped closing tag
NON_NESTING_TAGS = CHAT_ROLE_TAGS + ("Code", "Request")

INTERPOLATION = "interpolation"
CODE = "code"

QUOTES = "'\"`"

# a brace region starting with one of these is a statement list, not an expression
STATEMENT_START = re.compile(
    r"^\s*(?:async\s+function|function|const|let|var|for|while|if|return|class|do|switch|try)\b"
)
# multi-line regions containing one of these are treated as code too
BLOCK_CONSTRUCT = re.compile(r"\bfunction\b|\bfor\s*\(|\bwhile\s*\(|=>\s*\{")

TAG_NAME_CHARS = re.compile(r"[A-Za-z][\w.:-]*")
ATTR_NAME_CHARS = re.compile(r"[A-Za-z_$][\w.:$-]*")


class ScannerState(Enum):
    NORMAL = auto()
    IN_EMBEDDED_CODE = auto()
    IN_STRING_LITERAL = auto()
    IN_COMMENT = auto()


@dataclass(frozen=True)
class Tag:
    """A tag token. ``end`` is exclusive."""

    name: str
    attributes: Dict[str, Union[str, bool]] = field(default_factory=dict, compare=False)
    is_closing: bool = False
    is_self_closing: bool = False
    start: int = 0
    end: int = 0

    @property
    def is_supported(self) -> bool:
        return self.name in SUPPORTED_TAGS

    def __repr__(self):
        slash = "/" if self.is_closing else ""
        tail = " /" if self.is_self_closing else ""
        return f"Tag(<{slash}{self.name}{tail}> @ {self.start}:{self.end})"


@dataclass(frozen=True)
class BraceRegion:
    """A ``{...}`` region. ``source`` is the text between the outer braces."""

    kind: str
    source: str
    start: int
    end: int

    @property
    def is_code(self) -> bool:
        return self.kind == CODE


@dataclass(frozen=True)
class LexicalError:
    message: str
    start: int
    end: int


Token = Union[Tag, BraceRegion, LexicalError]


@dataclass(frozen=True)
class TagPair:
    opening: Tag
    closing: Tag

    @property
    def start(self) -> int:
        return self.opening.start

    @property
    def closing_start(self) -> int:
        return self.closing.start


@dataclass
class TagMatch:
    """Result of pairing tags with the shared stack discipline."""

    pairs: List[TagPair] = field(default_factory=list)
    unmatched: List[Tag] = field(default_factory=list)


def classify_brace_source(source: str) -> str:
    """Decide whether the inside of a ``{...}`` region is code or an interpolation."""
    if STATEMENT_START.match(source):
        return CODE
    if "\n" in source.strip() and BLOCK_CONSTRUCT.search(source):
        return CODE
    return INTERPOLATION


class TagScanner:
    """Finite-state scanner over one document.

    The scanner holds no state between calls to :meth:`scan`, so one
    instance can be restarted from any offset.
    """

    def __init__(self, text: str):
        self.text = text

    def scan(self, start: int = 0) -> Iterator[Token]:
        text = self.text
        n = len(text)
        pos = start

        while pos < n:
            ch = text[pos]

            # escaped braces are literal text
            if ch == "\\" and pos + 1 < n and text[pos + 1] in "{}":
                pos += 2
                continue

            if ch == "{":
                end = self.match_braces(pos)
                if end is None:
                    yield LexicalError("Unterminated '{' region", pos, n)
                    pos += 1
                    continue
                source = text[pos + 1 : end - 1]
                yield BraceRegion(classify_brace_source(source), source, pos, end)
                pos = end
                continue

            if ch == "<":
                if text.startswith("<!--", pos):
                    close = text.find("-->", pos + 4)
                    if close == -1:
                        yield LexicalError("Unterminated comment", pos, n)
                        pos += 4
                    else:
                        pos = close + 3
                    continue

                tag, error = self._scan_tag(pos)
                if error is not None:
                    yield error
                    pos += 1
                    continue
                if tag is None:
                    pos += 1
                    continue

                yield tag
                pos = tag.end
                if (
                    tag.name in RAW_TEXT_TAGS
                    and not tag.is_closing
                    and not tag.is_self_closing
                ):
                    close = find_raw_text_end(text, tag.name, pos)
                    if close is not None:
                        pos = close
                continue

            pos += 1

    def match_braces(self, start: int) -> Optional[int]:
        """Return the offset just past the brace closing the one at ``start``.

        Runs the embedded-code part of the state machine: brace depth is
        tracked only outside string literals and comments.
        """
        text = self.text
        n = len(text)
        state = ScannerState.IN_EMBEDDED_CODE
        depth = 0
        delimiter = None
        comment_end = None
        pos = start

        while pos < n:
            ch = text[pos]

            if state is ScannerState.IN_STRING_LITERAL:
                if ch == "\\":
                    pos += 2
                    continue
                if ch == delimiter:
                    state = ScannerState.IN_EMBEDDED_CODE
                    delimiter = None
                pos += 1
                continue

            if state is ScannerState.IN_COMMENT:
                if text.startswith(comment_end, pos):
                    state = ScannerState.IN_EMBEDDED_CODE
                    pos += len(comment_end)
                    continue
                pos += 1
                continue

            # IN_EMBEDDED_CODE
            if ch in QUOTES:
                state = ScannerState.IN_STRING_LITERAL
                delimiter = ch
            elif text.startswith("//", pos):
                state = ScannerState.IN_COMMENT
                comment_end = "\n"
                pos += 2
                continue
            elif text.startswith("/*", pos):
                state = ScannerState.IN_COMMENT
                comment_end = "*/"
                pos += 2
                continue
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return pos + 1
            pos += 1

        return None

    def _scan_tag(self, start: int) -> Tuple[Optional[Tag], Optional[LexicalError]]:
        """Try to read a tag at ``start``; ``(None, None)`` means the ``<`` is inert."""
        text = self.text
        n = len(text)
        pos = start + 1
        is_closing = False
        if pos < n and text[pos] == "/":
            is_closing = True
            pos += 1

        name_match = TAG_NAME_CHARS.match(text, pos)
        if name_match is None:
            return None, None
        name = name_match.group(0)
        pos = name_match.end()

        attributes: Dict[str, Union[str, bool]] = {}
        while True:
            pos = _skip_whitespace(text, pos)
            if pos >= n:
                return None, LexicalError(f"Unterminated <{name}> tag", start, n)

            if text[pos] == ">":
                return (
                    Tag(name, attributes, is_closing, False, start, pos + 1),
                    None,
                )
            if text.startswith("/>", pos) and not is_closing:
                return Tag(name, attributes, False, True, start, pos + 2), None
            if is_closing:
                return None, None

            attr_match = ATTR_NAME_CHARS.match(text, pos)
            if attr_match is None:
                return None, None
            attr_name = attr_match.group(0)
            pos = _skip_whitespace(text, attr_match.end())
            if pos >= n or text[pos] != "=":
                attributes[attr_name] = True
                continue

            pos = _skip_whitespace(text, pos + 1)
            if pos >= n:
                return None, LexicalError(f"Unterminated <{name}> tag", start, n)
            value_start = text[pos]
            if value_start in "'\"":
                close = text.find(value_start, pos + 1)
                if close == -1:
                    return None, LexicalError(
                        f"Unterminated attribute value in <{name}> tag", start, n
                    )
                attributes[attr_name] = text[pos + 1 : close]
                pos = close + 1
            elif value_start == "{":
                close = self.match_braces(pos)
                if close is None:
                    return None, LexicalError(
                        f"Unterminated attribute expression in <{name}> tag", start, n
                    )
                attributes[attr_name] = text[pos + 1 : close - 1].strip()
                pos = close
            else:
                value_end = pos
                while value_end < n and not text[value_end].isspace() and text[value_end] != ">":
                    if text.startswith("/>", value_end):
                        break
                    value_end += 1
                attributes[attr_name] = text[pos:value_end]
                pos = value_end


def _skip_whitespace(text: str, pos: int) -> int:
    n = len(text)
    while pos < n and text[pos].isspace():
        pos += 1
    return pos


def find_raw_text_end(text: str, name: str, start: int) -> Optional[int]:
    """Offset of the ``</name>`` closing a raw-text tag, or None."""
    match = re.compile(rf"</{re.escape(name)}\s*>").search(text, start)
    return match.start() if match else None


def scan(text: str, start: int = 0) -> Iterator[Token]:
    """Lazily tokenize ``text`` starting at ``start``."""
    return TagScanner(text).scan(start)


def scan_tags(text: str) -> List[Tag]:
    """All tag tokens of a document, in source order."""
    tags = [token for token in scan(text) if isinstance(token, Tag)]
    logger.debug(f"Scanned {len(tags)} tags")
    return tags


def _unclosed(tags: List[Tag]) -> List[Tag]:
    """Openings left without a closing tag.

    A reopened tag that may not nest in itself stands in for its missing
    closing tag, so only the outermost unclosed one is reported.
    """
    reported = []
    seen = set()
    for tag in tags:
        if tag.name in NON_NESTING_TAGS and tag.name in seen:
            continue
        seen.add(tag.name)
        reported.append(tag)
    return reported


def match_tags(tags: Iterable[Tag]) -> TagMatch:
    """Pair opening and closing tags with a single nesting stack.

    A closing tag pairs with the innermost open tag of the same name; tags
    opened after that one are left unmatched. A closing tag with no open
    partner is unmatched. Unsupported tags are literal text to the block
    builder, so they are paired on their own stack and never interrupt the
    nesting of supported tags.
    """
    stacks: Dict[bool, List[Tag]] = {True: [], False: []}
    result = TagMatch()

    for tag in tags:
        if tag.is_self_closing:
            continue
        stack = stacks[tag.is_supported]
        if not tag.is_closing:
            stack.append(tag)
            continue
        for depth in range(len(stack) - 1, -1, -1):
            if stack[depth].name == tag.name:
                result.unmatched.extend(_unclosed(stack[depth + 1 :]))
                result.pairs.append(TagPair(stack[depth], tag))
                del stack[depth:]
                break
        else:
            result.unmatched.append(tag)

    for stack in stacks.values():
        result.unmatched.extend(_unclosed(stack))

    result.pairs.sort(key=lambda pair: pair.start)
    result.unmatched.sort(key=lambda tag: tag.start)
    return result
