"""Diagnostics for glass documents.

Reports tags without a correctly nested partner, tags outside the supported
vocabulary and the structural problems recorded while building the block
tree. Nothing in this module raises on bad input.
"""

import logging
from dataclasses import dataclass
from typing import List, Literal

from pydantic import BaseModel

from .blocks import parse_glass_ast
from .errors import UNMATCHED, GlassFrontmatterError
from .interpolation import undeclared_references
from .scanner import match_tags, scan_tags

logger = logging.getLogger(__name__)

DIAGNOSTIC_SOURCE = "glass"


@dataclass(frozen=True)
class TagOccurrence:
    """A tag reported by a diagnostic; closing tags are named ``/Name``."""

    tag: str
    start: int

    @property
    def name(self) -> str:
        return self.tag[1:] if self.tag.startswith("/") else self.tag

    @property
    def is_closing(self) -> bool:
        return self.tag.startswith("/")


class Position(BaseModel):
    line: int
    character: int


class Range(BaseModel):
    start: Position
    end: Position


class Diagnostic(BaseModel):
    severity: Literal["error", "warning", "information", "hint"] = "error"
    range: Range
    message: str
    source: str = DIAGNOSTIC_SOURCE


def offset_to_position(text: str, offset: int) -> Position:
    """Zero-based line/character of an offset, clamped to the text."""
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset)
    line_start = text.rfind("\n", 0, offset) + 1
    return Position(line=line, character=offset - line_start)


def make_range(text: str, start: int, end: int) -> Range:
    return Range(start=offset_to_position(text, start), end=offset_to_position(text, end))


def find_unmatched_tags(text: str) -> List[TagOccurrence]:
    """Tags lacking a correctly nested partner, in source order."""
    return [
        TagOccurrence(f"/{tag.name}" if tag.is_closing else tag.name, tag.start)
        for tag in match_tags(scan_tags(text)).unmatched
    ]


def find_unsupported_tags(text: str) -> List[TagOccurrence]:
    """Every tag whose name is outside the supported vocabulary."""
    return [
        TagOccurrence(f"/{tag.name}" if tag.is_closing else tag.name, tag.start)
        for tag in scan_tags(text)
        if not tag.is_supported
    ]


def unmatched_diagnostic(text: str, occurrence: TagOccurrence) -> Diagnostic:
    name = occurrence.name
    length = len(name) + (3 if occurrence.is_closing else 2)
    if occurrence.is_closing:
        message = f"</{name}> tag has no matching <{name}> tag."
    else:
        message = f"<{name}> tag requires a closing </{name}> tag."
    return Diagnostic(
        severity="error",
        range=make_range(text, occurrence.start, occurrence.start + length),
        message=message,
    )


def unsupported_diagnostic(text: str, occurrence: TagOccurrence) -> Diagnostic:
    name_start = occurrence.start + (2 if occurrence.is_closing else 1)
    return Diagnostic(
        severity="error",
        range=make_range(text, name_start, name_start + len(occurrence.name)),
        message=f"Unsupported {occurrence.name} tag.",
    )


def get_diagnostics(text: str) -> List[Diagnostic]:
    """Editor-facing diagnostics payload for a whole document."""
    diagnostics = [unmatched_diagnostic(text, o) for o in find_unmatched_tags(text)]
    diagnostics.extend(unsupported_diagnostic(text, o) for o in find_unsupported_tags(text))

    try:
        document = parse_glass_ast(text)
    except GlassFrontmatterError as e:
        line = (e.line_number or 1) - 1
        diagnostics.append(
            Diagnostic(
                severity="error",
                range=Range(
                    start=Position(line=line, character=0),
                    end=Position(line=line, character=len(e.line or "")),
                ),
                message=e.args[0],
            )
        )
    else:
        # unmatched tags are already reported above
        for issue in document.errors + undeclared_references(document):
            if issue.kind == UNMATCHED:
                continue
            diagnostics.append(
                Diagnostic(
                    severity="warning",
                    range=make_range(text, issue.start, issue.end),
                    message=issue.message,
                )
            )

    logger.debug(f"Computed {len(diagnostics)} diagnostics")
    return diagnostics
