"""Exception classes and issue records for the glass compiler."""

from dataclasses import dataclass
from typing import Optional


class GlassError(Exception):
    """Base class for all glass compiler errors."""


class GlassFrontmatterError(GlassError):
    """Malformed frontmatter block. This is the only hard parse error."""

    def __init__(self, message: str, line_number: Optional[int] = None, line: Optional[str] = None):
        self.line_number = line_number
        self.line = line
        super().__init__(message)

    def __str__(self):
        parts = [f"Error: {self.args[0]}"]
        if self.line_number is not None:
            parts.append(f"  Line {self.line_number}: {self.line if self.line is not None else ''}")
        return "\n".join(parts)


class GlassTranspileError(GlassError):
    """User-friendly wrapper for failures while transpiling a file on disk."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        file_path: Optional[str] = None,
    ):
        self.original_error = original_error
        self.file_path = file_path
        super().__init__(message)

    def __str__(self):
        parts = [f"Error: {self.args[0]}"]
        if self.file_path:
            parts.append(f"  File: {self.file_path}")
        if self.original_error is not None:
            parts.append(f"  {self.original_error}")
        return "\n".join(parts)


# issue kinds
LEXICAL = "lexical"
STRUCTURAL = "structural"
UNMATCHED = "unmatched"


@dataclass(frozen=True)
class GlassIssue:
    """A recoverable problem found while scanning or building a document.

    Issues never raise; they are attached to the document and surfaced as
    diagnostics by the editor tooling.
    """

    kind: str
    message: str
    start: int
    end: int
    tag: Optional[str] = None
