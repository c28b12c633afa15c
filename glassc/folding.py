"""Folding ranges for matched tag pairs."""

from dataclasses import dataclass
from typing import List

from pydantic import BaseModel

from .diagnostics import offset_to_position
from .scanner import match_tags, scan_tags


@dataclass(frozen=True)
class FoldableTagPair:
    start: int
    closing_start: int


class FoldingRange(BaseModel):
    start_line: int
    end_line: int


def find_foldable_tag_pairs(text: str) -> List[FoldableTagPair]:
    """Every correctly matched open/close pair, outermost first.

    Self-closing and unmatched tags never fold.
    """
    return [
        FoldableTagPair(pair.start, pair.closing_start)
        for pair in match_tags(scan_tags(text)).pairs
    ]


def get_folding_ranges(text: str) -> List[FoldingRange]:
    return [
        FoldingRange(
            start_line=offset_to_position(text, pair.start).line,
            end_line=offset_to_position(text, pair.closing_start).line,
        )
        for pair in find_foldable_tag_pairs(text)
    ]
