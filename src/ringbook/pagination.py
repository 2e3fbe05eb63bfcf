from __future__ import annotations

import math
from typing import Sequence

from .models import Page

CHAR_WIDTH_RATIO = 0.6
LINE_HEIGHT_RATIO = 1.6
HORIZONTAL_MARGIN = 32
VERTICAL_MARGIN = 100
NEWLINE_LOOKAHEAD = 100
PERIOD_LOOKAHEAD = 50
NEWLINE_LOOKBEHIND = 100
_SENTENCE_ENDS = ("。", ".")


def chars_per_page(viewport_width: float, viewport_height: float, font_size: float) -> int:
    if font_size <= 0:
        raise ValueError(f"font_size must be positive, got {font_size}")
    available_width = viewport_width - HORIZONTAL_MARGIN
    available_height = viewport_height - VERTICAL_MARGIN
    per_line = max(1, math.floor(available_width / (font_size * CHAR_WIDTH_RATIO)))
    lines = max(1, math.floor(available_height / (font_size * LINE_HEIGHT_RATIO)))
    return per_line * lines


def _soft_break(content: str, page_start: int, boundary: int) -> int:
    next_newline = content.find("\n", boundary, boundary + NEWLINE_LOOKAHEAD)
    if next_newline != -1:
        return next_newline + 1

    periods = [content.find(mark, boundary, boundary + PERIOD_LOOKAHEAD) for mark in _SENTENCE_ENDS]
    periods = [idx for idx in periods if idx != -1]
    if periods:
        return min(periods) + 1

    prev_newline = content.rfind("\n", max(page_start, boundary - NEWLINE_LOOKBEHIND), boundary)
    if prev_newline != -1 and boundary - prev_newline < NEWLINE_LOOKBEHIND:
        return prev_newline + 1
    return boundary


def paginate(
    content: str,
    viewport_width: float,
    viewport_height: float,
    font_size: float,
) -> list[Page]:
    """
    Split content into pages that fit the viewport at the given font size.

    The page size is an estimate from fixed glyph ratios; each page end is
    nudged to a nearby line break or sentence end when one is close.
    Pages are consecutive, so their texts concatenate to content.
    """
    per_page = chars_per_page(viewport_width, viewport_height, font_size)
    pages: list[Page] = []
    start = 0
    total = len(content)
    while start < total:
        boundary = start + per_page
        end = total if boundary >= total else _soft_break(content, start, boundary)
        pages.append(Page(index=len(pages), text=content[start:end], start=start, end=end))
        start = end
    return pages


def page_for_position(pages: Sequence[Page], position: int) -> int:
    for page in pages:
        if page.start <= position < page.end:
            return page.index
    return pages[-1].index if pages and position >= pages[-1].end else 0


__all__ = [
    "chars_per_page",
    "page_for_position",
    "paginate",
]
