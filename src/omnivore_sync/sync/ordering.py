"""Highlight ordering within one article.

Two policies are supported:

- ``HighlightOrder.TIME`` keeps the order Omnivore returned (update time).
- ``HighlightOrder.LOCATION`` sorts by position in the source document.

For web pages the position comes from the highlight's ``patch``, a
diff-match-patch hunk whose header (``@@ -start,len +start,len @@``)
carries the character offset of the highlight.  For files (PDFs) the
``patch`` is a JSON descriptor ``{"bbox": [left, top, ...],
"pageNumber": n}`` and highlights sort by page, then top, then left.

Decoding is an explicit step returning ``Located`` or ``Fallback``; a web
highlight whose patch cannot be decoded is compared the way file
highlights are, and anything still undecodable sorts last.  The highlight
``id`` is always the final tie-break, so the order is total.
"""

from __future__ import annotations

import functools
import json
import logging
import math
import re
from dataclasses import dataclass

from .models import Highlight, HighlightOrder, PageType

logger = logging.getLogger(__name__)

_HUNK_HEADER = re.compile(r"^@@ -(\d+),?(\d*) \+(\d+),?(\d*) @@")

_NOWHERE = (math.inf, math.inf, math.inf)


@dataclass(frozen=True)
class Located:
    """Successfully decoded web location (0-based character offset)."""

    offset: int


@dataclass(frozen=True)
class Fallback:
    """Location could not be decoded."""

    reason: str


WebLocation = Located | Fallback


def decode_web_location(patch: str | None) -> WebLocation:
    """Decode the start offset of the first hunk in a diff-match-patch patch.

    Follows diff-match-patch's ``patch_fromText`` conversion of the 1-based
    header coordinates into a 0-based start.
    """
    if not patch:
        return Fallback("empty patch")
    header = patch.lstrip().split("\n", 1)[0]
    match = _HUNK_HEADER.match(header)
    if match is None:
        return Fallback(f"invalid patch header: {header[:40]!r}")
    start = int(match.group(1))
    length = match.group(2)
    if length != "0":
        start -= 1
    return Located(max(start, 0))


def decode_file_location(
    patch: str | None,
) -> tuple[float, float, float] | None:
    """Decode ``(page, top, left)`` from a file highlight's JSON descriptor.

    Returns ``None`` when the descriptor is missing or malformed.
    """
    if not patch:
        return None
    try:
        data = json.loads(patch)
        bbox = data["bbox"]
        return (
            float(data["pageNumber"]),
            float(bbox[1]),
            float(bbox[0]),
        )
    except (ValueError, TypeError, KeyError, IndexError):
        return None


def _file_point(highlight: Highlight) -> tuple[float, float, float]:
    point = decode_file_location(highlight.patch)
    return point if point is not None else _NOWHERE


def highlight_sort_key(
    highlight: Highlight, page_type: PageType
) -> tuple:
    """Return the location-policy sort key for *highlight*.

    Keys share one shape ``(tier, offset, file_point, id)`` so that keys
    of decoded and fallback highlights stay comparable.
    """
    if page_type == PageType.FILE:
        return (0, 0, _file_point(highlight), highlight.id)

    match decode_web_location(highlight.patch):
        case Located(offset=offset):
            return (0, offset, (0.0, 0.0, 0.0), highlight.id)
        case Fallback(reason=reason):
            logger.debug(
                "Highlight %s location fallback: %s", highlight.id, reason
            )
            return (1, 0, _file_point(highlight), highlight.id)


def compare_highlights(
    a: Highlight, b: Highlight, page_type: PageType
) -> int:
    """Three-way compare two highlights of the same article by location."""
    key_a = highlight_sort_key(a, page_type)
    key_b = highlight_sort_key(b, page_type)
    return (key_a > key_b) - (key_a < key_b)


def order_highlights(
    highlights: list[Highlight],
    page_type: PageType,
    policy: HighlightOrder,
) -> list[Highlight]:
    """Return *highlights* ordered according to *policy*.

    ``TIME`` returns the remote order unchanged.  The input list is never
    mutated.
    """
    if policy != HighlightOrder.LOCATION:
        return list(highlights)
    return sorted(
        highlights,
        key=functools.cmp_to_key(
            lambda a, b: compare_highlights(a, b, page_type)
        ),
    )
