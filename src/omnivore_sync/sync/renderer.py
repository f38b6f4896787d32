"""Render Omnivore entities into outline block content.

All functions here are pure: the same input always yields byte-identical
output, which is what makes re-running a sync converge instead of
duplicating.  Malformed optional fields are dropped from the output
rather than raising.

Article block::

    [Title](https://omnivore.app/me/<slug>)
    collapsed:: true
    site:: [example.com](https://www.example.com/x)
    author:: Jane Doe
    labels:: [[news]],[[tech]]
    date_saved:: [[Mar 14th, 2026]]

Highlight block (with property ``id``)::

    >> quoted text [⤴️](https://omnivore.app/me/<slug>#<highlight id>)

Note block: the raw annotation text, as the only child of its highlight.
"""

from __future__ import annotations

import re
from datetime import datetime
from urllib.parse import urlparse

from ..config_schema import DEFAULT_BASE_URL, DEFAULT_DATE_FORMAT
from ..outline.store import BlockSpec
from .models import Article, Highlight

# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------


def site_name_from_url(url: str | None) -> str:
    """Return the URL's hostname without a leading ``www.``; ``""`` on failure."""
    if not url:
        return ""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return ""
    if not hostname:
        return ""
    return re.sub(r"^www\.", "", hostname)


def article_url(slug: str, base_url: str = DEFAULT_BASE_URL) -> str:
    return f"{base_url.rstrip('/')}/me/{slug}"


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed); ``None`` if invalid."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed
    return parsed.astimezone()


# ---------------------------------------------------------------------------
# Date display formats
# ---------------------------------------------------------------------------

# Longest tokens first so that "MMMM" wins over "MM".
_DATE_TOKEN = re.compile(
    r"'[^']*'|yyyy|yy|MMMM|MMM|MM|M|do|dd|d|EEEE|EEE|E"
)


def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def format_date(value: datetime, pattern: str = DEFAULT_DATE_FORMAT) -> str:
    """Format *value* using a date-fns style *pattern*.

    Supports the tokens outline tools use for journal page titles:
    ``yyyy yy MMMM MMM MM M do dd d EEEE EEE E`` and ``'quoted'`` literals.
    Month and weekday names are English regardless of locale.
    """

    def _token(match: re.Match) -> str:
        token = match.group(0)
        if token.startswith("'"):
            return token[1:-1]
        match token:
            case "yyyy":
                return f"{value.year:04d}"
            case "yy":
                return f"{value.year % 100:02d}"
            case "MMMM":
                return _MONTHS[value.month - 1]
            case "MMM":
                return _MONTHS[value.month - 1][:3]
            case "MM":
                return f"{value.month:02d}"
            case "M":
                return str(value.month)
            case "do":
                return _ordinal(value.day)
            case "dd":
                return f"{value.day:02d}"
            case "d":
                return str(value.day)
            case "EEEE":
                return _WEEKDAYS[value.weekday()]
            case "EEE" | "E":
                return _WEEKDAYS[value.weekday()][:3]
        return token

    return _DATE_TOKEN.sub(_token, pattern)


def date_page_link(value: datetime, pattern: str = DEFAULT_DATE_FORMAT) -> str:
    """Return the ``[[journal page]]`` reference for *value*."""
    return f"[[{format_date(value, pattern)}]]"


_MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


# ---------------------------------------------------------------------------
# Entity rendering
# ---------------------------------------------------------------------------


def render_article(
    article: Article,
    *,
    base_url: str = DEFAULT_BASE_URL,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> str:
    """Render the content of an article block."""
    lines = [
        f"[{article.title}]({article_url(article.slug, base_url)})",
        "collapsed:: true",
    ]

    site = article.site_name or site_name_from_url(
        article.original_article_url
    )
    if site:
        lines.append(f"site:: [{site}]({article.original_article_url})")

    if article.author:
        lines.append(f"author:: {article.author}")

    names = sorted(
        {label.name for label in article.labels if label.name},
        key=lambda name: (name.lower(), name),
    )
    if names:
        lines.append("labels:: " + ",".join(f"[[{n}]]" for n in names))

    saved = parse_timestamp(article.saved_at)
    if saved is not None:
        lines.append(f"date_saved:: {date_page_link(saved, date_format)}")

    return "\n".join(lines)


def render_highlight(
    highlight: Highlight,
    article_slug: str,
    *,
    base_url: str = DEFAULT_BASE_URL,
) -> str:
    """Render the content of a highlight block."""
    link = f"{article_url(article_slug, base_url)}#{highlight.id}"
    return f">> {highlight.quote or ''} [⤴️]({link})"


def render_note(highlight: Highlight) -> str | None:
    """Render the note block content, or ``None`` when there is no annotation."""
    if not highlight.annotation:
        return None
    return highlight.annotation


def build_highlight_block(
    highlight: Highlight,
    article_slug: str,
    *,
    base_url: str = DEFAULT_BASE_URL,
) -> BlockSpec:
    """Build the highlight subtree (highlight plus optional note child)."""
    note = render_note(highlight)
    return BlockSpec(
        content=render_highlight(highlight, article_slug, base_url=base_url),
        properties={"id": highlight.id},
        children=[BlockSpec(content=note)] if note is not None else [],
    )


def build_article_block(
    article: Article,
    highlights: list[Highlight],
    *,
    base_url: str = DEFAULT_BASE_URL,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> BlockSpec:
    """Build the full article subtree from already-ordered *highlights*."""
    return BlockSpec(
        content=render_article(
            article, base_url=base_url, date_format=date_format
        ),
        children=[
            build_highlight_block(h, article.slug, base_url=base_url)
            for h in highlights
        ],
    )
