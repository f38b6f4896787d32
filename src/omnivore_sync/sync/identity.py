"""Stable identity lookup of remote entities in the outline store.

Each remote entity has a key that appears verbatim in its rendered block:

- article: the article link target ``(<base>/me/<slug>)``;
- highlight: the back-link fragment ``#<id>)``, searched only inside the
  article's block;
- note: the literal annotation text, matched exactly among the
  highlight block's descendants.

Lookups never mutate anything.  When more than one block matches, the
first one (outline order) wins and the duplicate is logged; this module
does not try to repair it.  Any store failure is re-raised as
``IdentityLookupError`` so the caller can abort instead of guessing.
"""

from __future__ import annotations

import logging

from ..outline.store import Block, OutlineStore
from .models import Article, Highlight
from .renderer import article_url, render_note

logger = logging.getLogger(__name__)


class IdentityLookupError(Exception):
    """Raised when the outline store cannot answer an identity lookup."""


class IdentityResolver:
    """Find the outline block that already represents a remote entity.

    Args:
        store: Outline store to query.
        base_url: Omnivore web URL used in rendered article links.
    """

    def __init__(self, store: OutlineStore, base_url: str) -> None:
        self.store = store
        self.base_url = base_url

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def article_key(self, slug: str) -> str:
        return f"({article_url(slug, self.base_url)})"

    @staticmethod
    def highlight_key(highlight_id: str) -> str:
        return f"#{highlight_id})"

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find(
        self,
        key: str,
        *,
        within: str | None = None,
        exact: bool = False,
    ) -> Block | None:
        """Return the first block matching *key*, or ``None``.

        Raises:
            IdentityLookupError: If the store query fails.
        """
        try:
            matches = await self.store.query_blocks(
                key, within=within, exact=exact
            )
        except Exception as exc:
            raise IdentityLookupError(
                f"Lookup of {key!r} failed: {exc}"
            ) from exc

        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(
                "%d blocks match %r; using the first (%s)",
                len(matches),
                key,
                matches[0].uuid,
            )
        return matches[0]

    async def find_article(self, article: Article) -> Block | None:
        return await self.find(self.article_key(article.slug))

    async def find_highlight(
        self, article_block: Block, highlight: Highlight
    ) -> Block | None:
        return await self.find(
            self.highlight_key(highlight.id), within=article_block.uuid
        )

    async def find_note(
        self, highlight_block: Block, highlight: Highlight
    ) -> Block | None:
        note = render_note(highlight)
        if note is None:
            return None
        return await self.find(note, within=highlight_block.uuid, exact=True)
