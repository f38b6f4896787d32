"""Reconcile pages of remote articles into the outline.

For every article in a page the ``Reconciler`` decides whether to create
a new block, update an existing one in place, or leave it alone:

1. Resolve the article block by slug.
2. Unknown article: render the whole subtree (article, ordered
   highlights, notes) and stage it.  Staged articles are inserted once per
   page as the first children of the anchor block, newest first.
3. Known article: refresh its content in place, then for each highlight
   refresh or insert it, and refresh or insert its note.  Blocks the user
   added under a highlight are never touched, and nothing is ever deleted.

Error handling is per-article: a failed mutation is logged and recorded in
the results next to the changes already applied, and the page continues.
Identity lookup failures and a failed batch insertion abort the page
instead.
"""

from __future__ import annotations

import logging

from ..config import Config
from ..outline.store import Block, BlockSpec, OutlineStore
from .identity import IdentityLookupError, IdentityResolver
from .models import (
    Article,
    EntityKind,
    Highlight,
    SyncAction,
    SyncResult,
)
from .ordering import order_highlights
from .renderer import (
    build_article_block,
    build_highlight_block,
    render_article,
    render_highlight,
    render_note,
)

logger = logging.getLogger(__name__)


class Reconciler:
    """Converge the outline towards the remote articles.

    Args:
        store: Outline store to mutate.
        config: Runtime configuration (base URL, date format, ordering).
        identity: Identity resolver; built from *store* when omitted.
    """

    def __init__(
        self,
        store: OutlineStore,
        config: Config,
        identity: IdentityResolver | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.identity = identity or IdentityResolver(store, config.base_url)

    # ------------------------------------------------------------------
    # Page
    # ------------------------------------------------------------------

    async def reconcile_page(
        self, articles: list[Article], anchor: Block
    ) -> list[SyncResult]:
        """Reconcile one page of *articles* under the *anchor* block.

        Raises:
            IdentityLookupError: If the store cannot answer a lookup.
            Exception: If inserting the page's new-article batch fails.
        """
        results: list[SyncResult] = []
        batch: list[BlockSpec] = []
        staged: list[Article] = []

        for article in articles:
            highlights = order_highlights(
                article.highlights,
                article.page_type,
                self.config.highlight_order,
            )
            existing = await self.identity.find_article(article)

            if existing is None:
                batch.insert(
                    0,
                    build_article_block(
                        article,
                        highlights,
                        base_url=self.config.base_url,
                        date_format=self.config.date_format,
                    ),
                )
                staged.append(article)
                continue

            try:
                await self._update_article(
                    existing, article, highlights, results
                )
            except IdentityLookupError:
                raise
            except Exception as exc:
                logger.error(
                    "Error syncing article %s: %s", article.slug, exc
                )
                results.append(
                    SyncResult(
                        kind=EntityKind.ARTICLE,
                        key=article.slug,
                        article_slug=article.slug,
                        action=SyncAction.UPDATE,
                        success=False,
                        error=str(exc),
                    )
                )

        if batch:
            await self.store.insert_batch(
                anchor.uuid, batch, sibling=False, before=True
            )
            logger.info("Inserted %d new articles", len(batch))
            for article in staged:
                results.extend(_created_results(article))

        return results

    # ------------------------------------------------------------------
    # Known article
    # ------------------------------------------------------------------

    async def _update_article(
        self,
        block: Block,
        article: Article,
        highlights: list[Highlight],
        results: list[SyncResult],
    ) -> None:
        """Refresh a known article, appending to *results* as each change lands."""
        await self.store.update_block(
            block.uuid,
            render_article(
                article,
                base_url=self.config.base_url,
                date_format=self.config.date_format,
            ),
        )
        results.append(
            _result(EntityKind.ARTICLE, article.slug, article, SyncAction.UPDATE)
        )
        for highlight in highlights:
            await self._sync_highlight(block, article, highlight, results)

    async def _sync_highlight(
        self,
        article_block: Block,
        article: Article,
        highlight: Highlight,
        results: list[SyncResult],
    ) -> None:
        existing = await self.identity.find_highlight(
            article_block, highlight
        )

        if existing is None:
            await self.store.insert_batch(
                article_block.uuid,
                [
                    build_highlight_block(
                        highlight,
                        article.slug,
                        base_url=self.config.base_url,
                    )
                ],
                sibling=False,
            )
            results.append(
                _result(EntityKind.HIGHLIGHT, highlight.id, article, SyncAction.CREATE)
            )
            if highlight.annotation:
                results.append(
                    _result(EntityKind.NOTE, highlight.id, article, SyncAction.CREATE)
                )
            return

        await self.store.update_block(
            existing.uuid,
            render_highlight(
                highlight, article.slug, base_url=self.config.base_url
            ),
        )
        results.append(
            _result(EntityKind.HIGHLIGHT, highlight.id, article, SyncAction.UPDATE)
        )

        note = render_note(highlight)
        if note is None:
            # Local notes under the highlight are left as they are.
            results.append(
                _result(EntityKind.NOTE, highlight.id, article, SyncAction.SKIP)
            )
            return

        note_block = await self.identity.find_note(existing, highlight)
        if note_block is not None:
            await self.store.update_block(note_block.uuid, note)
            action = SyncAction.UPDATE
        else:
            await self.store.insert_block(existing.uuid, note, sibling=False)
            action = SyncAction.CREATE
        results.append(_result(EntityKind.NOTE, highlight.id, article, action))


def _result(
    kind: EntityKind, key: str, article: Article, action: SyncAction
) -> SyncResult:
    return SyncResult(
        kind=kind, key=key, article_slug=article.slug, action=action
    )


def _created_results(article: Article) -> list[SyncResult]:
    results = [
        _result(EntityKind.ARTICLE, article.slug, article, SyncAction.CREATE)
    ]
    for highlight in article.highlights:
        results.append(
            _result(EntityKind.HIGHLIGHT, highlight.id, article, SyncAction.CREATE)
        )
        if highlight.annotation:
            results.append(
                _result(EntityKind.NOTE, highlight.id, article, SyncAction.CREATE)
            )
    return results
