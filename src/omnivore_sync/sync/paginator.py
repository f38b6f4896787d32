"""Page through Omnivore search results.

The offset advances by the page size after every request and paging stops
as soon as a page reports no further pages.  Request failures propagate;
nothing is retried within a run.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from ..core.async_utils import run_sync
from .models import Article, FilterMode

if TYPE_CHECKING:
    from ..core.client import OmnivoreClient

logger = logging.getLogger(__name__)

HIGHLIGHTS_QUERY = "has:highlights"


def query_from_filter(mode: FilterMode, custom_query: str = "") -> str:
    """Return the search predicate for the selected filter *mode*."""
    match mode:
        case FilterMode.ALL:
            return ""
        case FilterMode.HIGHLIGHTS:
            return HIGHLIGHTS_QUERY
        case FilterMode.ADVANCED:
            return custom_query.strip()
    raise ValueError(f"Unknown filter mode: {mode!r}")


class Paginator:
    """Drive paginated article requests against an ``OmnivoreClient``.

    Args:
        client: Remote source client.
        page_size: Articles requested per page.
    """

    def __init__(self, client: OmnivoreClient, page_size: int = 50) -> None:
        self.client = client
        self.page_size = page_size

    async def next_page(
        self, after: int, since: str | None, query: str
    ) -> tuple[list[Article], bool]:
        """Fetch one page starting at offset *after*."""
        return await run_sync(
            self.client.load_articles, after, self.page_size, since, query
        )

    async def pages(
        self, since: str | None, query: str
    ) -> AsyncIterator[list[Article]]:
        """Yield successive pages until the source reports no more."""
        after = 0
        while True:
            articles, has_more = await self.next_page(after, since, query)
            logger.debug(
                "Page at offset %d: %d articles (more=%s)",
                after,
                len(articles),
                has_more,
            )
            yield articles
            if not has_more:
                return
            after += self.page_size
