"""Tests for the pagination driver."""

from __future__ import annotations

import asyncio

import pytest

from omnivore_sync.core.client import OmnivoreError
from omnivore_sync.sync.models import FilterMode
from omnivore_sync.sync.paginator import Paginator, query_from_filter


class FakeOmnivoreClient:
    """Serves pre-built pages and records every request."""

    def __init__(self, pages, fail_at: int | None = None) -> None:
        self.pages = pages
        self.fail_at = fail_at
        self.calls: list[tuple] = []

    def load_articles(self, after, size, updated_since, query):
        self.calls.append((after, size, updated_since, query))
        index = len(self.calls) - 1
        if index == self.fail_at:
            raise OmnivoreError("boom")
        return self.pages[index], index < len(self.pages) - 1


async def _collect(paginator, since=None, query=""):
    return [page async for page in paginator.pages(since, query)]


class TestQueryFromFilter:
    def test_all_is_empty(self):
        assert query_from_filter(FilterMode.ALL) == ""

    def test_highlights_requires_highlights(self):
        assert query_from_filter(FilterMode.HIGHLIGHTS) == "has:highlights"

    def test_advanced_uses_custom_query(self):
        assert (
            query_from_filter(FilterMode.ADVANCED, "  in:archive ")
            == "in:archive"
        )

    def test_advanced_custom_query_ignored_by_other_modes(self):
        assert query_from_filter(FilterMode.ALL, "label:x") == ""


class TestPaginator:
    def test_offset_advances_by_page_size(self, make_article):
        client = FakeOmnivoreClient(
            [[make_article("a")], [make_article("b")], [make_article("c")]]
        )
        pages = asyncio.run(
            _collect(Paginator(client, page_size=2), "2026-01-01", "q")
        )

        assert [[a.slug for a in page] for page in pages] == [["a"], ["b"], ["c"]]
        assert client.calls == [
            (0, 2, "2026-01-01", "q"),
            (2, 2, "2026-01-01", "q"),
            (4, 2, "2026-01-01", "q"),
        ]

    def test_single_page(self):
        client = FakeOmnivoreClient([[]])
        pages = asyncio.run(_collect(Paginator(client)))
        assert pages == [[]]
        assert client.calls == [(0, 50, None, "")]

    def test_request_failure_propagates(self, make_article):
        client = FakeOmnivoreClient(
            [[make_article("a")], [make_article("b")]], fail_at=1
        )
        with pytest.raises(OmnivoreError):
            asyncio.run(_collect(Paginator(client)))
        assert len(client.calls) == 2

    def test_next_page(self, make_article):
        client = FakeOmnivoreClient([[make_article("a")], []])
        articles, more = asyncio.run(
            Paginator(client, 10).next_page(0, None, "")
        )
        assert [a.slug for a in articles] == ["a"]
        assert more is True
