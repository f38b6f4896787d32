from unittest.mock import Mock, patch

import pytest
import requests

from omnivore_sync.core.client import (
    OmnivoreClient,
    OmnivoreError,
    build_search_query,
)
from omnivore_sync.sync.models import PageType


def _response(body=None, status_error=None, json_error=None):
    response = Mock()
    if status_error:
        response.raise_for_status.side_effect = status_error
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = body
    return response


def _search_body(nodes, has_next=False):
    return {
        "data": {
            "search": {
                "edges": [{"node": node} for node in nodes],
                "pageInfo": {"hasNextPage": has_next},
            }
        }
    }


NODE = {
    "id": "a1",
    "title": "Reading Notes",
    "slug": "reading-notes",
    "siteName": None,
    "originalArticleUrl": "https://example.com/post",
    "url": "https://example.com/post",
    "author": "Ada",
    "updatedAt": "2026-03-14T10:00:00.000Z",
    "description": None,
    "savedAt": "2026-03-14T09:26:53.000Z",
    "pageType": "ARTICLE",
    "labels": [{"name": "research"}],
    "highlights": [
        {
            "id": "h1",
            "quote": "A quote",
            "annotation": None,
            "patch": "@@ -1,2 +1,2 @@",
            "updatedAt": "2026-03-14T09:30:00.000Z",
            "labels": None,
        }
    ],
}


# build_search_query tests
def test_search_query_without_watermark():
    assert build_search_query(None, "") == "sort:saved-asc"


def test_search_query_with_watermark_and_filter():
    query = build_search_query("2026-03-01T12:00:00+01:00", " has:highlights ")
    assert query == "updated:2026-03-01T12:00:00+01:00 sort:saved-asc has:highlights"


# OmnivoreClient tests
def test_session_headers(mock_config):
    """Session sends JSON with the raw API key as Authorization."""
    client = OmnivoreClient(mock_config)
    assert client.session.headers["Authorization"] == "test-key"
    assert client.session.headers["Content-Type"] == "application/json"


def test_session_reused_within_thread(mock_config):
    client = OmnivoreClient(mock_config)
    assert client.session is client.session


@patch("omnivore_sync.core.client.requests.Session.post")
def test_search_success(mock_post, mock_config):
    """Search results are parsed into Article models."""
    mock_post.return_value = _response(_search_body([NODE], has_next=True))

    client = OmnivoreClient(mock_config)
    articles, has_next = client.search(0, 50, "sort:saved-asc")

    assert has_next is True
    assert len(articles) == 1
    article = articles[0]
    assert article.slug == "reading-notes"
    assert article.page_type == PageType.ARTICLE
    assert [label.name for label in article.labels] == ["research"]
    assert article.highlights[0].labels == []

    payload = mock_post.call_args.kwargs["json"]
    assert payload["variables"] == {
        "after": "0",
        "first": 50,
        "query": "sort:saved-asc",
    }
    assert mock_post.call_args.args[0] == mock_config.endpoint


@patch("omnivore_sync.core.client.requests.Session.post")
def test_search_empty_result(mock_post, mock_config):
    mock_post.return_value = _response(_search_body([]))

    articles, has_next = OmnivoreClient(mock_config).search(0, 50, "")

    assert articles == []
    assert has_next is False


@patch("omnivore_sync.core.client.requests.Session.post")
def test_search_error_codes(mock_post, mock_config):
    mock_post.return_value = _response(
        {"data": {"search": {"errorCodes": ["UNAUTHORIZED"]}}}
    )

    with pytest.raises(OmnivoreError, match="UNAUTHORIZED"):
        OmnivoreClient(mock_config).search(0, 50, "")


@patch("omnivore_sync.core.client.requests.Session.post")
def test_graphql_errors(mock_post, mock_config):
    mock_post.return_value = _response(
        {"errors": [{"message": "bad query"}], "data": None}
    )

    with pytest.raises(OmnivoreError, match="bad query"):
        OmnivoreClient(mock_config).search(0, 50, "")


@patch("omnivore_sync.core.client.requests.Session.post")
def test_http_error_wrapped(mock_post, mock_config):
    mock_post.return_value = _response(
        status_error=requests.HTTPError("502 Server Error")
    )

    with pytest.raises(OmnivoreError, match="502"):
        OmnivoreClient(mock_config).search(0, 50, "")


@patch("omnivore_sync.core.client.requests.Session.post")
def test_connection_error_wrapped(mock_post, mock_config):
    mock_post.side_effect = requests.ConnectionError("refused")

    with pytest.raises(OmnivoreError, match="request failed"):
        OmnivoreClient(mock_config).search(0, 50, "")


@patch("omnivore_sync.core.client.requests.Session.post")
def test_non_json_response(mock_post, mock_config):
    mock_post.return_value = _response(json_error=ValueError("no json"))

    with pytest.raises(OmnivoreError, match="non-JSON"):
        OmnivoreClient(mock_config).search(0, 50, "")


@patch("omnivore_sync.core.client.requests.Session.post")
def test_missing_data(mock_post, mock_config):
    mock_post.return_value = _response({"data": None})

    with pytest.raises(OmnivoreError, match="no data"):
        OmnivoreClient(mock_config).search(0, 50, "")


@patch("omnivore_sync.core.client.requests.Session.post")
def test_malformed_node(mock_post, mock_config):
    mock_post.return_value = _response(_search_body([{"title": "no id"}]))

    with pytest.raises(OmnivoreError, match="Malformed"):
        OmnivoreClient(mock_config).search(0, 50, "")


@patch("omnivore_sync.core.client.requests.Session.post")
def test_load_articles_builds_delta_query(mock_post, mock_config):
    mock_post.return_value = _response(_search_body([]))

    OmnivoreClient(mock_config).load_articles(
        100, 25, "2026-03-01T12:00:00+00:00", "label:x"
    )

    variables = mock_post.call_args.kwargs["json"]["variables"]
    assert variables["after"] == "100"
    assert variables["first"] == 25
    assert variables["query"] == (
        "updated:2026-03-01T12:00:00+00:00 sort:saved-asc label:x"
    )


@patch("omnivore_sync.core.client.requests.Session.post")
def test_validate_connection(mock_post, mock_config):
    mock_post.return_value = _response(_search_body([NODE]))

    assert OmnivoreClient(mock_config).validate_connection() == 1
    assert mock_post.call_args.kwargs["json"]["variables"]["first"] == 1


@pytest.mark.live
def test_live_validate_connection():
    """Requires LIVE_OMNIVORE_API_KEY in the environment or .env."""
    import os

    from omnivore_sync.config import Config

    api_key = os.getenv("LIVE_OMNIVORE_API_KEY", "")
    if not api_key:
        pytest.skip("LIVE_OMNIVORE_API_KEY not set")
    client = OmnivoreClient(Config(api_key=api_key))
    assert client.validate_connection() in (0, 1)
