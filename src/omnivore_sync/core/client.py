"""Omnivore GraphQL API client."""

import logging
import threading
from typing import Any

import requests
from pydantic import ValidationError

from ..config import Config
from ..sync.models import Article

logger = logging.getLogger(__name__)

SEARCH_QUERY = """
query Search($after: String, $first: Int, $query: String) {
  search(first: $first, after: $after, query: $query) {
    ... on SearchSuccess {
      edges {
        node {
          id
          title
          slug
          siteName
          originalArticleUrl
          url
          author
          updatedAt
          description
          savedAt
          pageType
          labels {
            name
          }
          highlights {
            id
            quote
            annotation
            patch
            updatedAt
            labels {
              name
            }
          }
        }
      }
      pageInfo {
        hasNextPage
      }
    }
    ... on SearchError {
      errorCodes
    }
  }
}
"""


class OmnivoreError(Exception):
    """Raised when the Omnivore API request fails or returns an error."""


def build_search_query(updated_since: str | None, query: str) -> str:
    """Build the Omnivore search string for a delta request.

    Results are always requested oldest-saved first so that a page never
    shifts under the offset while a run is paging through it.
    """
    parts = []
    if updated_since:
        parts.append(f"updated:{updated_since}")
    parts.append("sort:saved-asc")
    if query and query.strip():
        parts.append(query.strip())
    return " ".join(parts)


class OmnivoreClient:
    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Content-Type": "application/json",
                "Authorization": self.config.api_key,
            }
        )
        return session

    def _graphql(self, query: str, variables: dict[str, Any]) -> dict:
        """POST a GraphQL request and return its ``data`` object."""
        try:
            response = self._get_session().post(
                self.config.endpoint,
                json={"query": query, "variables": variables},
                timeout=(10, 60),
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise OmnivoreError(f"Omnivore request failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise OmnivoreError(
                "Omnivore returned a non-JSON response"
            ) from e

        errors = body.get("errors")
        if errors:
            messages = "; ".join(
                str(err.get("message", err)) for err in errors
            )
            raise OmnivoreError(f"Omnivore GraphQL error: {messages}")

        data = body.get("data")
        if not isinstance(data, dict):
            raise OmnivoreError("Omnivore response has no data")
        return data

    def search(
        self, after: int, first: int, query: str
    ) -> tuple[list[Article], bool]:
        """
        Run one page of an Omnivore search.

        Returns:
            ``(articles, has_next_page)``
        """
        data = self._graphql(
            SEARCH_QUERY,
            {"after": str(after), "first": first, "query": query},
        )
        search = data.get("search") or {}

        error_codes = search.get("errorCodes")
        if error_codes:
            raise OmnivoreError(
                f"Omnivore search failed: {', '.join(error_codes)}"
            )

        try:
            articles = [
                Article.model_validate(edge["node"])
                for edge in search.get("edges") or []
            ]
        except (KeyError, TypeError, ValidationError) as e:
            raise OmnivoreError(f"Malformed search result: {e}") from e

        has_next = bool((search.get("pageInfo") or {}).get("hasNextPage"))
        logger.debug(
            "Fetched %d articles after=%s (has_next=%s)",
            len(articles),
            after,
            has_next,
        )
        return articles, has_next

    def load_articles(
        self,
        after: int,
        size: int,
        updated_since: str | None,
        query: str,
    ) -> tuple[list[Article], bool]:
        """
        Load a page of articles changed since *updated_since*.
        """
        return self.search(
            after, size, build_search_query(updated_since, query)
        )

    def validate_connection(self) -> int:
        """
        Validate the API key by requesting a single article.
        Returns the number of articles returned (0 or 1).
        """
        articles, _ = self.search(0, 1, "")
        return len(articles)
