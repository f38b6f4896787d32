"""Pydantic models for the Omnivore sync engine.

Defines the data contracts used across all sync modules:

- ``Article``, ``Highlight``, ``Label``: remote entities as returned by the
  Omnivore search API (camelCase on the wire, snake_case in Python).
- ``PageType``, ``FilterMode``, ``HighlightOrder``: remote and user-facing
  enums.
- ``SyncAction``, ``EntityKind``: per-entity reconciliation decisions.
- ``SyncResult``: outcome of reconciling one article, highlight or note.
- ``SyncReport``: aggregate results for a full sync run.

Result and report models are frozen (immutable).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config_schema import FilterMode, HighlightOrder

__all__ = [
    "Article",
    "EntityKind",
    "FilterMode",
    "Highlight",
    "HighlightOrder",
    "Label",
    "PageType",
    "SyncAction",
    "SyncReport",
    "SyncResult",
    "SyncStatus",
]


class PageType(str, Enum):
    """Omnivore page types.  Only ``FILE`` changes highlight ordering."""

    ARTICLE = "ARTICLE"
    BOOK = "BOOK"
    FILE = "FILE"
    PROFILE = "PROFILE"
    WEBSITE = "WEBSITE"
    TWEET = "TWEET"
    VIDEO = "VIDEO"
    IMAGE = "IMAGE"
    HIGHLIGHTS = "HIGHLIGHTS"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: object) -> PageType:
        """Return the member for *value*, ``UNKNOWN`` if unrecognised."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


class SyncAction(str, Enum):
    """Possible reconciliation decisions for a remote entity."""

    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


class EntityKind(str, Enum):
    """Kind of remote entity a ``SyncResult`` refers to."""

    ARTICLE = "article"
    HIGHLIGHT = "highlight"
    NOTE = "note"


class SyncStatus(str, Enum):
    """Overall outcome of a sync run."""

    COMPLETED = "completed"
    FAILED = "failed"
    BUSY = "busy"
    CONFIG_ERROR = "config_error"


# ---------------------------------------------------------------------------
# Remote entities
# ---------------------------------------------------------------------------


class _RemoteModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True, frozen=True, extra="ignore"
    )


class Label(_RemoteModel):
    """A named tag attached to an article."""

    name: str


class Highlight(_RemoteModel):
    """A user-marked excerpt of an article.

    Attributes:
        id: Stable identifier, used as the dedup key.
        quote: Highlighted text.
        annotation: The user's own note on the highlight, if any.
        patch: Positional descriptor.  A diff-match-patch hunk for web
            pages, a JSON ``{"bbox": [...], "pageNumber": n}`` object for
            files.
        updated_at: ISO 8601 timestamp of the last remote update.
    """

    id: str
    quote: str | None = None
    annotation: str | None = None
    patch: str | None = None
    updated_at: str | None = Field(default=None, alias="updatedAt")
    labels: list[Label] = Field(default_factory=list)

    @field_validator("labels", mode="before")
    @classmethod
    def _null_labels(cls, value):
        return value or []


class Article(_RemoteModel):
    """A saved Omnivore document with metadata and nested highlights."""

    id: str
    slug: str
    title: str = ""
    original_article_url: str = Field(
        default="", alias="originalArticleUrl"
    )
    url: str | None = None
    site_name: str | None = Field(default=None, alias="siteName")
    author: str | None = None
    description: str | None = None
    labels: list[Label] = Field(default_factory=list)
    saved_at: str | None = Field(default=None, alias="savedAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")
    page_type: PageType = Field(default=PageType.UNKNOWN, alias="pageType")
    highlights: list[Highlight] = Field(default_factory=list)

    @field_validator("labels", "highlights", mode="before")
    @classmethod
    def _null_lists(cls, value):
        return value or []

    @field_validator("title", "original_article_url", mode="before")
    @classmethod
    def _null_strings(cls, value):
        return value or ""

    @field_validator("page_type", mode="before")
    @classmethod
    def _parse_page_type(cls, value):
        return PageType.parse(value)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class SyncResult(BaseModel):
    """Result of reconciling one remote entity.

    Attributes:
        kind: Article, highlight or note.
        key: Stable key of the entity (slug, highlight id, note text).
        article_slug: Slug of the owning article.
        action: Reconciliation decision that was taken.
        success: Whether the local mutation succeeded.
        error: Error message if the mutation failed.
    """

    kind: EntityKind
    key: str
    article_slug: str
    action: SyncAction
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a full sync run.

    Attributes:
        graph: Name of the outline graph that was synced.
        status: Overall outcome.
        results: Individual per-entity results.
        pages: Number of remote pages processed.
        watermark_before: Watermark the run requested deltas from.
        watermark_after: Watermark persisted by the run (unchanged on
            failure).
        started_at: ISO 8601 timestamp when sync started.
        completed_at: ISO 8601 timestamp when sync completed.
        error: Error message for failed runs.
    """

    graph: str
    status: SyncStatus
    results: list[SyncResult] = []
    pages: int = 0
    watermark_before: str | None = None
    watermark_after: str | None = None
    started_at: str
    completed_at: str | None = None
    error: str | None = None

    model_config = {"frozen": True}

    def _with_action(self, action: SyncAction) -> list[SyncResult]:
        return [
            r for r in self.results if r.success and r.action == action
        ]

    @property
    def created(self) -> list[SyncResult]:
        """Successful results where action is CREATE."""
        return self._with_action(SyncAction.CREATE)

    @property
    def updated(self) -> list[SyncResult]:
        """Successful results where action is UPDATE."""
        return self._with_action(SyncAction.UPDATE)

    @property
    def skipped(self) -> list[SyncResult]:
        """Successful results where action is SKIP."""
        return self._with_action(SyncAction.SKIP)

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def articles(self) -> list[SyncResult]:
        """Results for article entities."""
        return [r for r in self.results if r.kind == EntityKind.ARTICLE]

    @property
    def ok(self) -> bool:
        return self.status == SyncStatus.COMPLETED

    def summary(self) -> str:
        """Format a human-readable summary of the sync run.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"Sync report for graph '{self.graph}' ({self.status.value})",
            f"  Pages:    {self.pages}",
            f"  Articles: {len(self.articles)}",
            f"  Created:  {len(self.created)}",
            f"  Updated:  {len(self.updated)}",
            f"  Skipped:  {len(self.skipped)}",
            f"  Errors:   {len(self.errors)}",
            f"  Total:    {len(self.results)}",
        ]
        return "\n".join(lines)
