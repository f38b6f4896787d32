"""Unified configuration schema for omnivore_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the Omnivore connection, sync behaviour, the target outline
and logging.  Includes an adapter that folds the YAML values into the
flat ``Config`` dataclass used at runtime.

Usage:
    from omnivore_sync.config_schema import (
        UnifiedConfig, build_config, to_fallbacks,
    )

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api-prod.omnivore.app/api/graphql"
DEFAULT_BASE_URL = "https://omnivore.app"
DEFAULT_PAGE_NAME = "Omnivore"
DEFAULT_DATE_FORMAT = "MMM do, yyyy"
DEFAULT_STATE_DIR = ".omnivore_sync"


class FilterMode(str, Enum):
    """Which articles to request from Omnivore."""

    ALL = "all"
    HIGHLIGHTS = "highlights"
    ADVANCED = "advanced"


class HighlightOrder(str, Enum):
    """How highlights are ordered under their article."""

    LOCATION = "location"
    TIME = "time"


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class OmnivoreConfig(BaseModel):
    """Omnivore API connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    api_key: str | None = Field(
        default=None, description="Omnivore API key"
    )
    endpoint: str | None = Field(
        default=None, description="Omnivore GraphQL endpoint"
    )
    base_url: str | None = Field(
        default=None, description="Omnivore web app URL used in links"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """What to sync and how often."""

    filter: FilterMode | None = Field(
        default=None, description="Search filter mode"
    )
    custom_query: str | None = Field(
        default=None,
        description="Raw Omnivore search query for the advanced filter",
    )
    highlight_order: HighlightOrder | None = Field(
        default=None, description="Ordering policy for new highlights"
    )
    frequency: int | None = Field(
        default=None,
        ge=0,
        description="Minutes between background syncs (0 disables)",
    )
    page_size: int | None = Field(
        default=None,
        ge=1,
        le=100,
        description="Articles requested per page (1-100)",
    )
    state_dir: str | None = Field(
        default=None, description="Directory holding the sync watermark"
    )

    model_config = {"frozen": True}


class OutlineConfig(BaseModel):
    """Target outline graph settings."""

    graph: str | None = Field(
        default=None, description="Graph the articles are synced into"
    )
    path: str | None = Field(
        default=None, description="Outline JSON file path"
    )
    page_name: str | None = Field(
        default=None, description="Page holding the synced articles"
    )
    date_format: str | None = Field(
        default=None, description="Date display format for date_saved"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unset keeps the per-mode default.
        file: Optional log file path.
    """

    level: str | None = Field(default=None, description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    omnivore: OmnivoreConfig = Field(default_factory=OmnivoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    outline: OutlineConfig = Field(default_factory=OutlineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> load_config fallbacks
# ---------------------------------------------------------------------------


def to_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten a ``UnifiedConfig`` into the ``yaml_fallbacks`` dict that
    ``load_config()`` accepts.

    Only values that are actually set are included, so env vars and
    built-in defaults still apply to everything else.  Keys match the
    ``Config`` dataclass field names.

    Args:
        unified: The unified config produced by ``build_config()``.

    Returns:
        Dict of non-None config values.
    """
    flat: dict[str, Any] = {
        "api_key": unified.omnivore.api_key,
        "endpoint": unified.omnivore.endpoint,
        "base_url": unified.omnivore.base_url,
        "filter": unified.sync.filter,
        "custom_query": unified.sync.custom_query,
        "highlight_order": unified.sync.highlight_order,
        "frequency": unified.sync.frequency,
        "page_size": unified.sync.page_size,
        "state_dir": unified.sync.state_dir,
        "graph": unified.outline.graph,
        "outline_path": unified.outline.path,
        "page_name": unified.outline.page_name,
        "date_format": unified.outline.date_format,
    }
    return {k: v for k, v in flat.items() if v is not None}
