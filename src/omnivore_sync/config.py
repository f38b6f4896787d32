"""Runtime configuration for the Omnivore sync.

Reads settings from CLI args, environment variables, .env files, and YAML
config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    OMNIVORE_API_KEY: Omnivore API key (checked when a sync runs)
    OMNIVORE_ENDPOINT: GraphQL endpoint (optional)
    OMNIVORE_BASE_URL: Omnivore web app URL used in links (optional)
    OMNIVORE_FILTER: all | highlights | advanced (optional, default: highlights)
    OMNIVORE_CUSTOM_QUERY: Raw search query for the advanced filter (optional)
    OMNIVORE_HIGHLIGHT_ORDER: location | time (optional, default: time)
    OMNIVORE_FREQUENCY: Minutes between background syncs, 0 disables (optional, default: 60)
    OMNIVORE_PAGE_SIZE: Articles per page (optional, default: 50)
    OMNIVORE_GRAPH: Graph name the scheduler syncs into (optional)
    OMNIVORE_OUTLINE_PATH: Outline JSON file (optional)
    OMNIVORE_PAGE_NAME: Page holding the articles (optional, default: Omnivore)
    OMNIVORE_DATE_FORMAT: date_saved display format (optional, default: MMM do, yyyy)
    OMNIVORE_STATE_DIR: Directory for the sync watermark (optional, default: .omnivore_sync)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from .config_schema import (
    DEFAULT_BASE_URL,
    DEFAULT_DATE_FORMAT,
    DEFAULT_ENDPOINT,
    DEFAULT_PAGE_NAME,
    DEFAULT_STATE_DIR,
    FilterMode,
    HighlightOrder,
)

logger = logging.getLogger(__name__)


@dataclass
class Config:
    api_key: str = ""
    endpoint: str = DEFAULT_ENDPOINT
    base_url: str = DEFAULT_BASE_URL
    filter: FilterMode = FilterMode.HIGHLIGHTS
    custom_query: str = ""
    highlight_order: HighlightOrder = HighlightOrder.TIME
    frequency: int = 60
    page_size: int = 50
    graph: str = ""
    outline_path: str = ""
    page_name: str = DEFAULT_PAGE_NAME
    date_format: str = DEFAULT_DATE_FORMAT
    state_dir: str = DEFAULT_STATE_DIR
    debug: bool = False

    @property
    def graph_name(self) -> str:
        """Configured graph, falling back to the outline file stem."""
        if self.graph:
            return self.graph
        if self.outline_path:
            return Path(self.outline_path).stem
        return "default"


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    A missing API key is *not* an error here: it is reported to the user
    when a sync is attempted, before anything is mutated.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the endpoint or base URL is malformed, or a
            numeric setting is out of range.
    """
    config.api_key = config.api_key.strip()

    for field_name in ("endpoint", "base_url"):
        value = getattr(config, field_name).strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid {field_name} '{value}': must start with http:// or https://"
            )
        if not urlparse(value).hostname:
            raise ValueError(
                f"Invalid {field_name} '{value}': URL must include a hostname"
            )
        setattr(config, field_name, value.removesuffix("/"))

    if config.frequency < 0:
        raise ValueError(
            f"Invalid frequency {config.frequency}: must be 0 (disabled) or a positive number of minutes"
        )

    if not (1 <= config.page_size <= 100):
        raise ValueError(
            f"Invalid page size {config.page_size}: must be a number between 1 and 100"
        )

    if not config.page_name.strip():
        raise ValueError("Page name cannot be empty.")

    if config.filter == FilterMode.ADVANCED and not config.custom_query.strip():
        logger.warning(
            "Advanced filter selected but no custom query set; all articles will be requested"
        )


def _parse_enum(enum_cls, raw, env_key: str):
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        raise ValueError(
            f"Invalid {env_key} '{raw}': must be one of {choices}"
        ) from None


def _parse_int(raw, env_key: str, minimum: int, maximum: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError(
            f"Invalid {env_key} '{raw}': must be a number between {minimum} and {maximum}"
        ) from None
    if not (minimum <= value <= maximum):
        raise ValueError(
            f"Invalid {env_key} '{raw}': must be a number between {minimum} and {maximum}"
        )
    return value


def load_config(
    api_key: str | None = None,
    filter: str | None = None,
    custom_query: str | None = None,
    highlight_order: str | None = None,
    outline_path: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        api_key: Override API key.
        filter: Override filter mode (``all``, ``highlights``, ``advanced``).
        custom_query: Override the advanced search query.
        highlight_order: Override highlight ordering (``location``, ``time``).
        outline_path: Override the outline JSON file.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML config file
            (see ``config_schema.to_fallbacks``).  Used when CLI arg and
            env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a configured value is invalid.
    """
    fb = yaml_fallbacks or {}

    def pick(cli_value, env_key: str, fb_key: str, default):
        if cli_value not in (None, ""):
            return cli_value
        env_val = os.getenv(env_key)
        if env_val not in (None, ""):
            return env_val
        if fb.get(fb_key) not in (None, ""):
            return fb[fb_key]
        return default

    # --- String fields: CLI > env > YAML > default ---

    final_api_key = pick(api_key, "OMNIVORE_API_KEY", "api_key", "")
    final_endpoint = pick(
        None, "OMNIVORE_ENDPOINT", "endpoint", DEFAULT_ENDPOINT
    )
    final_base_url = pick(
        None, "OMNIVORE_BASE_URL", "base_url", DEFAULT_BASE_URL
    )
    final_query = pick(
        custom_query, "OMNIVORE_CUSTOM_QUERY", "custom_query", ""
    )
    final_graph = pick(None, "OMNIVORE_GRAPH", "graph", "")
    final_outline = pick(
        outline_path, "OMNIVORE_OUTLINE_PATH", "outline_path", ""
    )
    final_page = pick(
        None, "OMNIVORE_PAGE_NAME", "page_name", DEFAULT_PAGE_NAME
    )
    final_date_format = pick(
        None, "OMNIVORE_DATE_FORMAT", "date_format", DEFAULT_DATE_FORMAT
    )
    final_state_dir = pick(
        None, "OMNIVORE_STATE_DIR", "state_dir", DEFAULT_STATE_DIR
    )

    # --- Enum fields ---

    final_filter = _parse_enum(
        FilterMode,
        pick(filter, "OMNIVORE_FILTER", "filter", FilterMode.HIGHLIGHTS),
        "OMNIVORE_FILTER",
    )
    final_order = _parse_enum(
        HighlightOrder,
        pick(
            highlight_order,
            "OMNIVORE_HIGHLIGHT_ORDER",
            "highlight_order",
            HighlightOrder.TIME,
        ),
        "OMNIVORE_HIGHLIGHT_ORDER",
    )

    # --- Numeric fields: env > YAML > default ---

    final_frequency = _parse_int(
        pick(None, "OMNIVORE_FREQUENCY", "frequency", 60),
        "OMNIVORE_FREQUENCY",
        0,
        60 * 24 * 7,
    )
    final_page_size = _parse_int(
        pick(None, "OMNIVORE_PAGE_SIZE", "page_size", 50),
        "OMNIVORE_PAGE_SIZE",
        1,
        100,
    )

    # --- Boolean fields: CLI > env > default ---

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("OMNIVORE_DEBUG")
        final_debug = env_debug is not None and env_debug.lower() in (
            "true",
            "1",
            "yes",
            "on",
        )

    config = Config(
        api_key=str(final_api_key),
        endpoint=str(final_endpoint),
        base_url=str(final_base_url),
        filter=final_filter,
        custom_query=str(final_query),
        highlight_order=final_order,
        frequency=final_frequency,
        page_size=final_page_size,
        graph=str(final_graph),
        outline_path=str(final_outline),
        page_name=str(final_page),
        date_format=str(final_date_format),
        state_dir=str(final_state_dir),
        debug=final_debug,
    )

    validate_config(config)

    return config
