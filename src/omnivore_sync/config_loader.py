"""
Hierarchical YAML configuration loader for omnivore_sync.

Discovers config files by convention, resolves ``!include`` directives and
``${VAR}`` / ``${VAR:-default}`` references, and merges files so that the
project-level file wins over the global one.

Usage:
    from omnivore_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from .config import Config, load_config
from .config_schema import LoggingConfig, build_config, to_fallbacks

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "OMNIVORE_SYNC_CONFIG"
PROJECT_DIR = ".omnivore_sync"

# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} or ${VAR:-default}
_ENV_REF = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    Unset or empty variables expand to *default* when one is given and
    to the empty string otherwise.
    """

    def _sub(match: re.Match) -> str:
        current = os.environ.get(match.group(1))
        if current:
            return current
        return match.group(2) or ""

    return _ENV_REF.sub(_sub, value)


def _interpolate_tree(node: Any) -> Any:
    if isinstance(node, str):
        return interpolate_env_vars(node)
    if isinstance(node, dict):
        return {key: _interpolate_tree(val) for key, val in node.items()}
    if isinstance(node, list):
        return [_interpolate_tree(item) for item in node]
    return node


# ---------------------------------------------------------------------------
# YAML !include support
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """``SafeLoader`` subclass that understands ``!include``.

    Registering the constructor on a subclass leaves the global
    ``yaml.SafeLoader`` untouched.
    """


def _include(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    target = Path(loader.construct_scalar(node))
    if not target.is_absolute():
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    seen: list[Path] = getattr(loader, "_include_stack", [])
    if target in seen:
        chain = " -> ".join(str(p) for p in [*seen, target])
        raise ValueError(f"Circular include detected: {chain}")
    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {Path(loader.name).resolve()})"
        )
    return _load_yaml(target, include_stack=[*seen, target])


ConfigLoader.add_constructor("!include", _include)


def _load_yaml(path: Path, *, include_stack: list[Path] | None = None) -> Any:
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = include_stack or [path]  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``OMNIVORE_SYNC_CONFIG`` env var (explicit single path)
        2. ``.omnivore_sync/config.yml`` in CWD (project-level)
        3. ``~/.config/omnivore_sync/config.yml`` (XDG global)
    """
    candidates: list[Path] = []

    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())

    candidates.append(Path.cwd() / PROJECT_DIR / "config.yml")
    candidates.append(
        Path.home() / ".config" / "omnivore_sync" / "config.yml"
    )

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# omnivore-sync configuration
#
# Values can also come from environment variables, e.g.
#   OMNIVORE_API_KEY, OMNIVORE_FILTER, OMNIVORE_FREQUENCY
#
# omnivore:
#   api_key: ${OMNIVORE_API_KEY}
#
# sync:
#   filter: highlights        # all | highlights | advanced
#   custom_query: ""
#   highlight_order: time     # location | time
#   frequency: 60             # minutes, 0 disables background sync
#
# outline:
#   path: ~/outline/omnivore.json
#   page_name: Omnivore
#   date_format: MMM do, yyyy
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a commented starter if none exists."""
    existing = discover_config_files()
    if existing:
        return existing[0]

    path = target or Path.cwd() / PROJECT_DIR / "config.yml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", path)
    return path


# ---------------------------------------------------------------------------
# Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are applied from lowest precedence to highest and top-level
    sections of a later file replace those of an earlier one.  Env var
    references are expanded after the merge.

    Returns an empty dict when no config files exist (zero-config).
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = _load_yaml(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_tree(merged)


# ---------------------------------------------------------------------------
# Runtime config from every source
# ---------------------------------------------------------------------------


def load_runtime_config(
    overrides: dict[str, Any] | None = None,
) -> tuple[Config, list[str]]:
    """Resolve the runtime ``Config`` from CLI overrides, env and YAML.

    ``load_dotenv()`` must already have been called.

    Returns:
        ``(config, sources)`` where *sources* describes what contributed.

    Raises:
        ValueError: If any configured value is invalid.
    """
    sources: list[str] = []
    yaml_fallbacks: dict[str, Any] | None = None
    config_files = discover_config_files()
    if config_files:
        unified = build_config(load_hierarchical_config())
        yaml_fallbacks = to_fallbacks(unified)
        sources.append(f"config file: {config_files[0]}")

    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    config = load_config(yaml_fallbacks=yaml_fallbacks, **overrides)
    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    return config, sources


def load_logging_config() -> LoggingConfig:
    """Return the ``logging`` section of the YAML config (defaults if absent).

    Invalid or unreadable config files fall back to defaults here; the
    error is reported again when the runtime config is loaded.
    """
    if not discover_config_files():
        return LoggingConfig()
    try:
        return build_config(load_hierarchical_config()).logging
    except (OSError, ValueError, yaml.YAMLError):
        return LoggingConfig()
