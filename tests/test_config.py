"""Tests for omnivore_sync.config: env-var config loading and validation.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models). This tests the runtime
bootstrap path: validate_config() and load_config().
"""

import logging

import pytest

from omnivore_sync.config import Config, load_config, validate_config
from omnivore_sync.config_schema import (
    DEFAULT_BASE_URL,
    DEFAULT_ENDPOINT,
    FilterMode,
    HighlightOrder,
)

# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config(): URL format and numeric ranges."""

    def test_defaults_are_valid(self):
        validate_config(Config())

    def test_missing_api_key_is_not_an_error(self):
        config = Config(api_key="   ")
        validate_config(config)
        assert config.api_key == ""

    def test_http_endpoint_valid(self):
        validate_config(Config(endpoint="http://localhost:4000/api/graphql"))

    def test_invalid_endpoint_no_scheme(self):
        with pytest.raises(
            ValueError, match="must start with http:// or https://"
        ):
            validate_config(Config(endpoint="api.omnivore.app"))

    def test_invalid_base_url_ftp_scheme(self):
        with pytest.raises(ValueError, match="base_url"):
            validate_config(Config(base_url="ftp://omnivore.app"))

    def test_empty_host(self):
        with pytest.raises(ValueError, match="hostname"):
            validate_config(Config(endpoint="https://"))

    def test_trailing_slash_stripped(self):
        config = Config(base_url="https://omnivore.app/")
        validate_config(config)
        assert config.base_url == "https://omnivore.app"

    def test_negative_frequency(self):
        with pytest.raises(ValueError, match="frequency"):
            validate_config(Config(frequency=-1))

    def test_zero_frequency_allowed(self):
        validate_config(Config(frequency=0))

    @pytest.mark.parametrize("size", [0, 101])
    def test_page_size_out_of_range(self, size):
        with pytest.raises(ValueError, match="page size"):
            validate_config(Config(page_size=size))

    def test_blank_page_name(self):
        with pytest.raises(ValueError, match="Page name"):
            validate_config(Config(page_name="  "))

    def test_advanced_without_query_logs_warning(self, caplog):
        config = Config(filter=FilterMode.ADVANCED)
        with caplog.at_level(logging.WARNING, logger="omnivore_sync.config"):
            validate_config(config)
        assert "no custom query" in caplog.text

    def test_advanced_with_query_no_warning(self, caplog):
        config = Config(filter=FilterMode.ADVANCED, custom_query="in:inbox")
        with caplog.at_level(logging.WARNING, logger="omnivore_sync.config"):
            validate_config(config)
        assert caplog.text == ""


class TestGraphName:
    def test_configured_graph_wins(self):
        assert Config(graph="notes", outline_path="/x/work.json").graph_name == "notes"

    def test_falls_back_to_outline_stem(self):
        assert Config(outline_path="/x/work.json").graph_name == "work"

    def test_default(self):
        assert Config().graph_name == "default"


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config(): env vars, CLI overrides, parsing."""

    def test_builtin_defaults(self):
        config = load_config()
        assert config.api_key == ""
        assert config.endpoint == DEFAULT_ENDPOINT
        assert config.base_url == DEFAULT_BASE_URL
        assert config.filter == FilterMode.HIGHLIGHTS
        assert config.highlight_order == HighlightOrder.TIME
        assert config.frequency == 60
        assert config.page_size == 50
        assert config.page_name == "Omnivore"

    def test_load_from_env_vars(self, monkeypatch):
        monkeypatch.setenv("OMNIVORE_API_KEY", "env-key")
        monkeypatch.setenv("OMNIVORE_FILTER", "ALL")
        monkeypatch.setenv("OMNIVORE_HIGHLIGHT_ORDER", "location")
        monkeypatch.setenv("OMNIVORE_FREQUENCY", "15")
        monkeypatch.setenv("OMNIVORE_GRAPH", "notes")

        config = load_config()

        assert config.api_key == "env-key"
        assert config.filter == FilterMode.ALL
        assert config.highlight_order == HighlightOrder.LOCATION
        assert config.frequency == 15
        assert config.graph == "notes"

    def test_cli_args_override_env(self, monkeypatch):
        monkeypatch.setenv("OMNIVORE_API_KEY", "env-key")
        monkeypatch.setenv("OMNIVORE_FILTER", "all")

        config = load_config(api_key="cli-key", filter="advanced", custom_query="label:x")

        assert config.api_key == "cli-key"
        assert config.filter == FilterMode.ADVANCED
        assert config.custom_query == "label:x"

    def test_invalid_filter(self, monkeypatch):
        monkeypatch.setenv("OMNIVORE_FILTER", "starred")
        with pytest.raises(ValueError, match="OMNIVORE_FILTER"):
            load_config()

    def test_invalid_order(self):
        with pytest.raises(ValueError, match="all|highlights|location"):
            load_config(highlight_order="random")

    def test_non_numeric_frequency(self, monkeypatch):
        monkeypatch.setenv("OMNIVORE_FREQUENCY", "hourly")
        with pytest.raises(ValueError, match="OMNIVORE_FREQUENCY"):
            load_config()

    def test_page_size_too_high(self, monkeypatch):
        monkeypatch.setenv("OMNIVORE_PAGE_SIZE", "500")
        with pytest.raises(ValueError, match="between 1 and 100"):
            load_config()

    @pytest.mark.parametrize("value", ["true", "1", "YES", "on"])
    def test_debug_truthy_values(self, monkeypatch, value):
        monkeypatch.setenv("OMNIVORE_DEBUG", value)
        assert load_config().debug is True

    def test_debug_default_false(self):
        assert load_config().debug is False

    def test_cli_debug_overrides_env(self, monkeypatch):
        monkeypatch.setenv("OMNIVORE_DEBUG", "false")
        assert load_config(debug=True).debug is True

    def test_load_config_validates(self, monkeypatch):
        monkeypatch.setenv("OMNIVORE_ENDPOINT", "not-a-url")
        with pytest.raises(ValueError, match="endpoint"):
            load_config()


# -------------------------------------------------------------------------
# load_config() with YAML fallbacks
# -------------------------------------------------------------------------


class TestLoadConfigWithYamlFallbacks:
    """Precedence: CLI > env > YAML > default."""

    def test_yaml_fallback_used_when_no_env_or_cli(self):
        config = load_config(
            yaml_fallbacks={
                "api_key": "yaml-key",
                "graph": "notes",
                "page_size": 20,
                "filter": FilterMode.ALL,
            }
        )
        assert config.api_key == "yaml-key"
        assert config.graph == "notes"
        assert config.page_size == 20
        assert config.filter == FilterMode.ALL

    def test_env_var_overrides_yaml_fallback(self, monkeypatch):
        monkeypatch.setenv("OMNIVORE_PAGE_SIZE", "10")
        config = load_config(yaml_fallbacks={"page_size": 20})
        assert config.page_size == 10

    def test_cli_overrides_env_and_yaml(self, monkeypatch):
        monkeypatch.setenv("OMNIVORE_OUTLINE_PATH", "/env/outline.json")
        config = load_config(
            outline_path="/cli/outline.json",
            yaml_fallbacks={"outline_path": "/yaml/outline.json"},
        )
        assert config.outline_path == "/cli/outline.json"

    def test_empty_yaml_fallbacks_same_as_none(self):
        assert load_config(yaml_fallbacks={}) == load_config()
