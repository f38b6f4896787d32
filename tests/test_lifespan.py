"""Tests for omnivore_sync.mcp.lifespan: server startup/shutdown lifecycle.

Tests build_context() and the server_lifespan() async context manager which:
- Loads config from every source (with optional CLI overrides)
- Wires the outline store, sync engine and scheduler
- Starts the periodic scheduler and a background startup sync
- Fails fast on config errors
- Prints status messages to stderr
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from omnivore_sync.config import Config
from omnivore_sync.mcp.lifespan import SyncContext, build_context, server_lifespan
from omnivore_sync.outline.store import JsonOutlineStore
from omnivore_sync.sync.models import SyncStatus
from omnivore_sync.sync.paginator import Paginator

# -------------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------------


class FakeOmnivoreClient:
    def __init__(self, articles) -> None:
        self.articles = articles

    def load_articles(self, after, size, updated_since, query):
        return self.articles, False


def _make_config(tmp_path, **overrides):
    defaults = {
        "api_key": "test-key",
        "graph": "notes",
        "outline_path": str(tmp_path / "notes.json"),
        "state_dir": str(tmp_path / "state"),
        "frequency": 60,
    }
    defaults.update(overrides)
    return Config(**defaults)


def _patch_config(config, sources=None):
    return patch(
        "omnivore_sync.mcp.lifespan.load_runtime_config",
        return_value=(config, sources or ["environment variables"]),
    )


def _enter(startup_sync=False, overrides=None):
    """Enter and exit the lifespan, returning what was observed inside."""

    async def _run():
        async with server_lifespan(overrides, startup_sync=startup_sync) as ctx:
            running = ctx.scheduler.running
        return ctx, running

    return asyncio.run(_run())


# -------------------------------------------------------------------------
# build_context()
# -------------------------------------------------------------------------


class TestBuildContext:
    def test_wires_engine_and_scheduler(self, tmp_path):
        config = _make_config(tmp_path)

        ctx = build_context(config)

        assert isinstance(ctx, SyncContext)
        assert ctx.engine.store.name == "notes"
        assert ctx.engine.notifier is ctx.notifier
        assert ctx.scheduler.frequency == 60
        assert ctx.scheduler.graph_matches()

    def test_graph_defaults_to_outline_stem(self, tmp_path):
        config = _make_config(tmp_path, graph="")

        ctx = build_context(config)

        assert ctx.engine.store.name == "notes"
        assert ctx.engine.profile == "notes"

    def test_in_memory_outline_warns(self, tmp_path, caplog):
        config = _make_config(tmp_path, outline_path="")

        with caplog.at_level("WARNING"):
            ctx = build_context(config)

        assert "in memory" in caplog.text
        assert ctx.engine.store.name == "notes"

    def test_in_memory_outline_keeps_watermark_in_memory(
        self, tmp_path, make_article
    ):
        config = _make_config(tmp_path, outline_path="")

        first = build_context(config)
        first.engine.paginator = Paginator(
            FakeOmnivoreClient([make_article("a")]), config.page_size
        )
        report = asyncio.run(first.engine.run())

        assert report.status == SyncStatus.COMPLETED
        assert first.engine.watermark() != ""
        assert not (tmp_path / "state").exists()
        assert build_context(config).engine.watermark() == ""

    def test_graph_name_read_from_outline_file(self, tmp_path):
        path = tmp_path / "personal.json"
        JsonOutlineStore(path, name="home").flush()
        config = _make_config(tmp_path, graph="work", outline_path=str(path))

        ctx = build_context(config)

        assert ctx.engine.store.name == "home"
        assert not ctx.scheduler.graph_matches()
        assert asyncio.run(ctx.scheduler.run_once()) is None
        assert not (tmp_path / "state").exists()


# -------------------------------------------------------------------------
# server_lifespan(): successful startup
# -------------------------------------------------------------------------


class TestServerLifespanSuccess:
    def test_successful_startup(self, tmp_path):
        config = _make_config(tmp_path)

        with _patch_config(config), patch("omnivore_sync.mcp.lifespan.load_dotenv"):
            ctx, running = _enter()

        assert ctx.config is config
        assert running is True
        assert ctx.scheduler.running is False

    def test_overrides_passed_through(self, tmp_path):
        config = _make_config(tmp_path)
        overrides = {"api_key": "cli-key"}

        with _patch_config(config) as mock_load, patch(
            "omnivore_sync.mcp.lifespan.load_dotenv"
        ):
            _enter(overrides=overrides)

        mock_load.assert_called_once_with(overrides)

    def test_startup_sync_runs_in_background(self, tmp_path):
        config = _make_config(tmp_path)

        with (
            _patch_config(config),
            patch("omnivore_sync.mcp.lifespan.load_dotenv"),
            patch(
                "omnivore_sync.mcp.lifespan.SyncScheduler.run_startup_sync",
                new_callable=AsyncMock,
            ) as mock_startup,
        ):

            async def _run():
                async with server_lifespan(startup_sync=True):
                    await asyncio.sleep(0)

            asyncio.run(_run())

        mock_startup.assert_awaited_once()

    def test_no_startup_sync_without_api_key(self, tmp_path, capsys):
        config = _make_config(tmp_path, api_key="")

        with (
            _patch_config(config),
            patch("omnivore_sync.mcp.lifespan.load_dotenv"),
            patch(
                "omnivore_sync.mcp.lifespan.SyncScheduler.run_startup_sync",
                new_callable=AsyncMock,
            ) as mock_startup,
        ):
            _enter(startup_sync=True)

        mock_startup.assert_not_called()
        assert "OMNIVORE_API_KEY is not set" in capsys.readouterr().err

    def test_zero_frequency_leaves_scheduler_idle(self, tmp_path):
        config = _make_config(tmp_path, frequency=0)

        with _patch_config(config), patch("omnivore_sync.mcp.lifespan.load_dotenv"):
            _, running = _enter()

        assert running is False

    def test_stderr_messages(self, tmp_path, capsys):
        config = _make_config(tmp_path)

        with _patch_config(config), patch("omnivore_sync.mcp.lifespan.load_dotenv"):
            _enter()

        err = capsys.readouterr().err
        assert "Omnivore Sync MCP Server starting..." in err
        assert "Configuration loaded from: environment variables" in err
        assert "Graph: notes, page: Omnivore" in err
        assert "Server ready." in err
        assert "shutting down" in err


# -------------------------------------------------------------------------
# server_lifespan(): config errors
# -------------------------------------------------------------------------


class TestServerLifespanConfigError:
    def test_config_error_raises_runtime_error(self, capsys):
        with (
            patch(
                "omnivore_sync.mcp.lifespan.load_runtime_config",
                side_effect=ValueError("Invalid OMNIVORE_FILTER 'x'"),
            ),
            patch("omnivore_sync.mcp.lifespan.load_dotenv"),
        ):
            with pytest.raises(RuntimeError, match="Invalid OMNIVORE_FILTER"):
                _enter()

        assert "ERROR: Configuration error" in capsys.readouterr().err
