"""Sync run orchestration.

The ``SyncEngine`` ties together the checkpoint, paginator, reconciler and
anchor block into one run:

1. Reject the run when no API key is configured (``config_error``).
2. Reject the run when another one is active (``busy``).
3. Load the watermark and derive the search predicate.
4. Acquire the anchor block and mark it as fetching.
5. Reconcile every page until the source reports no more pages.
6. Restore the anchor header (on every exit path).
7. Advance the watermark to the run's start time, only on success.

A failure at any step after 3 produces a ``failed`` report and leaves the
watermark untouched, so the next run asks for the same window again.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from ..config import Config
from ..core.async_utils import run_sync
from ..outline.store import Block, OutlineStore
from .models import SyncReport, SyncResult, SyncStatus
from .notifier import LoggingNotifier, Notifier
from .paginator import Paginator, query_from_filter
from .reconciler import Reconciler
from .state import SyncState

if TYPE_CHECKING:
    from ..core.client import OmnivoreClient

logger = logging.getLogger(__name__)

FETCHING_TITLE = "🚀 Fetching articles ..."
HEADER_TITLE = "## 🔖 Articles"

MISSING_KEY_NOTICE = "Missing Omnivore api key"
START_NOTICE = "🚀 Fetching articles ..."
SUCCESS_NOTICE = "🔖 Articles fetched"
FAILURE_NOTICE = "Failed to fetch articles"


class SyncSetupError(Exception):
    """Raised when the anchor page or block cannot be established."""


class RunState:
    """Reentrancy guard shared by everything that can start a run.

    Only one run may be active at a time; ``try_begin()`` returns ``False``
    instead of blocking when one already is.
    """

    def __init__(self) -> None:
        self._active = False
        self.started_at: str | None = None
        self.last_report: SyncReport | None = None

    @property
    def active(self) -> bool:
        return self._active

    def try_begin(self) -> bool:
        if self._active:
            return False
        self._active = True
        self.started_at = datetime.now(timezone.utc).isoformat()
        return True

    def end(self, report: SyncReport | None = None) -> None:
        self._active = False
        self.started_at = None
        if report is not None:
            self.last_report = report


class AnchorNode:
    """Scoped hold on the block new articles are inserted under.

    On entry the page is found or created, its first block is taken (or
    appended) and set to the fetching marker.  On exit the block is reset
    to the articles header, whether the body succeeded or raised.
    """

    def __init__(self, store: OutlineStore, page_name: str) -> None:
        self.store = store
        self.page_name = page_name
        self.block: Block | None = None

    async def __aenter__(self) -> Block:
        try:
            page = await self.store.get_page(self.page_name)
            if page is None:
                await self.store.create_page(self.page_name)
            blocks = await self.store.page_blocks(self.page_name)
            if blocks:
                block = blocks[0]
                await self.store.update_block(block.uuid, FETCHING_TITLE)
            else:
                block = await self.store.append_block(
                    self.page_name, FETCHING_TITLE
                )
        except Exception as exc:
            raise SyncSetupError(
                f"Could not prepare page '{self.page_name}': {exc}"
            ) from exc
        self.block = block
        return block

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if self.block is None:
            return False
        try:
            await self.store.update_block(self.block.uuid, HEADER_TITLE)
        except Exception as restore_exc:
            logger.error(
                "Failed to restore header of page '%s': %s",
                self.page_name,
                restore_exc,
            )
            if exc is None:
                raise
        return False


class SyncEngine:
    """Run Omnivore to outline syncs for one graph.

    Args:
        client: Omnivore API client.
        store: Outline store holding the graph.
        config: Runtime configuration.
        run_state: Shared reentrancy guard; a private one when omitted.
        notifier: Destination for user-visible notices.
        state_store: Checkpoint store; defaults to ``config.state_dir``.
    """

    def __init__(
        self,
        client: OmnivoreClient,
        store: OutlineStore,
        config: Config,
        *,
        run_state: RunState | None = None,
        notifier: Notifier | None = None,
        state_store: SyncState | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.config = config
        self.run_state = run_state or RunState()
        self.notifier = notifier or LoggingNotifier()
        self.state_store = state_store or SyncState(
            Path(config.state_dir).expanduser()
        )
        self.paginator = Paginator(client, config.page_size)
        self.reconciler = Reconciler(store, config)

    @property
    def profile(self) -> str:
        return self.config.graph_name

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def run(self, in_background: bool = False) -> SyncReport:
        """Execute one sync run.

        Args:
            in_background: Suppress start, success and failure notices
                (scheduled runs).

        Returns:
            A ``SyncReport``; this method does not raise for run failures.
        """
        started = datetime.now(timezone.utc)

        if not self.config.api_key:
            self.notifier.notify(MISSING_KEY_NOTICE, "warning")
            return self._report(
                SyncStatus.CONFIG_ERROR, started, error=MISSING_KEY_NOTICE
            )

        if not self.run_state.try_begin():
            logger.info("Sync already in progress; skipping")
            return self._report(
                SyncStatus.BUSY, started, error="sync already in progress"
            )

        report = None
        try:
            report = await self._run(started, in_background)
            return report
        finally:
            self.run_state.end(report)

    async def _run(
        self, started: datetime, in_background: bool
    ) -> SyncReport:
        results: list[SyncResult] = []
        pages = 0
        watermark: str | None = None

        if not in_background:
            self.notifier.notify(START_NOTICE, "info")

        try:
            state = await run_sync(self.state_store.load, self.profile)
            watermark = SyncState.watermark(state)
            since = SyncState.since_iso(state)
            query = query_from_filter(
                self.config.filter, self.config.custom_query
            )
            logger.info(
                "Sync started for %s (since=%s, query=%r)",
                self.profile,
                since or "beginning",
                query,
            )
            async with AnchorNode(self.store, self.config.page_name) as anchor:
                async for articles in self.paginator.pages(since, query):
                    pages += 1
                    results.extend(
                        await self.reconciler.reconcile_page(articles, anchor)
                    )
            committed = await run_sync(
                self.state_store.commit, self.profile, started
            )
        except Exception as exc:
            logger.error("Sync failed for %s: %s", self.profile, exc)
            if not in_background:
                self.notifier.notify(FAILURE_NOTICE, "error")
            return self._report(
                SyncStatus.FAILED,
                started,
                results=results,
                pages=pages,
                watermark_before=watermark,
                watermark_after=watermark,
                error=str(exc),
            )

        report = self._report(
            SyncStatus.COMPLETED,
            started,
            results=results,
            pages=pages,
            watermark_before=watermark,
            watermark_after=committed,
        )
        logger.info(
            "Sync completed for %s: %d created, %d updated, %d errors",
            self.profile,
            len(report.created),
            len(report.updated),
            len(report.errors),
        )
        if not in_background:
            self.notifier.notify(SUCCESS_NOTICE, "success")
        return report

    # ------------------------------------------------------------------
    # Checkpoint helpers
    # ------------------------------------------------------------------

    def watermark(self) -> str:
        return SyncState.watermark(self.state_store.load(self.profile))

    async def reset(self) -> bool:
        """Clear the watermark.  Returns ``False`` while a run is active.

        Holds the run guard for the duration of the write, so a run cannot
        start and commit over the cleared watermark.
        """
        if not self.run_state.try_begin():
            return False
        try:
            await run_sync(self.state_store.reset, self.profile)
        finally:
            self.run_state.end()
        return True

    def _report(
        self, status: SyncStatus, started: datetime, **fields
    ) -> SyncReport:
        return SyncReport(
            graph=self.profile,
            status=status,
            started_at=started.isoformat(),
            completed_at=datetime.now(timezone.utc).isoformat(),
            **fields,
        )
