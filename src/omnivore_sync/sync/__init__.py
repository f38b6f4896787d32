"""Omnivore to outline sync engine.

Public API for pulling Omnivore articles, highlights and notes into an
outline graph.

Architecture
------------
Sync is one-way and idempotent.  Every remote entity has a stable key that
appears verbatim in its rendered block (article link, highlight back-link,
note text), so a re-run finds the blocks it wrote earlier and refreshes
them in place instead of duplicating them.  Nothing is ever deleted.

Modules:

- ``engine``     -- ``SyncEngine``: one run (anchor, pages, checkpoint);
  ``RunState`` reentrancy guard; ``AnchorNode`` scoped header.
- ``paginator``  -- ``Paginator``: offset pagination over search results.
- ``reconciler`` -- ``Reconciler``: create/update/skip decisions per page.
- ``identity``   -- ``IdentityResolver``: stable-key lookups in the store.
- ``ordering``   -- highlight order by document location or time.
- ``renderer``   -- pure block content rendering.
- ``state``      -- ``SyncState``: JSON watermark checkpoint.
- ``scheduler``  -- ``SyncScheduler``: periodic background runs.
- ``notifier``   -- user-visible notices.
- ``models``     -- entities, enums, ``SyncResult``, ``SyncReport``.
- ``reporter``   -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from omnivore_sync.config import load_config
    from omnivore_sync.core.client import OmnivoreClient
    from omnivore_sync.outline import JsonOutlineStore
    from omnivore_sync.sync import SyncEngine, format_sync_report

    config = load_config()
    store = JsonOutlineStore(Path(config.outline_path))
    engine = SyncEngine(OmnivoreClient(config), store, config)

    report = await engine.run()
    print(format_sync_report(report))
"""

from .engine import AnchorNode, RunState, SyncEngine, SyncSetupError
from .identity import IdentityLookupError, IdentityResolver
from .models import (
    Article,
    EntityKind,
    FilterMode,
    Highlight,
    HighlightOrder,
    Label,
    PageType,
    SyncAction,
    SyncReport,
    SyncResult,
    SyncStatus,
)
from .notifier import LoggingNotifier, Notifier, RecordingNotifier
from .paginator import Paginator, query_from_filter
from .reconciler import Reconciler
from .reporter import format_sync_report, report_to_json
from .scheduler import SyncScheduler
from .state import SyncState

__all__ = [
    "AnchorNode",
    "Article",
    "EntityKind",
    "FilterMode",
    "Highlight",
    "HighlightOrder",
    "IdentityLookupError",
    "IdentityResolver",
    "Label",
    "LoggingNotifier",
    "Notifier",
    "PageType",
    "Paginator",
    "Reconciler",
    "RecordingNotifier",
    "RunState",
    "SyncAction",
    "SyncEngine",
    "SyncReport",
    "SyncResult",
    "SyncScheduler",
    "SyncSetupError",
    "SyncState",
    "SyncStatus",
    "format_sync_report",
    "query_from_filter",
    "report_to_json",
]
