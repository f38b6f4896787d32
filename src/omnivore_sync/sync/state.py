"""Sync checkpoint persistence.

Each graph (profile) gets one JSON state file ``sync_{profile}.json`` in
the state directory::

    {
      "version": 1,
      "profile": "notes",
      "sync_at": "2026-03-14T09:26:53",
      "last_sync": "2026-03-14T08:26:53.120934+00:00"
    }

``sync_at`` is the watermark: the local time at which the last completed
run started, formatted ``%Y-%m-%dT%H:%M:%S``.  An empty string means no
run has completed yet, and the next run requests everything.

Writes are atomic (temp file + ``os.replace()``) so a crash mid-write
never leaves a truncated checkpoint behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

WATERMARK_FORMAT = "%Y-%m-%dT%H:%M:%S"


def format_watermark(moment: datetime) -> str:
    """Format *moment* as a local-time watermark string."""
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.strftime(WATERMARK_FORMAT)


class SyncState:
    """Load, save, and query the sync checkpoint for a profile.

    Args:
        state_dir: Directory where state files are stored
            (typically ``.omnivore_sync/``).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self, profile_name: str) -> dict:
        """Load the state for *profile_name*.

        Returns an empty state (no watermark) when no file exists yet.
        """
        path = self._state_path(profile_name)
        if not path.exists():
            return self._empty(profile_name)
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)

    def save(self, profile_name: str, state: dict) -> None:
        """Persist *state* atomically and stamp ``last_sync`` (UTC)."""
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state["last_sync"] = datetime.now(timezone.utc).isoformat()

        target = self._state_path(profile_name)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # Watermark
    # ------------------------------------------------------------------

    @staticmethod
    def watermark(state: dict) -> str:
        return state.get("sync_at") or ""

    @classmethod
    def since_iso(cls, state: dict) -> str | None:
        """Return the watermark as ISO 8601 with offset, or ``None``.

        An unparseable watermark is treated as absent (full refresh).
        """
        raw = cls.watermark(state)
        if not raw:
            return None
        try:
            moment = datetime.strptime(raw, WATERMARK_FORMAT)
        except ValueError:
            logger.warning("Ignoring malformed watermark %r", raw)
            return None
        return moment.astimezone().isoformat()

    def commit(self, profile_name: str, started_at: datetime) -> str:
        """Advance the watermark to *started_at* and persist it.

        Returns the stored watermark string.
        """
        state = self.load(profile_name)
        state["sync_at"] = format_watermark(started_at)
        self.save(profile_name, state)
        logger.info(
            "Watermark for %s advanced to %s", profile_name, state["sync_at"]
        )
        return state["sync_at"]

    def reset(self, profile_name: str) -> None:
        """Clear the watermark so the next run is a full refresh."""
        state = self.load(profile_name)
        state["sync_at"] = ""
        self.save(profile_name, state)
        logger.info("Watermark for %s cleared", profile_name)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _empty(profile_name: str) -> dict:
        return {
            "version": 1,
            "profile": profile_name,
            "sync_at": "",
            "last_sync": None,
        }

    def _state_path(self, profile_name: str) -> Path:
        return self._state_dir / f"sync_{profile_name}.json"


class MemorySyncState(SyncState):
    """Checkpoint kept in process memory.

    Used with an in-memory outline, so the watermark is discarded together
    with the blocks it covers when the process exits.
    """

    def __init__(self) -> None:
        super().__init__(Path("."))
        self._states: dict[str, dict] = {}

    def load(self, profile_name: str) -> dict:
        state = self._states.get(profile_name)
        if state is None:
            return self._empty(profile_name)
        return dict(state)

    def save(self, profile_name: str, state: dict) -> None:
        state["last_sync"] = datetime.now(timezone.utc).isoformat()
        self._states[profile_name] = dict(state)
