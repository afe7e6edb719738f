# src/cogcycle/autonomous/state.py
"""
Durable state for the cognitive cycle.

Two file-backed stores give cross-session continuity.  A single cycle does
not depend on either of them.

- GoalSnapshotStore: the full goal arena plus evaluation trails, written
  atomically (write-then-rename) as one JSON document.  Implements
  ``GoalStorageProtocol`` for ``GoalStore.initialize``/``flush``.
- CycleJournal: append-only JSON Lines log with one cycle result per line.

Example::

    from cogcycle.autonomous.state import CycleJournal, GoalSnapshotStore

    store = GoalStore(storage=GoalSnapshotStore("~/.local/share/cogcycle/goals.json"))
    await store.initialize()

    journal = CycleJournal("~/.local/share/cogcycle/cycles.jsonl")
    await journal.append(result.to_dict())
    last = await journal.last_entry()
"""

from __future__ import annotations

import json
import logging
import os
from collections import deque
from pathlib import Path
from typing import Any

from ..exceptions import PersistenceError
from .goals import Goal, GoalEvaluation, GoalSnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def _expand(path: str | Path) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(str(path))))


# =============================================================================
# Goal Snapshot
# =============================================================================


class GoalSnapshotStore:
    """
    JSON file holding every goal and its evaluations.

    Writes are atomic, so a reader sees either the previous or the new
    snapshot, never a partial file.

    Args:
        path: Snapshot file.  Tilde and environment variables are expanded.
    """

    def __init__(self, path: str | Path = "~/.local/share/cogcycle/goals.json") -> None:
        self._path = _expand(path)

    @property
    def path(self) -> Path:
        return self._path

    async def load_snapshot(self) -> GoalSnapshot:
        """
        Read the snapshot.

        Returns:
            The stored snapshot, or an empty one if the file is missing or corrupt.
        """
        if not self._path.exists():
            logger.debug("Goal snapshot does not exist: %s", self._path)
            return GoalSnapshot()

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            snapshot = GoalSnapshot(
                goals=[Goal.from_dict(g) for g in data.get("goals", [])],
                evaluations=[GoalEvaluation.from_dict(e) for e in data.get("evaluations", [])],
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            logger.error("Corrupt goal snapshot %s: %s; starting empty", self._path, exc)
            return GoalSnapshot()

        logger.debug("Loaded %d goals from %s", len(snapshot.goals), self._path)
        return snapshot

    async def save_snapshot(self, snapshot: GoalSnapshot) -> None:
        """
        Atomically replace the snapshot file.

        Raises:
            PersistenceError: If the snapshot cannot be serialized or the
                file cannot be written.
        """
        tmp_path = self._path.with_suffix(".tmp")
        data = {
            "version": SNAPSHOT_VERSION,
            "goals": [g.to_dict() for g in snapshot.goals],
            "evaluations": [e.to_dict() for e in snapshot.evaluations],
        }
        try:
            payload = json.dumps(data, indent=2)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(
                str(self._path), f"Goal snapshot is not JSON serializable: {exc}"
            ) from exc

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    logger.debug("Could not remove %s", tmp_path)
            raise PersistenceError(str(self._path), f"Failed to save goal snapshot: {exc}") from exc

        logger.debug("Saved %d goals to %s", len(snapshot.goals), self._path)


# =============================================================================
# Cycle Journal
# =============================================================================


class CycleJournal:
    """
    Append-only JSON Lines log of cycle results.

    Args:
        path: Journal file.  Tilde and environment variables are expanded.
    """

    def __init__(self, path: str | Path = "~/.local/share/cogcycle/cycles.jsonl") -> None:
        self._path = _expand(path)

    @property
    def path(self) -> Path:
        return self._path

    async def append(self, entry: dict[str, Any]) -> None:
        """
        Append one entry as a single JSON line.

        Raises:
            PersistenceError: If the journal cannot be written.
        """
        line = json.dumps(entry, default=str, separators=(",", ":"))
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as exc:
            raise PersistenceError(str(self._path), f"Failed to append to journal: {exc}") from exc

    async def read_recent(self, limit: int = 10) -> list[dict[str, Any]]:
        """Last *limit* entries, oldest first.  Unparseable lines are skipped."""
        if limit <= 0 or not self._path.exists():
            return []

        recent: deque[dict[str, Any]] = deque(maxlen=limit)
        with open(self._path, encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    recent.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning("Skipping corrupt journal line %d in %s", lineno, self._path)
        return list(recent)

    async def last_entry(self) -> dict[str, Any] | None:
        entries = await self.read_recent(1)
        return entries[0] if entries else None
