"""
Optimistic task board cache.

Task mutations land in a per-project cache immediately and are then
reconciled against the database. Every mutation moves through explicit
states:

    Pending(snapshot, changes)  →  Committed(confirmed)
                                →  RolledBack(snapshot, error)

A Pending mutation has already been applied to the cache; readers see the
optimistic values until the store confirms (Committed, cache holds the
confirmed rows) or refuses (RolledBack, cache restored to the snapshot).
A ``None`` value in ``changes`` means the task is removed from the board.

Writers racing on the same task are last-write-wins; there is no version
check.

Usage:
    from qaboard.services.optimistic_cache import get_board_cache, reconcile

    cache = get_board_cache(project_id)
    result = reconcile(cache, {task.id: optimistic_dict}, persist=_save)
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Union

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from qaboard.core.exceptions import ReconciliationFailure
from qaboard.models import db

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Mutation states
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Pending:
    project_id: int
    changes: dict
    snapshot: dict

    state = "pending"

    @property
    def entity_ids(self) -> list:
        return list(self.changes)


@dataclass(frozen=True)
class Committed:
    project_id: int
    confirmed: dict

    state = "committed"


@dataclass(frozen=True)
class RolledBack:
    project_id: int
    snapshot: dict
    error: Exception | None = None

    state = "rolled_back"


Mutation = Union[Pending, Committed, RolledBack]


# ═════════════════════════════════════════════════════════════════════════════
# Per-project cache
# ═════════════════════════════════════════════════════════════════════════════

_MISSING = object()


@dataclass
class TaskBoardCache:
    """In-memory view of one project's tasks, keyed by task id."""
    project_id: int
    entries: dict = field(default_factory=dict)
    primed: bool = False
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def prime(self, rows):
        """Replace the cache content with authoritative rows (dicts)."""
        with self._lock:
            self.entries = {r["id"]: copy.deepcopy(r) for r in rows}
            self.primed = True

    def get(self, entity_id):
        return copy.deepcopy(self.entries.get(entity_id))

    def values(self) -> list[dict]:
        with self._lock:
            return [copy.deepcopy(v) for v in self.entries.values()]

    def by_status(self, status_key: str) -> list[dict]:
        rows = [v for v in self.values() if v.get("status") == status_key]
        return sorted(rows, key=lambda r: (r.get("order") or 0, r.get("id") or 0))

    # ── transitions ──────────────────────────────────────────────────────

    def apply(self, changes: dict) -> Pending:
        """Snapshot the affected entries, then apply ``changes`` optimistically."""
        with self._lock:
            snapshot = {}
            for key in changes:
                old = self.entries.get(key, _MISSING)
                snapshot[key] = old if old is _MISSING else copy.deepcopy(old)
            self._write(changes)
            return Pending(self.project_id, copy.deepcopy(changes), snapshot)

    def commit(self, mutation: Pending, confirmed: dict | None = None) -> Committed:
        """Store the confirmed values (defaults to the optimistic ones)."""
        if not isinstance(mutation, Pending):
            raise ValueError(f"Cannot commit a {mutation.state} mutation")
        confirmed = mutation.changes if confirmed is None else confirmed
        with self._lock:
            self._write(confirmed)
        return Committed(self.project_id, copy.deepcopy(confirmed))

    def rollback(self, mutation: Pending, error: Exception | None = None) -> RolledBack:
        """Restore every entry touched by ``mutation`` to its snapshot."""
        if not isinstance(mutation, Pending):
            raise ValueError(f"Cannot roll back a {mutation.state} mutation")
        with self._lock:
            for key, old in mutation.snapshot.items():
                if old is _MISSING:
                    self.entries.pop(key, None)
                else:
                    self.entries[key] = copy.deepcopy(old)
        return RolledBack(self.project_id, mutation.snapshot, error)

    def _write(self, changes: dict):
        for key, value in changes.items():
            if value is None:
                self.entries.pop(key, None)
            else:
                self.entries[key] = copy.deepcopy(value)


class BoardCacheRegistry:
    """All project caches of one application."""

    def __init__(self):
        self._caches: dict[int, TaskBoardCache] = {}
        self._lock = threading.Lock()

    def for_project(self, project_id: int) -> TaskBoardCache:
        with self._lock:
            cache = self._caches.get(project_id)
            if cache is None:
                cache = self._caches[project_id] = TaskBoardCache(project_id)
            return cache

    def drop(self, project_id: int):
        with self._lock:
            self._caches.pop(project_id, None)

    def clear(self):
        with self._lock:
            self._caches.clear()


def init_board_cache(app):
    app.extensions["task_board_cache"] = BoardCacheRegistry()


_fallback_registry = BoardCacheRegistry()


def _registry() -> BoardCacheRegistry:
    if has_app_context() and "task_board_cache" in current_app.extensions:
        return current_app.extensions["task_board_cache"]
    return _fallback_registry


def get_board_cache(
    project_id: int,
    loader: Callable[[], list] | None = None,
    refresh: bool = False,
) -> TaskBoardCache:
    """Return the project's cache, priming it from ``loader``.

    The cache is primed on first use, and again on every call with
    ``refresh=True`` so rows written by other processes show up.
    """
    cache = _registry().for_project(project_id)
    if loader is not None and (refresh or not cache.primed):
        cache.prime(loader())
    return cache


def drop_board_cache(project_id: int):
    """Forget a project's cache, e.g. once the project is deleted."""
    _registry().drop(project_id)


# ═════════════════════════════════════════════════════════════════════════════
# Reconciliation
# ═════════════════════════════════════════════════════════════════════════════

def reconcile(
    cache: TaskBoardCache,
    changes: dict,
    persist: Callable[[], dict | None],
    entity: str = "Task",
) -> Committed:
    """Apply ``changes`` to the cache, persist, then commit or roll back.

    ``persist`` writes and commits the database session and returns the
    confirmed values (or None to keep the optimistic ones).

    Raises:
        ReconciliationFailure: the store refused the write; the session and
            the cache are both rolled back before this propagates.
        Any other exception raised by ``persist`` after rolling the cache back.
    """
    mutation = cache.apply(changes)
    entity_id = next(iter(changes), None) if len(changes) == 1 else None
    try:
        confirmed = persist()
    except SQLAlchemyError as exc:
        db.session.rollback()
        cache.rollback(mutation, exc)
        logger.warning(
            "Rolled back optimistic %s update ids=%s: %s",
            entity, mutation.entity_ids, exc,
            extra={"project_id": cache.project_id, "task_id": entity_id},
        )
        raise ReconciliationFailure(entity, entity_id, exc) from exc
    except Exception:
        cache.rollback(mutation)
        raise
    return cache.commit(mutation, confirmed)
