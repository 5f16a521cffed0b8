"""
infrastructure.py

In-memory implementation of all collaborator interfaces and the Unit of Work.

This is a self-contained, zero-dependency backend that stores everything in
plain Python dicts keyed by id.  It is intentionally simple — suitable for
local development, demos, and integration testing without needing a real
document database.

Repositories hand out deep copies, so a caller can only change stored state
through update() / save(), the same way a document store behaves.

To swap in a real database later, implement the same Abstract* interfaces
from application.py and override get_uow() in api.py:

    app.dependency_overrides[get_uow] = lambda: DocumentStoreUnitOfWork(client)

Nothing in service.py, application.py, or api.py needs to change.
"""

from __future__ import annotations

import copy
import dataclasses
import threading
from typing import Any, List, Mapping

from application import (
    AbstractActivityLog,
    AbstractCommentRepository,
    AbstractNotificationSink,
    AbstractProjectRepository,
    AbstractUnitOfWork,
    NotFoundError,
)
from model import Project


_MISSING = object()


# ---------------------------------------------------------------------------
# Generic in-memory store
# ---------------------------------------------------------------------------

class _Store(dict):
    """A plain dict with typed get/save/delete helpers."""

    def fetch(self, key: str):
        obj = self.get(key)
        return copy.deepcopy(obj) if obj is not None else None

    def put(self, obj) -> None:
        self[obj.id] = copy.deepcopy(obj)

    def remove(self, key: str) -> None:
        self.pop(key, None)

    def all(self) -> list:
        return [copy.deepcopy(v) for v in self.values()]


def _matches(obj: Any, filter_spec: Mapping[str, Any]) -> bool:
    """
    Equality match on every key; collection-valued attributes match when
    they contain the filter value.
    """
    for key, expected in filter_spec.items():
        actual = getattr(obj, key, _MISSING)
        if actual is _MISSING:
            return False
        if isinstance(actual, (set, frozenset, list, tuple)):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


# ---------------------------------------------------------------------------
# Shared in-memory database (module-level singleton)
# Persists for the lifetime of the process — restarting uvicorn resets it.
# ---------------------------------------------------------------------------

class InMemoryDatabase:
    def __init__(self):
        self.projects:      _Store = _Store()
        self.comments:      _Store = _Store()
        self.notifications: _Store = _Store()
        self.activities:    _Store = _Store()
        self.lock = threading.RLock()


# Module-level singleton — shared across all requests
_db = InMemoryDatabase()


# ---------------------------------------------------------------------------
# Collaborator implementations
# ---------------------------------------------------------------------------

class InMemoryProjectRepository(AbstractProjectRepository):
    def __init__(self, store: _Store, lock: threading.RLock):
        self._s = store
        self._lock = lock

    def get(self, project_id):
        return self._s.fetch(project_id)

    def create(self, project):
        with self._lock:
            self._s.put(project)
            return self._s.fetch(project.id)

    def update(self, project_id, fields):
        with self._lock:
            current = self._s.get(project_id)
            if current is None:
                raise NotFoundError(f"Project {project_id} not found.")
            updated = dataclasses.replace(current, **dict(fields))
            self._s.put(updated)
            return self._s.fetch(project_id)

    def query(self, filter_spec) -> List[Project]:
        return [p for p in self._s.all() if _matches(p, filter_spec)]

    def delete(self, project_id):
        with self._lock:
            self._s.remove(project_id)


class InMemoryCommentRepository(AbstractCommentRepository):
    def __init__(self, store: _Store): self._s = store
    def get(self, comment_id):        return self._s.fetch(comment_id)
    def list_for_project(self, project_id):
        return [c for c in self._s.all() if c.project_id == project_id]
    def save(self, comment):          self._s.put(comment)


class InMemoryNotificationSink(AbstractNotificationSink):
    def __init__(self, store: _Store): self._s = store
    def send(self, notification):     self._s.put(notification)
    def list_for_recipient(self, actor_id):
        return [n for n in self._s.all() if n.recipient_id == actor_id]


class InMemoryActivityLog(AbstractActivityLog):
    def __init__(self, store: _Store): self._s = store
    def append(self, record):         self._s.put(record)
    def list_for_project(self, project_id):
        return [r for r in self._s.all() if r.project_id == project_id]


# ---------------------------------------------------------------------------
# Unit of Work
# ---------------------------------------------------------------------------

class InMemoryUnitOfWork(AbstractUnitOfWork):
    """
    Wraps all in-memory collaborators.  commit() and rollback() are no-ops
    because dict mutations are immediate — there is no transaction to manage.
    Use cases run every check before their first write, so a rejected
    operation leaves the store untouched.
    """

    def __init__(self, db: InMemoryDatabase = _db):
        self.projects      = InMemoryProjectRepository(db.projects, db.lock)
        self.comments      = InMemoryCommentRepository(db.comments)
        self.notifications = InMemoryNotificationSink(db.notifications)
        self.activities    = InMemoryActivityLog(db.activities)

    def commit(self)   -> None: pass   # no-op for in-memory
    def rollback(self) -> None: pass   # no-op for in-memory
