"""Shared fixtures: an in-process stand-in for the Firestore task collection."""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from taskaroo.task_store.store import TaskNotFound


@dataclass
class FakeDocument:
    """Mimics a Firestore DocumentSnapshot."""

    id: str
    data: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.data)


@dataclass
class FakeListener:
    user_id: str
    on_snapshot: Callable[[List[Any]], None]
    on_error: Callable[[BaseException], None]
    active: bool = True


@dataclass
class FakeTaskStore:
    """Task store that echoes every write to active listeners, like Firestore."""

    auto_emit: bool = True
    docs: Dict[str, Dict[str, Dict[str, Any]]] = field(default_factory=dict)
    listeners: List[FakeListener] = field(default_factory=list)
    calls: List[tuple] = field(default_factory=list)
    fail_subscribe: Optional[Exception] = None
    fail_writes: Optional[Exception] = None
    _ids: Any = field(default_factory=lambda: itertools.count(1))

    def seed(self, user_id: str, task_id: str, **data: Any) -> None:
        self.docs.setdefault(user_id, {})[task_id] = data

    def snapshot(self, user_id: str) -> List[FakeDocument]:
        return [
            FakeDocument(task_id, dict(data))
            for task_id, data in self.docs.get(user_id, {}).items()
        ]

    def emit(self, user_id: str) -> None:
        for listener in list(self.listeners):
            if listener.active and listener.user_id == user_id:
                listener.on_snapshot(self.snapshot(user_id))

    def active_listeners(self, user_id: Optional[str] = None) -> List[FakeListener]:
        return [
            listener
            for listener in self.listeners
            if listener.active and (user_id is None or listener.user_id == user_id)
        ]

    # TaskStore protocol -------------------------------------------------

    def subscribe(self, user_id, on_snapshot, on_error):
        self.calls.append(("subscribe", user_id))
        if self.fail_subscribe is not None:
            raise self.fail_subscribe
        listener = FakeListener(user_id, on_snapshot, on_error)
        self.listeners.append(listener)
        if self.auto_emit:
            on_snapshot(self.snapshot(user_id))

        def _unsubscribe() -> None:
            listener.active = False
            self.calls.append(("unsubscribe", user_id))

        return _unsubscribe

    def insert(self, user_id, data):
        self.calls.append(("insert", user_id, dict(data)))
        if self.fail_writes is not None:
            raise self.fail_writes
        task_id = f"task-{next(self._ids)}"
        payload = dict(data)
        payload["createdAt"] = datetime.now(timezone.utc)
        self.docs.setdefault(user_id, {})[task_id] = payload
        self.emit(user_id)
        return task_id

    def get(self, user_id, task_id):
        self.calls.append(("get", user_id, task_id))
        data = self.docs.get(user_id, {}).get(task_id)
        return dict(data) if data is not None else None

    def update(self, user_id, task_id, fields):
        self.calls.append(("update", user_id, task_id, dict(fields)))
        if self.fail_writes is not None:
            raise self.fail_writes
        user_docs = self.docs.get(user_id, {})
        if task_id not in user_docs:
            raise TaskNotFound(task_id)
        user_docs[task_id].update(fields)
        self.emit(user_id)

    def delete(self, user_id, task_id):
        self.calls.append(("delete", user_id, task_id))
        if self.fail_writes is not None:
            raise self.fail_writes
        if self.docs.get(user_id, {}).pop(task_id, None) is not None:
            self.emit(user_id)


@pytest.fixture
def store() -> FakeTaskStore:
    return FakeTaskStore()


@pytest.fixture
def clean_env(monkeypatch):
    """Unset TASKAROO_* variables and restore them (even ones set from .env) afterwards."""
    for name in (
        "TASKAROO_ENV",
        "TASKAROO_USERS_COLLECTION",
        "TASKAROO_TASKS_COLLECTION",
        "TASKAROO_SORT_MODE",
        "TASKAROO_USER_ID",
        "TASKAROO_LOG_LEVEL",
        "GOOGLE_CLOUD_PROJECT",
    ):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch
