"""Remote task storage backed by Firestore.

Architecture:
- Firestore path: users/{user_id}/todos/{task_id}
- Live updates come from collection snapshot listeners; every callback
  carries the full current snapshot of the user's collection.

The rest of the package talks to the ``TaskStore`` protocol so the
reconciler and gateway can be exercised without a Firestore project.
"""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Protocol

if TYPE_CHECKING:  # pragma: no cover
    from ..config import Settings

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[List[Any]], None]
ErrorCallback = Callable[[BaseException], None]
Unsubscribe = Callable[[], None]


class TaskNotFound(LookupError):
    """Raised when a task document does not exist."""


class TaskStore(Protocol):
    """Per-user task collection with change notifications."""

    def subscribe(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """Listen to the user's collection.

        ``on_snapshot`` receives the full list of document snapshots (objects
        with ``.id`` and ``.to_dict()``) each time the collection changes.
        ``on_error`` is called when the listener fails or ends without a
        call to the returned unsubscribe callable. The unsubscribe callable
        may be invoked from inside ``on_snapshot``.
        """
        ...

    def insert(self, user_id: str, data: Dict[str, Any]) -> str:
        """Add a document and return its store-assigned id."""
        ...

    def get(self, user_id: str, task_id: str) -> Optional[Dict[str, Any]]:
        ...

    def update(self, user_id: str, task_id: str, fields: Dict[str, Any]) -> None:
        """Update fields of an existing document; raises TaskNotFound if absent."""
        ...

    def delete(self, user_id: str, task_id: str) -> None:
        """Delete a document; deleting a missing document is not an error."""
        ...


class FirestoreTaskStore:
    """TaskStore implementation over firebase-admin."""

    def __init__(self, client=None, settings: Optional["Settings"] = None) -> None:
        self._client = client
        self.users_collection = settings.users_collection if settings else "users"
        self.tasks_collection = settings.tasks_collection if settings else "todos"
        self._project_id = settings.project_id if settings else None

    @property
    def client(self):
        if self._client is None:
            from ..firestore import get_firestore_client

            self._client = get_firestore_client(self._project_id)
        return self._client

    def _collection(self, user_id: str):
        return (
            self.client.collection(self.users_collection)
            .document(user_id)
            .collection(self.tasks_collection)
        )

    def subscribe(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        path = f"{self.users_collection}/{user_id}/{self.tasks_collection}"
        closed_locally = threading.Event()
        dispatching = threading.local()

        def _callback(docs, changes, read_time):
            dispatching.active = True
            try:
                on_snapshot(list(docs))
            except Exception as exc:
                on_error(exc)
            finally:
                dispatching.active = False

        def _on_stream_done(result) -> None:
            # The watch closes itself on a helper thread after a non-retryable failure
            if closed_locally.is_set():
                return
            logger.warning(f"[TaskStore] Listener on {path} stopped: {result}")
            if isinstance(result, BaseException):
                on_error(result)
            else:
                on_error(RuntimeError(f"Snapshot listener on {path} stopped"))

        watch = self._collection(user_id).on_snapshot(_callback)
        rpc = getattr(watch, "_rpc", None)
        if rpc is not None:
            rpc.add_done_callback(_on_stream_done)
        logger.debug(f"[TaskStore] Listening to {path}")

        def _unsubscribe() -> None:
            closed_locally.set()
            if getattr(dispatching, "active", False):
                # Closing the watch joins the consumer thread we are running on
                threading.Thread(
                    name="taskaroo-unsubscribe",
                    target=watch.unsubscribe,
                    daemon=True,
                ).start()
                return
            watch.unsubscribe()

        return _unsubscribe

    def insert(self, user_id: str, data: Dict[str, Any]) -> str:
        from firebase_admin import firestore as fb_firestore  # type: ignore

        payload = dict(data)
        payload["createdAt"] = fb_firestore.SERVER_TIMESTAMP
        _, doc_ref = self._collection(user_id).add(payload)
        return doc_ref.id

    def get(self, user_id: str, task_id: str) -> Optional[Dict[str, Any]]:
        doc = self._collection(user_id).document(task_id).get()
        if doc.exists:
            return doc.to_dict()
        return None

    def update(self, user_id: str, task_id: str, fields: Dict[str, Any]) -> None:
        from google.api_core.exceptions import NotFound

        try:
            self._collection(user_id).document(task_id).update(fields)
        except NotFound as exc:
            raise TaskNotFound(task_id) from exc

    def delete(self, user_id: str, task_id: str) -> None:
        self._collection(user_id).document(task_id).delete()
