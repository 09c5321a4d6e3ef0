"""Live task list reconciliation.

This service handles:
- Holding one snapshot listener on the signed-in user's task collection
- Normalizing and ordering every snapshot it delivers
- Publishing the ordered list to observers (the presentation layer)
- Discarding callbacks from listeners that have already been replaced

Each subscription gets a generation number. Callbacks are bound to the
generation they were registered under and are ignored once a newer
subscription (or a stop) has bumped it.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Callable, List, Optional, Union

from ..analysis.ordering import SortMode, order
from ..task_store.model import TaskRecord, normalize_snapshot
from ..task_store.store import TaskStore, Unsubscribe

logger = logging.getLogger(__name__)

Observer = Callable[[List[TaskRecord]], None]


class ReconcilerState(Enum):
    """Lifecycle of the reconciler."""
    IDLE = "idle"
    SUBSCRIBED = "subscribed"


@dataclass(slots=True)
class SubscriptionHandle:
    """Token for one live subscription."""
    user_id: str
    generation: int
    stopped: bool = False
    failed: bool = False
    _unsubscribe: Optional[Unsubscribe] = field(default=None, repr=False)


class SubscriptionReconciler:
    """Owns the working set for one user and keeps it ordered."""

    def __init__(self, store: TaskStore, *, mode: Union[SortMode, str] = SortMode.MIXED) -> None:
        self._store = store
        self._mode = SortMode(mode)
        self._lock = threading.RLock()
        self._observers: List[Observer] = []
        self._records: List[TaskRecord] = []
        self._ordered: List[TaskRecord] = []
        self._generation = 0
        self._active: Optional[SubscriptionHandle] = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def tasks(self) -> List[TaskRecord]:
        """The most recently published order."""
        return list(self._ordered)

    @property
    def mode(self) -> SortMode:
        return self._mode

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def state(self) -> ReconcilerState:
        return ReconcilerState.SUBSCRIBED if self._active else ReconcilerState.IDLE

    @property
    def user_id(self) -> Optional[str]:
        return self._active.user_id if self._active else None

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a callable that removes it.

        Observers are called with the reconciler lock held, on whichever
        thread delivered the change. They may call ``stop``, ``start`` or
        ``switch_user``; observers not yet reached then skip the superseded list.
        """
        with self._lock:
            self._observers.append(observer)

        def _remove() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return _remove

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, user_id: str) -> SubscriptionHandle:
        """Listen to ``user_id``'s tasks, replacing any active subscription.

        The previous listener is released before the new one is registered.
        Transport errors are logged and published as an empty list; they are
        never raised to the caller.
        """
        if not user_id:
            raise ValueError("user_id is required to start a subscription")

        with self._lock:
            previous = self._active
            release = self._detach(previous)
            self._generation += 1
            handle = SubscriptionHandle(user_id=user_id, generation=self._generation)
            self._active = handle
            self._records = []
            self._ordered = []
        self._release(previous, release)

        try:
            unsubscribe: Optional[Unsubscribe] = self._store.subscribe(
                user_id,
                partial(self._on_snapshot, handle.generation),
                partial(self._on_error, handle.generation),
            )
        except Exception as exc:
            logger.error(
                f"[Reconciler] Failed to subscribe to tasks for user {user_id}: {exc}",
                exc_info=True,
            )
            with self._lock:
                if handle is self._active:
                    handle.failed = True
                    self._publish([])
            return handle

        with self._lock:
            if not handle.stopped:
                handle._unsubscribe, unsubscribe = unsubscribe, None
        # Stopped while the listener was being registered
        self._release(handle, unsubscribe)

        logger.info(f"[Reconciler] Subscribed to tasks for user {user_id} (generation {handle.generation})")
        return handle

    def stop(self, handle: Optional[SubscriptionHandle] = None) -> None:
        """Release a subscription. Safe to call repeatedly.

        Without a handle the active subscription (if any) is stopped.
        """
        with self._lock:
            if handle is None:
                handle = self._active
            release = self._detach(handle)
        self._release(handle, release)

    def switch_user(self, user_id: Optional[str]) -> Optional[SubscriptionHandle]:
        """Follow a sign-in change: restart for a new user, stop on sign-out.

        Signing the same user in again keeps a healthy subscription and
        restarts one whose feed has failed.
        """
        with self._lock:
            active = self._active
        if not user_id:
            self.stop()
            return None
        if active is not None and active.user_id == user_id and not active.failed:
            return active
        return self.start(user_id)

    def _detach(self, handle: Optional[SubscriptionHandle]) -> Optional[Unsubscribe]:
        # Caller holds the lock; the returned callable is invoked after releasing it
        if handle is None or handle.stopped:
            return None
        handle.stopped = True
        unsubscribe, handle._unsubscribe = handle._unsubscribe, None

        if handle is self._active:
            self._active = None
            # Late callbacks from the released listener must not land anywhere
            self._generation += 1
            self._records = []
            logger.info(f"[Reconciler] Stopped task subscription for user {handle.user_id}")
            self._publish([])
        return unsubscribe

    def _release(self, handle: Optional[SubscriptionHandle], unsubscribe: Optional[Unsubscribe]) -> None:
        if handle is None or unsubscribe is None:
            return
        try:
            unsubscribe()
        except Exception as exc:
            logger.warning(f"[Reconciler] Unsubscribe failed for user {handle.user_id}: {exc}")

    def set_mode(self, mode: Union[SortMode, str]) -> None:
        """Change the sort mode and republish the current working set now."""
        mode = SortMode(mode)
        with self._lock:
            self._mode = mode
            self._publish(order(self._records, mode))

    # ------------------------------------------------------------------
    # Feed callbacks
    # ------------------------------------------------------------------

    def _on_snapshot(self, generation: int, documents: List[Any]) -> None:
        with self._lock:
            if generation != self._generation or self._active is None:
                logger.debug(f"[Reconciler] Dropping snapshot from stale generation {generation}")
                return
            self._records = normalize_snapshot(documents)
            self._publish(order(self._records, self._mode))

    def _on_error(self, generation: int, error: BaseException) -> None:
        with self._lock:
            if generation != self._generation or self._active is None:
                logger.debug(f"[Reconciler] Dropping error from stale generation {generation}: {error}")
                return
            logger.error(
                f"[Reconciler] Task feed error for user {self._active.user_id}: {error}",
                exc_info=error,
            )
            self._active.failed = True
            self._records = []
            self._publish([])

    def _publish(self, ordered: List[TaskRecord]) -> None:
        self._ordered = ordered
        for observer in list(self._observers):
            if self._ordered is not ordered:
                # A nested publish from an observer already delivered a newer list
                break
            try:
                observer(list(ordered))
            except Exception:
                logger.exception("[Reconciler] Task list observer failed")
