"""Signed-in session wiring for the task list."""
from __future__ import annotations

import logging
from typing import Optional, Union

from ..analysis.ordering import SortMode
from ..task_store.gateway import MutationGateway
from ..task_store.store import TaskStore
from .reconciler import SubscriptionReconciler

logger = logging.getLogger(__name__)


class TaskSession:
    """Holds the current user, the live task list and the mutation gateway.

    Signing in as a different user restarts the subscription; the previous
    user's listener is always released first.
    """

    def __init__(
        self,
        store: TaskStore,
        *,
        mode: Union[SortMode, str] = SortMode.MIXED,
        user_id: Optional[str] = None,
    ) -> None:
        self._user_id: Optional[str] = None
        self.reconciler = SubscriptionReconciler(store, mode=mode)
        self.gateway = MutationGateway(store, lambda: self._user_id)
        if user_id:
            self.sign_in(user_id)

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user_id is required to sign in")
        if user_id != self._user_id:
            logger.info(f"[Session] Signed in as {user_id}")
        self._user_id = user_id
        self.reconciler.switch_user(user_id)

    def sign_out(self) -> None:
        if self._user_id:
            logger.info(f"[Session] Signed out {self._user_id}")
        self._user_id = None
        self.reconciler.switch_user(None)

    def close(self) -> None:
        """Tear down the session's subscription."""
        self.reconciler.stop()

    def __enter__(self) -> "TaskSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
