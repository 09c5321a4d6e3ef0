"""Create, toggle and delete requests against the remote task store.

The gateway only writes to Firestore. The visible list changes when the
reconciler receives the echoed snapshot, never directly from here.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional, Union

from .model import TaskPriority, coerce_instant
from .store import TaskNotFound, TaskStore

logger = logging.getLogger(__name__)


class TaskValidationError(ValueError):
    """Raised before any store call when a request is invalid."""


class TaskMutationError(RuntimeError):
    """Raised when the remote store rejects or fails a mutation."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class MutationGateway:
    """Issues task mutations for the currently signed-in user."""

    def __init__(self, store: TaskStore, current_user: Callable[[], Optional[str]]) -> None:
        self._store = store
        self._current_user = current_user

    def _require_user(self) -> str:
        user_id = self._current_user()
        if not user_id:
            raise TaskValidationError("Sign in to manage tasks.")
        return user_id

    def create(
        self,
        title: str,
        description: str = "",
        priority: Union[TaskPriority, str] = TaskPriority.LOW,
        deadline: Union[datetime, date, str, None] = None,
    ) -> str:
        """Create a task and return its new id.

        Args:
            title: Task title; required after trimming
            description: Optional free text
            priority: "low", "medium" or "high"
            deadline: Due date; defaults to now

        Returns:
            The store-assigned task id

        Raises:
            TaskValidationError: invalid input or no signed-in user (no store call made)
            TaskMutationError: the store write failed; safe to retry
        """
        clean_title = (title or "").strip()
        if not clean_title:
            raise TaskValidationError("Title is required")
        user_id = self._require_user()

        if isinstance(priority, TaskPriority):
            resolved_priority = priority
        else:
            try:
                resolved_priority = TaskPriority(str(priority).strip().lower())
            except ValueError:
                raise TaskValidationError(
                    f"Unknown priority '{priority}'. Use low, medium or high."
                ) from None

        if deadline is None:
            resolved_deadline = datetime.now(timezone.utc)
        else:
            try:
                resolved_deadline = coerce_instant(deadline)
            except (ValueError, TypeError, OverflowError) as exc:
                raise TaskValidationError(f"Invalid deadline: {exc}") from exc

        data = {
            "title": clean_title,
            "description": description or "",
            "priority": resolved_priority.value,
            "completed": False,
            "deadline": resolved_deadline,
        }
        try:
            task_id = self._store.insert(user_id, data)
        except Exception as exc:
            logger.warning(f"[Gateway] Create failed for user {user_id}: {exc}")
            raise TaskMutationError("Save failed. Please try again.") from exc

        logger.info(f"[Gateway] Created task {task_id} for user {user_id}")
        return task_id

    def toggle_complete(self, task_id: str, current: Optional[bool] = None) -> bool:
        """Flip the completed flag and return the value written.

        ``current`` is the completed state the caller is showing; when omitted
        the document is read first.
        """
        user_id = self._require_user()
        try:
            if current is None:
                data: Optional[Dict[str, Any]] = self._store.get(user_id, task_id)
                if data is None:
                    raise TaskNotFound(task_id)
                current = bool(data.get("completed", False))
            completed = not current
            self._store.update(user_id, task_id, {"completed": completed})
        except TaskNotFound:
            raise TaskMutationError(
                f"Task {task_id} no longer exists.", retryable=False
            ) from None
        except Exception as exc:
            logger.warning(f"[Gateway] Toggle failed for task {task_id}: {exc}")
            raise TaskMutationError("Update failed. Please try again.") from exc

        return completed

    def delete(self, task_id: str) -> None:
        """Delete a task. Deleting a task that is already gone succeeds."""
        user_id = self._require_user()
        try:
            self._store.delete(user_id, task_id)
        except TaskNotFound:
            logger.debug(f"[Gateway] Task {task_id} already deleted")
        except Exception as exc:
            logger.warning(f"[Gateway] Delete failed for task {task_id}: {exc}")
            raise TaskMutationError("Delete failed. Please try again.") from exc
