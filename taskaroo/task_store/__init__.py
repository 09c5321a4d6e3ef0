"""Task store package - task model, Firestore storage and mutations."""
from __future__ import annotations

from .model import (
    EPOCH,
    TaskPriority,
    TaskRecord,
    coerce_instant,
    normalize,
    normalize_snapshot,
    parse_deadline,
)
from .store import FirestoreTaskStore, TaskNotFound, TaskStore
from .gateway import MutationGateway, TaskMutationError, TaskValidationError

__all__ = [
    "EPOCH",
    "TaskPriority",
    "TaskRecord",
    "coerce_instant",
    "normalize",
    "normalize_snapshot",
    "parse_deadline",
    "FirestoreTaskStore",
    "TaskNotFound",
    "TaskStore",
    "MutationGateway",
    "TaskMutationError",
    "TaskValidationError",
]
