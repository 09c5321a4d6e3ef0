"""Live task list synchronization with Firestore."""
from __future__ import annotations

from .reconciler import (
    ReconcilerState,
    SubscriptionHandle,
    SubscriptionReconciler,
)
from .session import TaskSession

__all__ = [
    "ReconcilerState",
    "SubscriptionHandle",
    "SubscriptionReconciler",
    "TaskSession",
]
