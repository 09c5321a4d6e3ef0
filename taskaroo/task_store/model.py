"""Canonical in-memory shape of a task document.

Firestore documents live at ``users/{uid}/todos/{task_id}`` and are written
by more than one client, so the fields arrive in mixed shapes:

- ``deadline`` may be a Firestore timestamp, a protobuf ``Timestamp``, an
  exported ``{"seconds", "nanoseconds"}`` mapping, an ISO string, a plain
  ``date``/``datetime`` or epoch milliseconds.
- ``priority`` may be missing, differently cased, or an unknown label.
- Older documents carry the title under ``text``.

Everything is normalized here so the ordering code only ever compares
aware UTC datetimes and known priorities.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TaskPriority(str, Enum):
    """Priority levels offered by the task form."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any, *, task_id: Optional[str] = None) -> "TaskPriority":
        """Return the matching priority, falling back to LOW for unknown values."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.LOW
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(
                f"[TaskRecord] Unknown priority {value!r} on task {task_id}; treating as low"
            )
            return cls.LOW


@dataclass(frozen=True, slots=True)
class TaskRecord:
    """One task as shown to the user."""

    id: str
    title: str
    description: str = ""
    completed: bool = False
    priority: TaskPriority = TaskPriority.LOW
    deadline: datetime = EPOCH
    created_at: Optional[datetime] = None  # None until the server timestamp lands

    def to_api_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase form used by the mobile client and ``--json`` output."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "priority": self.priority.value,
            "deadline": self.deadline.isoformat(),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


def coerce_instant(raw: Any) -> datetime:
    """Resolve a timestamp or date-like value to an aware UTC datetime.

    Raises:
        ValueError: if the value cannot be interpreted as a point in time.
    """
    if raw is None or isinstance(raw, bool):
        raise ValueError(f"not a date-like value: {raw!r}")

    # DatetimeWithNanoseconds from google-cloud-firestore is a datetime subclass
    if isinstance(raw, datetime):
        return _as_utc(raw)
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day, tzinfo=timezone.utc)

    for attr in ("to_datetime", "ToDatetime", "toDate"):
        convert = getattr(raw, attr, None)
        if callable(convert):
            converted = convert()
            if isinstance(converted, datetime):
                return _as_utc(converted)
            raise ValueError(f"{attr}() returned {type(converted).__name__}")

    if isinstance(raw, Mapping):
        seconds = raw.get("seconds", raw.get("_seconds"))
        if seconds is None:
            raise ValueError(f"timestamp mapping without seconds: {raw!r}")
        nanos = raw.get("nanoseconds", raw.get("_nanoseconds")) or 0
        return _from_epoch_seconds(float(seconds) + float(nanos) / 1e9)

    if isinstance(raw, (int, float)):
        # Epoch milliseconds, as written by JavaScript clients
        return _from_epoch_seconds(raw / 1000)

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            raise ValueError("empty date string")
        if text[-1] in "Zz":
            text = text[:-1] + "+00:00"
        return _as_utc(datetime.fromisoformat(text))

    raise ValueError(f"unsupported deadline type {type(raw).__name__}")


def parse_deadline(raw: Any, *, task_id: Optional[str] = None) -> datetime:
    """Resolve a stored deadline, returning the epoch when it cannot be parsed."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        logger.debug(f"[TaskRecord] Task {task_id} has no deadline; using epoch")
        return EPOCH
    try:
        return coerce_instant(raw)
    except Exception as exc:
        logger.warning(
            f"[TaskRecord] Unparseable deadline {raw!r} on task {task_id}: {exc}; using epoch"
        )
        return EPOCH


def normalize(doc_id: str, data: Optional[Mapping[str, Any]]) -> TaskRecord:
    """Map a raw Firestore document and its id to a TaskRecord."""
    data = data or {}

    created_raw = data.get("createdAt", data.get("created_at"))
    created_at: Optional[datetime] = None
    if created_raw is not None:
        try:
            created_at = coerce_instant(created_raw)
        except Exception:
            logger.debug(f"[TaskRecord] Ignoring unreadable createdAt on task {doc_id}")

    return TaskRecord(
        id=doc_id,
        title=str(data.get("title") or data.get("text") or ""),
        description=str(data.get("description") or ""),
        completed=bool(data.get("completed", False)),
        priority=TaskPriority.parse(data.get("priority"), task_id=doc_id),
        deadline=parse_deadline(data.get("deadline"), task_id=doc_id),
        created_at=created_at,
    )


def normalize_snapshot(documents: Iterable[Any]) -> List[TaskRecord]:
    """Normalize Firestore document snapshots, keeping arrival order."""
    return [normalize(doc.id, doc.to_dict()) for doc in documents]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_epoch_seconds(seconds: float) -> datetime:
    if not math.isfinite(seconds):
        raise ValueError(f"non-finite timestamp {seconds!r}")
    return EPOCH + timedelta(seconds=seconds)
