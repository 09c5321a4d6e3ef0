#!/usr/bin/env python3
"""Taskaroo CLI."""
from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from typing import Iterable, List, Optional

from taskaroo.analysis import SortMode
from taskaroo.config import ConfigError, Settings, load_settings
from taskaroo.sync import TaskSession
from taskaroo.task_store import (
    FirestoreTaskStore,
    MutationGateway,
    TaskMutationError,
    TaskRecord,
    TaskStore,
    TaskValidationError,
)

logger = logging.getLogger(__name__)

MODE_CHOICES = tuple(mode.value for mode in SortMode)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskaroo",
        description="Personal task list kept in sync with Firestore.",
    )
    parser.add_argument(
        "--user",
        help="Firebase user id (defaults to TASKAROO_USER_ID).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to stderr.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser(
        "list",
        help="Print the current task list once.",
    )
    list_parser.add_argument(
        "--mode",
        choices=MODE_CHOICES,
        help="Sort by priority then deadline (mixed) or by deadline only.",
    )
    list_parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Seconds to wait for the first snapshot.",
    )
    list_parser.add_argument(
        "--json",
        action="store_true",
        help="Print tasks as JSON instead of a table.",
    )

    watch_parser = subparsers.add_parser(
        "watch",
        help="Print the task list every time it changes.",
    )
    watch_parser.add_argument("--mode", choices=MODE_CHOICES)
    watch_parser.add_argument(
        "--count",
        type=int,
        help="Exit after this many updates (default: run until interrupted).",
    )
    watch_parser.add_argument(
        "--json",
        action="store_true",
        help="Print each update as a JSON array.",
    )

    add_parser = subparsers.add_parser("add", help="Create a task.")
    add_parser.add_argument("title", help="Task title.")
    add_parser.add_argument("--description", default="")
    add_parser.add_argument(
        "--priority",
        choices=("low", "medium", "high"),
        default="low",
    )
    add_parser.add_argument(
        "--deadline",
        help="Due date as YYYY-MM-DD or an ISO timestamp (default: now).",
    )

    toggle_parser = subparsers.add_parser(
        "toggle",
        help="Mark a task done, or undone if it is already complete.",
    )
    toggle_parser.add_argument("task_id")

    delete_parser = subparsers.add_parser("delete", help="Delete a task.")
    delete_parser.add_argument("task_id")
    delete_parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt.",
    )

    return parser


def format_task_rows(tasks: Iterable[TaskRecord]) -> str:
    """Return a human-friendly summary table string."""

    lines = ["Done | ID | Title | Priority | Due"]
    for task in tasks:
        lines.append(
            f"[{'x' if task.completed else ' '}] | {task.id} | {task.title} | "
            f"{task.priority.value} | {task.deadline:%Y-%m-%d}"
        )
    return "\n".join(lines)


def format_task_json(tasks: Iterable[TaskRecord]) -> str:
    return json.dumps([task.to_api_dict() for task in tasks], indent=2)


def _cmd_list(store: TaskStore, user_id: str, mode: SortMode, timeout: float, as_json: bool = False) -> int:
    received = threading.Event()
    latest: List[TaskRecord] = []

    def _on_publish(tasks: List[TaskRecord]) -> None:
        if not received.is_set():
            latest[:] = tasks
            received.set()

    with TaskSession(store, mode=mode) as session:
        session.reconciler.subscribe(_on_publish)
        session.sign_in(user_id)
        if not received.wait(timeout):
            print(f"Timed out after {timeout:g}s waiting for tasks.", file=sys.stderr)
            return 1

    if as_json:
        print(format_task_json(latest))
        return 0
    if not latest:
        print("No tasks yet.")
        return 0
    print(format_task_rows(latest))
    return 0


def _cmd_watch(
    store: TaskStore,
    user_id: str,
    mode: SortMode,
    count: Optional[int],
    as_json: bool = False,
) -> int:
    done = threading.Event()
    seen = 0

    def _on_publish(tasks: List[TaskRecord]) -> None:
        nonlocal seen
        if done.is_set():
            return
        seen += 1
        if as_json:
            print(format_task_json(tasks))
        else:
            print(format_task_rows(tasks) if tasks else "No tasks yet.")
            print()
        if count is not None and seen >= count:
            done.set()

    with TaskSession(store, mode=mode) as session:
        session.reconciler.subscribe(_on_publish)
        session.sign_in(user_id)
        try:
            while not done.wait(0.5):
                pass
        except KeyboardInterrupt:
            done.set()
            print("Stopped watching.")
    return 0


def _cmd_add(gateway: MutationGateway, args: argparse.Namespace) -> int:
    task_id = gateway.create(
        args.title,
        description=args.description,
        priority=args.priority,
        deadline=args.deadline,
    )
    print(f"Created task {task_id}")
    return 0


def _cmd_toggle(gateway: MutationGateway, task_id: str) -> int:
    completed = gateway.toggle_complete(task_id)
    print(f"Task {task_id} marked {'done' if completed else 'not done'}")
    return 0


def _cmd_delete(gateway: MutationGateway, task_id: str, assume_yes: bool) -> int:
    if not assume_yes:
        answer = input(f"Delete task {task_id}? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Cancelled.")
            return 0
    gateway.delete(task_id)
    print(f"Deleted task {task_id}")
    return 0


def _configure_logging(settings: Settings, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None, *, store: TaskStore | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    _configure_logging(settings, args.verbose)

    user_id = args.user or settings.user_id
    if not user_id:
        print("No user given. Pass --user or set TASKAROO_USER_ID.", file=sys.stderr)
        return 1

    if store is None:
        store = FirestoreTaskStore(settings=settings)

    mode = SortMode(getattr(args, "mode", None) or settings.sort_mode)
    logger.info(f"[CLI] {args.command} for user {user_id} in {settings.environment} (sort: {mode.value})")
    gateway = MutationGateway(store, lambda: user_id)

    try:
        if args.command == "list":
            return _cmd_list(store, user_id, mode, args.timeout, args.json)
        if args.command == "watch":
            return _cmd_watch(store, user_id, mode, args.count, args.json)
        if args.command == "add":
            return _cmd_add(gateway, args)
        if args.command == "toggle":
            return _cmd_toggle(gateway, args.task_id)
        if args.command == "delete":
            return _cmd_delete(gateway, args.task_id, args.yes)
    except TaskValidationError as exc:
        print(f"Taskaroo: {exc}", file=sys.stderr)
        return 1
    except TaskMutationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
