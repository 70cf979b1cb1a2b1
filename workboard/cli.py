"""CLI entry point for the group work board.

Usage:
  python -m workboard list [filters] [--all]
  python -m workboard board [filters]
  python -m workboard move <item_id> <status>
  python -m workboard approve <item_id> --rating N [--comment TEXT]
  python -m workboard tui
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime

from workboard.config import BoardConfig, load_config
from workboard.workflow.exceptions import WorkboardError


def _add_filter_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--assignee", type=int, action="append", default=[], help="Assignee id (0 = unassigned)")
    parser.add_argument("--sprint", type=int, action="append", default=[], help="Sprint id (0 = no sprint)")
    parser.add_argument("--status", action="append", default=[], help="Status, e.g. 'IN PROGRESS'")
    parser.add_argument("--type", dest="types", action="append", default=[], help="Epic, Story, Task or Subtask")
    parser.add_argument("--from", dest="from_date", type=datetime.fromisoformat, help="Created on or after (ISO-8601)")
    parser.add_argument("--to", dest="to_date", type=datetime.fromisoformat, help="Created before (ISO-8601)")
    parser.add_argument("--keyword", help="Search in key and summary")
    parser.add_argument("--lecturer-only", action="store_true", help="Only lecturer assigned items")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Group work board CLI")
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--base-url", help="Service base URL")
    parser.add_argument("--group", type=int, help="Project group id")
    parser.add_argument("--token", help="Bearer token")
    parser.add_argument("--user-id", type=int, default=0, help="Acting user id")
    parser.add_argument("--leader", action="store_true", help="Act with group leader capability")
    parser.add_argument("--mock", action="store_true", help="Use a seeded in-memory board")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command")

    list_parser = subparsers.add_parser("list", help="List work items")
    _add_filter_args(list_parser)
    list_parser.add_argument("--all", action="store_true", help="Keep loading pages until exhausted")

    board_parser = subparsers.add_parser("board", help="Show board columns")
    _add_filter_args(board_parser)

    move_parser = subparsers.add_parser("move", help="Move a work item to another column")
    move_parser.add_argument("item_id", type=int)
    move_parser.add_argument("status", help="Target status")

    approve_parser = subparsers.add_parser("approve", help="Approve a work item into Done")
    approve_parser.add_argument("item_id", type=int)
    approve_parser.add_argument("--rating", type=int, required=True)
    approve_parser.add_argument("--comment", default="")

    subparsers.add_parser("tui", help="Interactive terminal board")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        config = _resolve_config(args)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "tui":
        _tui_command(args, config)
        return
    try:
        code = asyncio.run(_COMMANDS[args.command](args, config))
    except (WorkboardError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    if code:
        sys.exit(code)


def _resolve_config(args) -> BoardConfig:
    config = load_config(args.config)
    if args.base_url:
        config.base_url = args.base_url
    if args.group is not None:
        config.group_id = args.group
    if args.token:
        config.token = args.token
    if not args.mock and config.group_id is None:
        raise ValueError("A group id is required (--group or WORKBOARD_GROUP_ID); use --mock for a demo board")
    return config


def create_backend(args, config: BoardConfig):
    if args.mock:
        from workboard.adapters.memory import demo_backend

        return demo_backend()
    from workboard.adapters.http import HttpBackend

    return HttpBackend(
        config.base_url, config.group_id, token=config.token, timeout=config.request_timeout
    )


def create_session(args, config: BoardConfig, notifier=None):
    from workboard.session import BoardSession
    from workboard.workflow.models import Actor

    backend = create_backend(args, config)
    actor = Actor(user_id=args.user_id, is_group_leader=args.leader)
    return BoardSession(backend, actor, config=config, notifier=notifier)


def _filter_overrides(args) -> dict:
    return {
        "assignee_ids": args.assignee,
        "sprint_ids": args.sprint,
        "statuses": args.status,
        "types": args.types,
        "from_date": args.from_date,
        "to_date": args.to_date,
        "keyword": args.keyword,
        "lecturer_only": args.lecturer_only or None,
    }


def _format_item(item) -> str:
    key = item.key or f"#{item.id}"
    marker = " [lecturer]" if item.is_lecturer_assigned else ""
    rating = f" (rated {item.rating})" if item.rating is not None else ""
    return f"  {key:<10} {item.type.value:<8} {item.status.value:<16} {item.summary}{marker}{rating}"


async def _close(session) -> None:
    close = getattr(session.backend, "aclose", None)
    if close is not None:
        await close()


async def _list_command(args, config: BoardConfig) -> int:
    session = create_session(args, config)
    try:
        session.filters = session.filters.override(**_filter_overrides(args))
        await session.feed.reset(session.filters)
        if args.all:
            while await session.load_more():
                pass
        state = session.feed.state
        for item in state.items:
            print(_format_item(item))
        print(f"{len(state.items)} of {state.total} work items")
        return 0
    finally:
        await _close(session)


async def _board_command(args, config: BoardConfig) -> int:
    session = create_session(args, config)
    try:
        session.filters = session.filters.override(**_filter_overrides(args))
        await session.board_feed.reload(session.filters)
        board = session.board.model
        for status, items in board.columns.items():
            print(f"{status.value} ({len(items)})")
            for item in items:
                print(_format_item(item))
        summary = board.summary()
        print(f"{summary.total} items, {summary.done_pct}% done, {summary.lecturer_assigned} lecturer assigned")
        return 0
    finally:
        await _close(session)


async def _move_command(args, config: BoardConfig) -> int:
    from workboard.board.drag import DragOutcome

    session = create_session(args, config)
    try:
        await session.board_feed.reload(session.filters)
        outcome = await session.move_item(args.item_id, args.status)
        if outcome is DragOutcome.AWAITING_APPROVAL:
            session.cancel_approval()
            print("Moving to DONE needs approval: use the 'approve' command", file=sys.stderr)
            return 2
        print(f"Work item {args.item_id}: {outcome.value}")
        return 1 if outcome in (DragOutcome.REJECTED, DragOutcome.ROLLED_BACK) else 0
    finally:
        await _close(session)


async def _approve_command(args, config: BoardConfig) -> int:
    from workboard.board.drag import DragOutcome
    from workboard.workflow.models import WorkItemStatus

    session = create_session(args, config)
    try:
        await session.board_feed.reload(session.filters)
        outcome = await session.move_item(args.item_id, WorkItemStatus.DONE)
        if outcome is not DragOutcome.AWAITING_APPROVAL:
            print(f"Work item {args.item_id}: {outcome.value}", file=sys.stderr)
            return 1
        approved = await session.resolve_approval(args.rating, args.comment)
        if approved is None:
            return 1
        print(f"Work item {args.item_id} approved with rating {approved.rating}")
        return 0
    finally:
        await _close(session)


def _tui_command(args, config: BoardConfig) -> None:
    from workboard_tui.app import BoardApp

    app = BoardApp(lambda notifier: create_session(args, config, notifier=notifier))
    app.run()


_COMMANDS = {
    "list": _list_command,
    "board": _board_command,
    "move": _move_command,
    "approve": _approve_command,
}
