"""
Set queue CLI - inspect and drain the local set operation queue.

Usage:
    python -m backend.cli status               - Show queue-wide sync state
    python -m backend.cli pending <session_id> - List queued operations for a session
    python -m backend.cli flush                - Drain due operations now
    python -m backend.cli requeue <set_id>     - Make a parked operation eligible again
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

from api.deps import get_set_operation_queue
from backend.services import SetOperationQueue


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


async def cmd_status(queue: SetOperationQueue, args: argparse.Namespace) -> int:
    await queue.load()
    snapshot = queue.get_snapshot()
    _print_json({
        "state": snapshot.state.value,
        "pending": snapshot.pending,
        "error": snapshot.error,
        "last_error": snapshot.last_error,
        "sessions": {
            session_id: {"state": s.state.value, "pending": s.pending, "error": s.error}
            for session_id, s in snapshot.sessions.items()
        },
    })
    return 0


async def cmd_pending(queue: SetOperationQueue, args: argparse.Namespace) -> int:
    operations = await queue.get_pending_operations_for_session(args.session_id)
    _print_json([
        {
            "set_id": op.set_id,
            "op_id": op.op_id,
            "attempts": op.attempts,
            "parked": op.is_parked,
            "next_retry_at": None if op.is_parked else op.next_retry_at,
            "last_error": op.last_error,
            "payload": op.payload.model_dump(mode="json"),
        }
        for op in operations
    ])
    return 0


async def cmd_flush(queue: SetOperationQueue, args: argparse.Namespace) -> int:
    await queue.flush_now()
    snapshot = queue.get_snapshot()
    print(f"state={snapshot.state.value} pending={snapshot.pending} error={snapshot.error}")
    return 1 if snapshot.error else 0


async def cmd_requeue(queue: SetOperationQueue, args: argparse.Namespace) -> int:
    await queue.load()
    operation = queue.get_operation(args.set_id)
    if operation is None:
        print(f"Error: no queued operation for set {args.set_id}", file=sys.stderr)
        return 1
    # Re-enqueueing the same payload resets attempts and scheduling.
    await queue.enqueue_upsert(
        set_id=operation.set_id,
        session_id=operation.session_id,
        session_exercise_id=operation.session_exercise_id,
        payload=operation.payload,
    )
    print(f"Requeued set {args.set_id}")
    return 0


COMMANDS = {
    "status": cmd_status,
    "pending": cmd_pending,
    "flush": cmd_flush,
    "requeue": cmd_requeue,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and drain the set operation queue")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Show queue-wide sync state")

    pending = subparsers.add_parser("pending", help="List queued operations for a session")
    pending.add_argument("session_id", help="Session ID")

    subparsers.add_parser("flush", help="Drain due operations now")

    requeue = subparsers.add_parser("requeue", help="Make a parked operation eligible again")
    requeue.add_argument("set_id", help="Set ID")

    return parser


def main(argv: Optional[list] = None, queue: Optional[SetOperationQueue] = None) -> int:
    args = build_parser().parse_args(argv)
    queue = queue or get_set_operation_queue()

    try:
        return asyncio.run(COMMANDS[args.command](queue, args))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
