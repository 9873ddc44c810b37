"""Run one auto-claim session from the terminal.

Usage:
    QUEUE_CREDENTIAL='BDUSS=...' python -m autoclaim.cli.run_session \
        --task-type audittask --claim-limit 5 --subject 数学 --include 函数

Prints the session status until the session goes idle. Ctrl-C stops the
session and waits for in-flight claims to finish.
"""

import argparse
import asyncio
import os
import sys
from typing import Optional, Sequence

from autoclaim.main.aiohttp_client import aiohttp_client
from autoclaim.main.config import get_settings
from autoclaim.main.exceptions import InvalidConfigException
from autoclaim.main.logging import get_logger
from autoclaim.sessions.auto_claim_service import AutoClaimService
from autoclaim.sessions.session_models import AutoClaimStatusResponse, StartAutoClaimRequest
from autoclaim.sessions.session_state import StopReason

logger = get_logger(__name__)

FAILED_STOP_REASONS = {
    StopReason.AUTHENTICATION_FAILED.value,
    StopReason.LIST_FAILURES.value,
    StopReason.LOOP_CRASHED.value,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autoclaim-run",
        description="Poll the clue queue and claim matching clues up to a limit.",
    )
    parser.add_argument(
        "--credential",
        default=os.environ.get("QUEUE_CREDENTIAL", ""),
        help="Cookie header value for the clue queue (default: $QUEUE_CREDENTIAL)",
    )
    parser.add_argument("--task-type", default=None, help="audittask or producetask")

    ids = parser.add_argument_group("filters by id (0 = any)")
    ids.add_argument("--step-id", type=int, default=0)
    ids.add_argument("--subject-id", type=int, default=0)
    ids.add_argument("--clue-type-id", type=int, default=0)

    names = parser.add_argument_group("filters by label name (resolved through the task labels)")
    names.add_argument("--step", default=None, help="Grade name, e.g. 高中")
    names.add_argument("--subject", default=None, help="Subject name, e.g. 数学")
    names.add_argument("--clue-type", default=None, help="Clue type name")

    parser.add_argument("--claim-limit", type=int, default=None)
    parser.add_argument("--interval", type=float, default=None)
    parser.add_argument("--interval-unit", choices=["s", "ms"], default="s")
    parser.add_argument("--max-pages", type=int, default=0, help="Pages per cycle, 0 = all")
    parser.add_argument("--concurrent-claims", type=int, default=None)
    parser.add_argument("--include", action="append", default=[], metavar="KEYWORD")
    parser.add_argument("--exclude", action="append", default=[], metavar="KEYWORD")
    parser.add_argument("--start-time", default=None, help="YYYY-MM-DD HH:MM:SS")
    parser.add_argument("--end-time", default=None, help="YYYY-MM-DD HH:MM:SS")
    parser.add_argument(
        "--status-every",
        type=float,
        default=3.0,
        help="Seconds between status lines (default: 3)",
    )
    return parser


def format_status(status: AutoClaimStatusResponse) -> str:
    line = f"[{status.phase}] claimed {status.successful_claims}/{status.claim_limit}"
    if status.in_flight_claims:
        line += f", {status.in_flight_claims} in flight"
    if status.last_error:
        line += f" | last error: {status.last_error}"
    if status.stop_reason and status.phase != "running":
        line += f" | stop reason: {status.stop_reason}"
    return line


async def resolve_label_ids(service: AutoClaimService, args: argparse.Namespace) -> dict[str, int]:
    resolved = {
        "step_id": args.step_id,
        "subject_id": args.subject_id,
        "clue_type_id": args.clue_type_id,
    }
    if not (args.step or args.subject or args.clue_type):
        return resolved

    labels = await service.get_task_labels(args.task_type or "", args.credential)
    by_name = labels.resolve_filter_ids(
        step=args.step, subject=args.subject, clue_type=args.clue_type
    )
    for field_name, label_id in by_name.items():
        if label_id:
            resolved[field_name] = label_id
    return resolved


async def run_session(args: argparse.Namespace, service: Optional[AutoClaimService] = None) -> int:
    service = service or AutoClaimService()
    settings = get_settings()

    try:
        try:
            filter_ids = await resolve_label_ids(service, args)
        except InvalidConfigException as exc:
            print(f"Could not start: {exc}", file=sys.stderr)
            return 1

        request = StartAutoClaimRequest(
            task_type=args.task_type,
            claim_limit=args.claim_limit,
            interval=args.interval,
            interval_unit=args.interval_unit,
            max_pages=args.max_pages,
            concurrent_claims=args.concurrent_claims,
            include_keywords=args.include,
            exclude_keywords=args.exclude,
            start_time=args.start_time,
            end_time=args.end_time,
            credential=args.credential,
            **filter_ids,
        )
        response = await service.start_auto_claiming(request)
        if not response.success:
            print(f"Could not start: {response.message}", file=sys.stderr)
            return 1

        print(f"Session {response.task_id} started")
        while True:
            status = await service.get_auto_claim_status()
            print(format_status(status))
            if status.phase == "idle":
                break
            await service.controller.wait_until_idle(timeout=args.status_every)

        return 1 if status.stop_reason in FAILED_STOP_REASONS else 0
    finally:
        await service.controller.shutdown(timeout=settings.shutdown_timeout_seconds)
        await aiohttp_client.stop()


def main(argv: Optional[Sequence[str]] = None):
    """Entry point for CLI script."""
    args = build_parser().parse_args(argv)
    try:
        exit_code = asyncio.run(run_session(args))
    except KeyboardInterrupt:
        logger.info("Session interrupted by user")
        exit_code = 130
    except Exception as e:
        logger.error(f"Session failed: {e}", exc_info=True)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
