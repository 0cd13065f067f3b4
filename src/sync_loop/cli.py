"""Command line entry point: `limnus`."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence, TextIO

from sync_loop.adapters.hold_store import JsonlHoldStore
from sync_loop.adapters.persistence import to_jsonable
from sync_loop.adapters.scheduler import RegistrationFileScheduler
from sync_loop.adapters.trpc_client import TrpcClient
from sync_loop.config import SyncLoopSettings
from sync_loop.contracts import InputValidationError, RemoteCallError, StorageError
from sync_loop.procedures import adjudication_procedure, prompts_procedure, teaching_directives_procedure
from sync_loop.supervisor import HoldSupervisor, install_hold_task

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID = 2


def build_scheduler(settings: SyncLoopSettings) -> RegistrationFileScheduler:
    return RegistrationFileScheduler(settings.task_registry_path, available=settings.durable_scheduling)


def build_supervisor(
    settings: SyncLoopSettings, scheduler: RegistrationFileScheduler | None = None
) -> HoldSupervisor:
    supervisor = HoldSupervisor(
        store=JsonlHoldStore(settings.hold_store_path),
        scheduler=scheduler or build_scheduler(settings),
        recheck_client=TrpcClient(settings.api_base_url, timeout=settings.request_timeout_s),
        minimum_interval_s=settings.wake_interval_s,
    )
    install_hold_task(supervisor)
    return supervisor


def _read_payload(source: str) -> Any:
    if source == "-":
        text = sys.stdin.read()
    else:
        text = Path(source).read_text(encoding="utf-8")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise InputValidationError(f"{source} is not valid JSON: {exc}") from exc


def _emit(obj: Any, out: TextIO) -> None:
    out.write(json.dumps(to_jsonable(obj), ensure_ascii=False, indent=2, sort_keys=True) + "\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="limnus", description="Sync adjudication and loop hold supervision.")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LIMNUS_LOG_LEVEL or INFO).")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("prompts", help="Print the prompt set and instructions.")

    adj = sub.add_parser("adjudicate", help="Classify an adjudication request read from FILE or stdin.")
    adj.add_argument("source", nargs="?", default="-")

    tds = sub.add_parser("directives", help="Extract teaching directives from {\"response_lines\": [...]}.")
    tds.add_argument("source", nargs="?", default="-")

    hold = sub.add_parser("hold", help="Manage durable holds.")
    hold_sub = hold.add_subparsers(dest="hold_command", required=True)
    start = hold_sub.add_parser("start", help="Begin a hold for SESSION.")
    start.add_argument("session_id")
    start.add_argument("--duration", type=float, default=None, help="Hold duration in seconds.")
    hold_sub.add_parser("wake", help="Run every registered task once (call from cron or a timer unit).")
    stop = hold_sub.add_parser("stop", help="Cancel the hold for SESSION.")
    stop.add_argument("session_id")
    status = hold_sub.add_parser("status", help="Show the hold for SESSION.")
    status.add_argument("session_id")
    return parser


def _run_hold(args: argparse.Namespace, settings: SyncLoopSettings, out: TextIO) -> int:
    scheduler = build_scheduler(settings)
    supervisor = build_supervisor(settings, scheduler)
    if args.hold_command == "start":
        duration = settings.hold_duration_s if args.duration is None else args.duration
        result = supervisor.start(args.session_id, duration)
        _emit(result, out)
        return EXIT_OK
    if args.hold_command == "wake":
        results = scheduler.run_registered()
        _emit(results, out)
        failed = any(
            value == "failed"
            for task_results in results.values()
            if isinstance(task_results, dict)
            for value in task_results.values()
        )
        return EXIT_FAILURE if failed else EXIT_OK
    if args.hold_command == "stop":
        supervisor.stop(args.session_id)
        _emit({"session_id": args.session_id, "stopped": True}, out)
        return EXIT_OK
    report = supervisor.status(args.session_id)
    _emit(report, out)
    return EXIT_OK if report.readable else EXIT_FAILURE


def main(argv: Sequence[str] | None = None, *, out: TextIO | None = None) -> int:
    stream = out or sys.stdout
    args = build_parser().parse_args(argv)
    try:
        settings = SyncLoopSettings.from_env()
    except InputValidationError as exc:
        print(f"[limnus] {exc}", file=sys.stderr)
        return EXIT_INVALID
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "prompts":
            _emit(prompts_procedure(), stream)
        elif args.command == "adjudicate":
            _emit(adjudication_procedure(_read_payload(args.source)), stream)
        elif args.command == "directives":
            _emit(teaching_directives_procedure(_read_payload(args.source)), stream)
        else:
            return _run_hold(args, settings, stream)
    except InputValidationError as exc:
        print(f"[limnus] invalid input: {exc}", file=sys.stderr)
        return EXIT_INVALID
    except (RemoteCallError, StorageError, OSError) as exc:
        print(f"[limnus] {exc}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
