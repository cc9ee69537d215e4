"""CLI entrypoint for the dispatch runtime."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from pydantic import BaseModel, ValidationError

from agent_runtime import __version__
from agent_runtime.audit.store import ExecutionRecordStore
from agent_runtime.core.config import RuntimeConfig
from agent_runtime.core.models import Task
from agent_runtime.runtime.runtime import DispatchOutcome, DispatchRuntime, build_runtime

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_TASK_ERROR = 4
EXIT_NEEDS_INPUT = 5


def _print_json(value: Any) -> None:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    elif isinstance(value, list):
        value = [v.model_dump(mode="json") if isinstance(v, BaseModel) else v for v in value]
    print(json.dumps(value, indent=2, ensure_ascii=False, default=str))


def _report(outcome: DispatchOutcome) -> int:
    if outcome.collection_failed is not None:
        print(outcome.collection_failed.prompt)
        return EXIT_NEEDS_INPUT
    result = outcome.result
    assert result is not None
    _print_json(
        {
            "taskId": outcome.task.id,
            "traceId": outcome.task.trace_id,
            **result.model_dump(mode="json"),
        }
    )
    return EXIT_TASK_ERROR if result.is_error else EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-runtime",
        description="Route free-form requests and structured tasks to capabilities",
    )
    parser.add_argument("--version", action="version", version=f"agent-runtime {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    route = subparsers.add_parser("route", help="Classify and run a free-form request")
    route.add_argument("text", help="User input, e.g. 'summarize: hello'")
    route.add_argument("--user-id", default=None, help="User the request belongs to")
    route.add_argument(
        "--preview",
        action="store_true",
        help="Only show which capability would be selected",
    )

    handle = subparsers.add_parser("handle", help="Run a structured task")
    handle.add_argument("--task-type", required=True, help="Task type, e.g. 'report'")
    handle.add_argument("--domain", required=True, help="Domain, e.g. 'live'")
    handle.add_argument(
        "--payload",
        default="{}",
        help='Task payload as a JSON object, e.g. \'{"metrics": {"gmv": 1}}\'',
    )
    handle.add_argument("--user-id", default=None, help="User the task belongs to")

    records = subparsers.add_parser("records", help="Inspect execution records")
    lookup = records.add_mutually_exclusive_group()
    lookup.add_argument("--task-id", default=None, help="Show one record")
    lookup.add_argument("--trace-id", default=None, help="Show records sharing a trace id")
    lookup.add_argument(
        "--recent",
        type=int,
        default=10,
        help="Show the N most recent records (default: 10)",
    )

    serve = subparsers.add_parser("serve", help="Run the REST API")
    serve.add_argument("--host", default=None, help="Bind address (default from settings)")
    serve.add_argument("--port", type=int, default=None, help="Port (default from settings)")

    return parser


def _records(config: RuntimeConfig, args: argparse.Namespace) -> int:
    # Reading records needs no model provider.
    if not config.audit.enabled:
        print(
            "Execution records are disabled (AGENT_RUNTIME_AUDIT_ENABLED=false)",
            file=sys.stderr,
        )
        return EXIT_CONFIG

    store = ExecutionRecordStore(config.audit.records_file)
    if args.task_id:
        record = store.get(args.task_id)
        if record is None:
            print(f"No record for task {args.task_id}", file=sys.stderr)
            return EXIT_FAILED
        _print_json(record)
        return EXIT_OK
    if args.trace_id:
        _print_json(store.find_by_trace(args.trace_id))
        return EXIT_OK
    _print_json(store.recent(args.recent))
    return EXIT_OK


def _serve(runtime: DispatchRuntime, args: argparse.Namespace) -> int:
    import uvicorn

    from agent_runtime.server import create_app
    from agent_runtime.server.config import ServerSettings

    settings = ServerSettings()
    uvicorn.run(
        create_app(runtime),
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_config=None,
    )
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = RuntimeConfig()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    config.setup_logging()

    try:
        if args.command == "records":
            return _records(config, args)

        runtime = build_runtime(config)

        if args.command == "route":
            if args.preview:
                selection = runtime.router.preview(args.text)
                _print_json(
                    {
                        "selectedAgent": selection.capability_name,
                        "taskType": selection.task_type,
                        "domain": selection.domain,
                        "confidence": selection.confidence,
                        "reason": selection.rationale,
                        "extractedParams": selection.extracted_params,
                    }
                )
                return EXIT_OK
            return _report(runtime.handle_text(args.text, user_id=args.user_id))

        if args.command == "handle":
            try:
                payload = json.loads(args.payload)
            except json.JSONDecodeError as e:
                print(f"--payload is not valid JSON: {e}", file=sys.stderr)
                return EXIT_CONFIG
            if not isinstance(payload, dict):
                print("--payload must be a JSON object", file=sys.stderr)
                return EXIT_CONFIG
            task = Task(
                task_type=args.task_type,
                domain=args.domain,
                payload=payload,
                user_id=args.user_id,
            )
            return _report(runtime.run(task))

        if args.command == "serve":
            return _serve(runtime, args)

        logger.error("Unknown command", extra={"command": args.command})
        return EXIT_CONFIG

    except Exception:
        logger.exception("Command failed")
        return EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
