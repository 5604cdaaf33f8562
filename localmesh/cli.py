"""localmesh command line.

Usage:
    localmesh create transformation --name tr --target sockeye --source webhook
    localmesh create transformation --name tr -f transformation.yaml
    localmesh start [--restart]
    localmesh stop
    localmesh status
    localmesh delete <name>
    localmesh logs <name>

Errors are printed as `error: <command>: <message>` on stderr with exit
status 1.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional, Sequence

from localmesh.commands import (
    CreateResult,
    LocalSetup,
    TransformationCreator,
    load_transformation_file,
    parse_transformation_spec,
    read_transformation_input,
)
from localmesh.context import LocalContext, create_context
from localmesh.errors import LocalMeshError
from localmesh.logging import command_scope, configure_logging
from localmesh.settings import get_settings


def _comma_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="localmesh",
        description="Run an event mesh of adapter containers on the local machine.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create", help="Create a component.")
    kinds = create.add_subparsers(dest="kind", required=True)
    transformation = kinds.add_parser("transformation", help="Create a transformation.")
    transformation.add_argument("--name", required=True, help="Transformation name")
    transformation.add_argument("-f", "--from", dest="file", help="Transformation specification file")
    transformation.add_argument("--target", help="Target name")
    transformation.add_argument(
        "--source",
        dest="sources",
        type=_comma_list,
        action="extend",
        default=[],
        help="Source component names (comma separated)",
    )
    transformation.add_argument(
        "--eventTypes",
        dest="event_types",
        type=_comma_list,
        action="extend",
        default=[],
        help="Event types filter (comma separated)",
    )

    start = commands.add_parser("start", help="Start every component of the local setup.")
    start.add_argument("--restart", action="store_true", help="Replace running adapters")

    commands.add_parser("stop", help="Stop every component of the local setup.")
    commands.add_parser("status", help="Show adapter states.")

    delete = commands.add_parser("delete", help="Delete a component or trigger.")
    delete.add_argument("name")

    logs = commands.add_parser("logs", help="Follow an adapter's logs.")
    logs.add_argument("name")

    return parser


def _command_name(args: argparse.Namespace) -> str:
    if args.command == "create":
        return f"create {args.kind}"
    return args.command


# =============================================================================
# COMMANDS
# =============================================================================

async def _create_transformation(context: LocalContext, args: argparse.Namespace) -> None:
    if args.file:
        text = load_transformation_file(args.file)
    else:
        text = read_transformation_input(sys.stdin, sys.stdout)
    spec = parse_transformation_spec(text)

    result = await TransformationCreator(context).create(
        args.name,
        spec,
        target=args.target,
        sources=args.sources,
        event_types=args.event_types,
    )
    _print_created(result)


def _print_created(result: CreateResult) -> None:
    print(f"transformation {result.name} is ready at {result.container.url('localhost')}")
    print(f"  emits: type={result.event_type}")
    if result.target_trigger is not None:
        print(f"  {result.target_trigger.name}: {result.target_trigger.filters} -> {result.target}")
    for trigger in result.routes:
        print(f"  {trigger.name}: {trigger.filters} -> {result.name}")
    for trigger in result.retargeted:
        print(f"  {trigger.name}: {trigger.filters} -> {result.name} (retargeted)")
    for trigger in result.superseded:
        print(f"  {trigger.name}: removed (superseded)")


async def _start(context: LocalContext, args: argparse.Namespace) -> None:
    for container in await LocalSetup(context).start_all(restart=args.restart):
        print(f"{container.name}\t{container.state.value}\t{container.url('localhost')}")


async def _stop(context: LocalContext, args: argparse.Namespace) -> None:
    for name in await LocalSetup(context).stop_all():
        print(f"{name}\tstopped")


async def _status(context: LocalContext, args: argparse.Namespace) -> None:
    print("NAME\tKIND\tSTATE\tURL")
    for row in await LocalSetup(context).status():
        print(f"{row.name}\t{row.kind}\t{row.state.value}\t{row.url or '-'}")


async def _delete(context: LocalContext, args: argparse.Namespace) -> None:
    removed = await LocalSetup(context).delete(args.name)
    print(f"{args.name} deleted")
    for trigger in removed:
        print(f"  {trigger.name}: removed")


async def _logs(context: LocalContext, args: argparse.Namespace) -> None:
    async for entry in LocalSetup(context).logs(args.name):
        print(f"{entry.severity}\t{entry.message}", flush=True)


_HANDLERS = {
    "create transformation": _create_transformation,
    "start": _start,
    "stop": _stop,
    "status": _status,
    "delete": _delete,
    "logs": _logs,
}


async def run(args: argparse.Namespace, context: Optional[LocalContext] = None) -> None:
    """Execute one parsed command inside the orchestrator's lifetime."""
    context = context or create_context()
    handler = _HANDLERS[_command_name(args)]
    async with context.orchestrator:
        await handler(context, args)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)

    command = _command_name(args)
    with command_scope(command) as logger:
        settings.log_status(logger)
        try:
            asyncio.run(run(args, create_context(settings, logger=logger)))
        except LocalMeshError as e:
            print(f"error: {command}: {e}", file=sys.stderr)
            raise SystemExit(1)
        except KeyboardInterrupt:
            raise SystemExit(130)


if __name__ == "__main__":
    main()
