"""Command line entry point."""

import argparse
import asyncio
import json
import sys
from dataclasses import replace

from portsentinel.config import Settings
from portsentinel.errors import PortSentinelError
from portsentinel.logs import setup_logging
from portsentinel.models import ProcessRecord

AGENT_HOST = "127.0.0.1"
AGENT_PORT = 3002


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portsentinel",
        description="Find, kill and restart processes listening on network ports.",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--timeout", type=float, help="Seconds allowed per external command")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.add_argument("--host-agent-url", help="Forward /api/* to this agent")

    agent = sub.add_parser("agent", help="Run the privileged host agent")
    agent.add_argument("--host", default=AGENT_HOST)
    agent.add_argument("--port", type=int, default=AGENT_PORT)

    listing = sub.add_parser("list", help="Print listening processes once")
    listing.add_argument("--json", action="store_true", help="Emit JSON")

    kill = sub.add_parser("kill", help="Kill one or more PIDs")
    kill.add_argument("pids", nargs="+", type=int)

    tui = sub.add_parser("tui", help="Interactive terminal view")
    tui.add_argument("--interval", type=float, default=2.0, help="Refresh period in seconds")
    return parser


def settings_from_args(args: argparse.Namespace, base: Settings) -> Settings:
    """Overlay command line flags on ``base``."""
    overrides = {}
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if args.timeout:
        overrides["command_timeout"] = args.timeout
    for name in ("host", "port", "host_agent_url"):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    if args.command == "agent":
        # The agent always serves the local host itself
        overrides["host_agent_url"] = None
    return replace(base, **overrides)


def format_table(records: list[ProcessRecord]) -> str:
    """Plain text table of ``records``."""
    lines = [f"{'PID':>7}  {'PROTO':<5}  {'PORT':>5}  {'ADDRESS':<16}  {'NAME':<20}  COMMAND"]
    for r in records:
        protocol = getattr(r.protocol, "value", r.protocol)
        lines.append(
            f"{r.pid:>7}  {protocol:<5}  {r.port:>5}  {r.local_address:<16}  "
            f"{r.name[:20]:<20}  {r.command_path}"
        )
    return "\n".join(lines)


async def _list(settings: Settings, as_json: bool) -> int:
    from portsentinel.server import build_manager

    records = await build_manager(settings).list_processes()
    if as_json:
        print(json.dumps([r.as_dict() for r in records], indent=2))
    else:
        print(format_table(records))
    return 0


async def _kill(settings: Settings, pids: list[int]) -> int:
    from portsentinel.server import build_manager

    manager = build_manager(settings)
    if len(pids) == 1:
        print(await manager.kill_one(pids[0]))
        return 0

    result = await manager.kill_bulk(pids)
    for pid in result.succeeded:
        print(f"killed   {pid}")
    for outcome in result.skipped:
        print(f"skipped  {outcome.pid}: {outcome.reason}")
    for outcome in result.failed:
        print(f"failed   {outcome.pid}: {outcome.reason}")
    return 1 if result.failed else 0


def _serve(settings: Settings) -> int:
    import uvicorn

    from portsentinel.server import create_app

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def _tui(settings: Settings, interval: float) -> int:
    from portsentinel.app import PortSentinelApp
    from portsentinel.server import build_manager

    PortSentinelApp(build_manager(settings), refresh_interval=interval).run()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the portsentinel command."""
    args = build_parser().parse_args(argv)
    try:
        settings = settings_from_args(args, Settings.from_env())
    except ValueError as exc:
        print(f"portsentinel: {exc}", file=sys.stderr)
        return 2

    setup_logging(settings.log_level)

    try:
        if args.command in ("serve", "agent"):
            return _serve(settings)
        if args.command == "list":
            return asyncio.run(_list(settings, args.json))
        if args.command == "kill":
            return asyncio.run(_kill(settings, args.pids))
        return _tui(settings, args.interval)
    except PortSentinelError as exc:
        print(f"portsentinel: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
