"""CLI entry point for pi-telemetry.

pi-telemetry publishes per-agent telemetry files from inside the agent
runtime (see publisher.py). This CLI is the reading side:
- snapshot: aggregate every live telemetry file into one JSON document
- top: live fleet dashboard
- routing: show how this shell's terminal/multiplexer would be resolved
"""

import argparse
import json
import os
import sys

from .config import ensure_config_exists, get_config_path, load_config


def _dump(data: object, pretty: bool) -> str:
    if pretty:
        return json.dumps(data, indent=2)
    return json.dumps(data, separators=(",", ":"))


def cmd_snapshot(args: argparse.Namespace) -> None:
    """Print the fleet snapshot. Always succeeds, even with no instances."""
    from .snapshot import build_fleet_snapshot

    config = load_config()
    snapshot = build_fleet_snapshot(
        config.telemetry_dir,
        stale_ms=config.stale_ms(args.stale_ms),
    )
    sys.stdout.write(_dump(snapshot, args.pretty))
    sys.stdout.write("\n")


def cmd_routing(args: argparse.Namespace) -> None:
    """Print the routing record for this shell."""
    from .routing import resolve_routing

    config = load_config()
    # the CLI itself is a throwaway child; resolve for the shell that ran it
    pid = args.pid if args.pid is not None else os.getppid()
    record = resolve_routing(os.getcwd(), pid=pid, pane_command=config.routing.pane_command)
    print(_dump(record.to_dict(), pretty=True))


def cmd_top(args: argparse.Namespace) -> None:
    """Launch the fleet dashboard."""
    from .top import FleetApp

    app = FleetApp(stale_ms=args.stale_ms)
    app.run()


def cmd_config_init(args: argparse.Namespace) -> None:
    """Initialize config file with defaults."""
    config_path = ensure_config_exists()
    print(f"Config file at: {config_path}")


def cmd_config_path(args: argparse.Namespace) -> None:
    """Print config file path."""
    print(get_config_path())


def cmd_config_show(args: argparse.Namespace) -> None:
    """Show current config."""
    config_path = get_config_path()
    if config_path.exists():
        print(config_path.read_text())
    else:
        print(f"No config file at {config_path}")
        print("Run 'pi-telemetry config init' to create one.")


def _add_snapshot_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--stale-ms",
        help="Ignore files not updated within this many ms (default 10000, "
        "or PI_TELEMETRY_STALE_MS)",
    )
    parser.add_argument("--pretty", action="store_true", help="Indent the JSON output")


def setup_snapshot_parser(subparsers: argparse._SubParsersAction) -> None:
    snapshot_parser = subparsers.add_parser(
        "snapshot",
        help="Print one JSON document aggregating all live instances",
    )
    _add_snapshot_args(snapshot_parser)
    snapshot_parser.set_defaults(func=cmd_snapshot)


def setup_routing_parser(subparsers: argparse._SubParsersAction) -> None:
    routing_parser = subparsers.add_parser(
        "routing",
        help="Show terminal/multiplexer routing for this shell",
    )
    routing_parser.add_argument(
        "--pid", type=int, help="Resolve for this pid instead of the calling shell"
    )
    routing_parser.set_defaults(func=cmd_routing)


def setup_top_parser(subparsers: argparse._SubParsersAction) -> None:
    top_parser = subparsers.add_parser("top", help="Live dashboard of running instances")
    top_parser.add_argument("--stale-ms", help="Staleness threshold in ms")
    top_parser.set_defaults(func=cmd_top)


def setup_config_parser(subparsers: argparse._SubParsersAction) -> None:
    """Set up the config subcommand."""
    config_parser = subparsers.add_parser(
        "config",
        help="Manage pi-telemetry configuration",
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")

    # config init
    init_parser = config_subparsers.add_parser("init", help="Create default config file")
    init_parser.set_defaults(func=cmd_config_init)

    # config path
    path_parser = config_subparsers.add_parser("path", help="Print config file path")
    path_parser.set_defaults(func=cmd_config_path)

    # config show
    show_parser = config_subparsers.add_parser("show", help="Show current config")
    show_parser.set_defaults(func=cmd_config_show)

    config_parser.set_defaults(func=cmd_config_show, config_command=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pi-telemetry",
        description="Read and inspect pi agent telemetry",
    )
    subparsers = parser.add_subparsers(dest="command")

    setup_snapshot_parser(subparsers)
    setup_top_parser(subparsers)
    setup_routing_parser(subparsers)
    setup_config_parser(subparsers)
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
    elif hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


def snapshot_main(argv: list[str] | None = None) -> None:
    """Direct entry point for `pi-telemetry-snapshot`."""
    parser = argparse.ArgumentParser(
        prog="pi-telemetry-snapshot",
        description="Print one JSON document aggregating all live pi instances",
    )
    _add_snapshot_args(parser)
    cmd_snapshot(parser.parse_args(argv))


if __name__ == "__main__":
    main()
