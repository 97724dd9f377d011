"""CLI entrypoints for sitebundle commands."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from .commands import Commands
from .config import ConfigError, load_config
from .errors import SiteBundleError
from .logging import configure_logging


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_query_argument(parser: argparse.ArgumentParser, subject: str) -> None:
    parser.add_argument(
        "query",
        nargs="?",
        default="*",
        help=f"{subject} to process (defaults to all).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitebundle",
        description="Bundle and precompile site JavaScript for a module loader.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        default=".",
        help="Path to .sitebundle.yml or the project root (defaults to current directory).",
    )
    parser.add_argument(
        "--environment",
        default=None,
        help="Build environment name (overrides SITEBUNDLE_ENVIRONMENT).",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write log output to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    bundle_parser = subparsers.add_parser(
        "bundle",
        help="Bundle all js files of the given query into their configured bundles.",
    )
    _add_verbose_option(bundle_parser, suppress_default=True)
    _add_query_argument(bundle_parser, "Site query")
    bundle_parser.add_argument(
        "--destination",
        default=None,
        help="Base folder bundles are written to.",
    )

    precompile_parser = subparsers.add_parser(
        "precompile",
        help="Precompile js files to browser compatible module sources.",
    )
    _add_verbose_option(precompile_parser, suppress_default=True)
    _add_query_argument(precompile_parser, "Entity query")

    watch_parser = subparsers.add_parser(
        "watch",
        help="Precompile js files and recompile entities when their files change.",
    )
    _add_verbose_option(watch_parser, suppress_default=True)
    _add_query_argument(watch_parser, "Entity query")
    watch_parser.add_argument(
        "--debounce",
        type=float,
        default=0.2,
        help="Seconds to collect file events before rebuilding.",
    )

    return parser


def main(argv: list[str] | None = None, *, commands: Commands | None = None) -> None:
    """CLI entrypoint for sitebundle commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file) if args.log_file else None
    configure_logging(verbose=bool(args.verbose), log_file=log_file)

    if commands is None:
        try:
            config = load_config(Path(args.config), environment=args.environment)
        except ConfigError as exc:
            parser.exit(1, f"{exc}\n")
        commands = Commands(config)

    if args.command == "bundle":
        try:
            written = asyncio.run(commands.bundle(args.query, args.destination))
        except (SiteBundleError, OSError, ValueError) as exc:
            parser.exit(1, f"sitebundle bundle failed: {exc}\nRun with --verbose for more details.\n")
        print(f"Wrote {len(written)} bundle(s)")
    elif args.command == "precompile":
        try:
            written = asyncio.run(commands.precompile(args.query))
        except (SiteBundleError, OSError, ValueError) as exc:
            parser.exit(1, f"sitebundle precompile failed: {exc}\n")
        print(f"Precompiled {len(written)} file(s)")
    elif args.command == "watch":
        try:
            asyncio.run(commands.watch(args.query, debounce=args.debounce))
        except KeyboardInterrupt:
            print("Stopped watching")
        except (SiteBundleError, OSError) as exc:
            parser.exit(1, f"sitebundle watch failed: {exc}\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


if __name__ == "__main__":
    main(sys.argv[1:])
