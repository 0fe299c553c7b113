"""
Command line interface.

Usage:
    movebind generate --package 0x2 --alias framework
    movebind generate --package @acme/pool --alias pool --deps framework --network testnet
    movebind generate --manifest movebind.toml
    movebind resolve @acme/pool --network testnet
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import get_settings
from .errors import MoveBindError
from .generator import generate_bindings, generate_manifest
from .manifest import load_manifest
from .network import Network
from .resolver import PackageIdResolver

logger = logging.getLogger(__name__)


def _configure_logging(args: argparse.Namespace) -> None:
    level_name = (getattr(args, "log_level", None) or get_settings().log_level).upper()
    if level_name == "WARN":
        level_name = "WARNING"
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _split_deps(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [dep.strip() for dep in value.split(",") if dep.strip()]


def generate_command(args: argparse.Namespace) -> None:
    """Execute the generate command."""
    output_dir = Path(args.out) if args.out else None

    if args.manifest:
        manifest = load_manifest(args.manifest)
        generated = generate_manifest(manifest, output_dir, base_path=args.base_path)
    else:
        if not args.package or not args.alias:
            raise MoveBindError("generate needs --manifest, or both --package and --alias")
        generated = [
            generate_bindings(
                args.package,
                args.alias,
                network=Network.parse(args.network),
                deps=_split_deps(args.deps),
                output_dir=output_dir,
                base_path=args.base_path,
            )
        ]

    for package in generated:
        print(f"{package.path} (version {package.version}, {package.address})")


def resolve_command(args: argparse.Namespace) -> None:
    """Execute the resolve command."""
    resolver = PackageIdResolver(Network.parse(args.network))
    print(resolver.resolve(args.package))


def add_generate_command(subparsers) -> None:
    """Add generate subcommand to CLI."""
    parser = subparsers.add_parser(
        "generate",
        help="Generate typed bindings for on-chain packages",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--package", "-p", help="Package address or name-service name")
    source.add_argument("--manifest", "-m", help="Path to a movebind.toml manifest")

    parser.add_argument("--alias", "-a", help="Binding alias (package directory name)")
    parser.add_argument(
        "--network",
        "-n",
        default=Network.MAINNET.value,
        help="mainnet or testnet (default: mainnet)",
    )
    parser.add_argument(
        "--deps",
        default="",
        help="Comma-separated aliases of bindings generated earlier in this run",
    )
    parser.add_argument("--out", "-o", help="Output directory (default: MOVEBIND_OUTPUT_DIR)")
    parser.add_argument("--base-path", help="Import path the bindings live under")
    parser.set_defaults(func=generate_command)


def add_resolve_command(subparsers) -> None:
    """Add resolve subcommand to CLI."""
    parser = subparsers.add_parser(
        "resolve",
        help="Print the canonical address of a package reference",
    )
    parser.add_argument("package", help="Package address or name-service name")
    parser.add_argument("--network", "-n", default=Network.MAINNET.value)
    parser.set_defaults(func=resolve_command)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="movebind",
        description="Generate typed Python bindings for Move packages",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "error"],
        default=None,
        help="Logging level (or set MOVEBIND_LOG_LEVEL)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    add_generate_command(subparsers)
    add_resolve_command(subparsers)
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    _configure_logging(args)
    try:
        args.func(args)
    except MoveBindError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e.format()}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
