"""Command-line interface for paperscout."""

import argparse
import logging
import sys

from dotenv import load_dotenv

# Load .env file from the working directory
load_dotenv()


def main(argv=None):
    """Main CLI entry point."""
    from paperscout.cli import core, library, serve

    modules = [core, library, serve]

    from paperscout import __version__

    parser = argparse.ArgumentParser(
        prog="paperscout",
        description="Research paper discovery and recommendation",
    )
    parser.add_argument("--version", action="version", version=f"paperscout {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--db", type=str, default=None, help="Path to the library database")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for mod in modules:
        mod.register(subparsers)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()
        sys.exit(1)
