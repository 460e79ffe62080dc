#!/usr/bin/env python3
"""
Idea Platform - idea sharing, evaluation and branching API.

Command-line entry point:
  - Serve the JSON API (default)
  - Show the effective configuration
  - Create MongoDB indexes
  - Repair parent/branch links left behind by interrupted branch writes

Usage:
    python main.py                        # Serve on HOST:PORT from .env
    python main.py --port 8000 --debug    # Serve with Flask debug mode
    python main.py --storage memory       # Serve with the in-memory backend
    python main.py --show-config          # Print configuration and exit
    python main.py --ensure-indexes       # Create MongoDB indexes and exit
    python main.py --repair-branches      # Relink branches and exit
"""

import argparse
import sys

from src.config import (
    HOST,
    PORT,
    STORAGE_BACKEND,
    is_production,
    print_config_summary,
    validate_config,
)
from src.services import IdeaService
from src.storage import Storage, create_storage


VERSION = "1.0.0"


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="idea-platform",
        description="Serve the Idea Platform API and run maintenance tasks.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                           Serve the API with settings from .env
  %(prog)s --host 0.0.0.0 --port 80  Serve on all interfaces
  %(prog)s --storage memory --debug  Local development server
  %(prog)s --ensure-indexes          Create MongoDB indexes
  %(prog)s --repair-branches         Fix missing parent -> branch links
        """,
    )

    # Server options
    parser.add_argument(
        "--host",
        default=None,
        help=f"Address to bind (default: {HOST})",
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help=f"Port to listen on (default: {PORT})",
    )

    parser.add_argument(
        "--storage",
        choices=["memory", "mongo"],
        default=None,
        help=f"Storage backend (default: {STORAGE_BACKEND})",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Run Flask in debug mode",
    )

    # Maintenance options
    parser.add_argument(
        "--repair-branches",
        action="store_true",
        help="Add missing branch links to parent ideas and exit",
    )

    parser.add_argument(
        "--ensure-indexes",
        action="store_true",
        help="Create storage indexes and exit",
    )

    # Info options
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Show current configuration and exit",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {VERSION}",
    )

    return parser


def show_config() -> None:
    """Display current configuration."""
    print("=" * 60)
    print("Idea Platform Configuration")
    print("=" * 60)
    print_config_summary()

    errors = validate_config()
    if errors:
        print("\nConfiguration warnings:")
        for error in errors:
            print(f"  ⚠️  {error}")
    else:
        print("\n✓ Configuration valid")
    print("=" * 60)


def repair_branches(storage: Storage) -> int:
    print(f"Repairing branch links in {storage.name} storage...")
    result = IdeaService(storage).repair_branch_links()
    print(f"  {result}")
    return 0


def ensure_indexes(storage: Storage) -> int:
    print(f"Ensuring indexes in {storage.name} storage...")
    storage.ensure_indexes()
    print("✓ Indexes ready")
    return 0


def serve(storage: Storage, host: str, port: int, debug: bool) -> int:
    """
    Run the Flask development server against `storage`.

    Indexes are created first; MongoDB rejects `$text` queries until the
    text index exists.
    """
    import web.app as web_app

    storage.ensure_indexes()
    web_app._storage = storage

    print("=" * 60)
    print("Idea Platform API")
    print("=" * 60)
    print(f"  Storage: {storage.name}")
    print(f"  Listening on http://{host}:{port}/api")
    print("  Press Ctrl+C to stop")
    print("=" * 60)

    web_app.app.run(host=host, port=port, debug=debug)
    return 0


def main(argv: list = None) -> int:
    """
    Main entry point.

    Args:
        argv: Command-line arguments (default: sys.argv[1:]).

    Returns:
        Exit code (0 = success, 1 = error, 130 = interrupted).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.show_config:
        show_config()
        return 0

    errors = validate_config()
    if errors:
        for error in errors:
            print(f"⚠️  {error}")
        if is_production():
            print("\n❌ Refusing to start with invalid production configuration")
            return 1

    try:
        storage = create_storage(args.storage)

        if args.ensure_indexes:
            return ensure_indexes(storage)

        if args.repair_branches:
            return repair_branches(storage)

        return serve(
            storage,
            host=args.host or HOST,
            port=args.port or PORT,
            debug=args.debug,
        )

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130
    except Exception as e:
        print(f"\n❌ Error: {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
