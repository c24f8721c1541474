"""paydb - Entry Point

Usage:
    python -m paydb [--config PATH] [--log-level LEVEL] [--json-logs] [--log-file PATH] COMMAND

Commands:
    migrate - Apply pending migrations (default)
    status  - Show stored and latest database versions (never creates a database)
    dump    - Print a top-level bucket as a tree (never creates a database)
    version - Show version

Examples:
    python -m paydb migrate --db data/paydb.sqlite
    python -m paydb migrate --dry-run --log-level DEBUG
    python -m paydb dump --bucket payments-root-bucket
"""

import argparse
import dataclasses
import sys
from pathlib import Path
from typing import Optional, Sequence

import structlog

from paydb import __version__
from paydb.core.config import ConfigManager, find_config_file
from paydb.core.errors import PaydbError
from paydb.core.logging import setup_logging
from paydb.db import DEFAULT_DB_PATH, open_backend
from paydb.kvdb.tree import format_tree, read_tree
from paydb.migrations.runner import MigrationRunner
from paydb.migrations.v001_prune_failed_htlcs import PAYMENTS_ROOT_BUCKET


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="paydb",
        description="Payment store maintenance: migrations and inspection",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"paydb {__version__}",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (TOML)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level",
    )

    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=None,
        help="Emit JSON formatted logs",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also append logs to this file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    migrate = subparsers.add_parser("migrate", help="Apply pending migrations")
    migrate.add_argument("--db", type=Path, default=None, help="Database file")
    migrate.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Run migrations and roll them back",
    )

    status = subparsers.add_parser("status", help="Show database version")
    status.add_argument("--db", type=Path, default=None, help="Database file")

    dump = subparsers.add_parser("dump", help="Print a top-level bucket")
    dump.add_argument("--db", type=Path, default=None, help="Database file")
    dump.add_argument(
        "--bucket",
        default=PAYMENTS_ROOT_BUCKET.decode(),
        help="Top-level bucket name",
    )

    subparsers.add_parser("version", help="Show version")

    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> ConfigManager:
    """Build configuration, letting command-line flags win."""
    config_path = find_config_file(args.config)
    config = ConfigManager(config_path)

    if getattr(args, "db", None) is not None:
        config.set("database.path", str(args.db))
    if getattr(args, "dry_run", None) is not None:
        config.set("migrations.dry_run", args.dry_run)
    if args.log_level is not None:
        config.set("paydb.log_level", args.log_level)
    if args.json_logs is not None:
        config.set("paydb.log_json", args.json_logs)
    if args.log_file is not None:
        config.set("paydb.log_file", str(args.log_file))

    return config


def _open(config: ConfigManager, create: bool = True):
    return open_backend(
        config.get("database.path", DEFAULT_DB_PATH),
        backend=config.get("database.backend", "sqlite"),
        lock_retries=config.get_int("database.lock_retries", 5),
        create=create,
    )


def run_migrate(config: ConfigManager) -> int:
    """Apply pending migrations and print what they did."""
    log = structlog.get_logger()
    dry_run = config.get_bool("migrations.dry_run", False)

    try:
        with _open(config) as backend:
            results = MigrationRunner(backend, dry_run=dry_run).run()
    except PaydbError as e:
        log.error("migrate_failed", error=str(e))
        return 1
    except Exception as e:
        log.error("fatal_error", command="migrate", error=str(e))
        return 1

    if not results:
        print("Database is up to date")
        return 0

    for result in results:
        prefix = "[dry run] " if result.dry_run else ""
        print(f"{prefix}Migration {result.version}: {result.description}")
        if dataclasses.is_dataclass(result.result):
            for name, value in dataclasses.asdict(result.result).items():
                print(f"  {name}: {value}")

    return 0


def run_status(config: ConfigManager) -> int:
    """Print stored, latest and pending versions."""
    log = structlog.get_logger()

    try:
        with _open(config, create=False) as backend:
            runner = MigrationRunner(backend)
            current = runner.current_version()
            pending = runner.pending()
    except PaydbError as e:
        log.error("status_failed", error=str(e))
        return 1
    except Exception as e:
        log.error("fatal_error", command="status", error=str(e))
        return 1

    print(f"Database version: {current}")
    print(f"Latest version: {runner.latest_version}")
    for migration in pending:
        print(f"  pending {migration.version}: {migration.description}")

    return 0


def run_dump(config: ConfigManager, bucket_name: str) -> int:
    """Print a top-level bucket as an indented tree."""
    log = structlog.get_logger()
    name = bucket_name.encode()

    def read(tx):
        bucket = tx.read_bucket(name)
        return read_tree(bucket) if bucket is not None else None

    try:
        with _open(config, create=False) as backend:
            tree = backend.view(read)
    except PaydbError as e:
        log.error("dump_failed", error=str(e))
        return 1
    except Exception as e:
        log.error("fatal_error", command="dump", error=str(e))
        return 1

    if tree is None:
        print(f"Bucket not found: {bucket_name}")
        return 1

    print(f"{bucket_name}/")
    for line in format_tree(tree, indent=1):
        print(line)

    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    if args.command == "version":
        print(f"paydb {__version__}")
        return 0

    config = load_config(args)
    setup_logging(
        level=config.get("paydb.log_level", "INFO"),
        json_output=config.get_bool("paydb.log_json", False),
        log_file=config.get("paydb.log_file"),
    )

    if args.command == "status":
        return run_status(config)

    if args.command == "dump":
        return run_dump(config, args.bucket)

    # Default: migrate
    return run_migrate(config)


if __name__ == "__main__":
    sys.exit(main())
