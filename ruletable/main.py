"""
ruletable command line entry point.
"""

import asyncio
import logging
import sys
from pathlib import Path

from ruletable.clients.factory import open_synchronizer, open_table_client
from ruletable.config import load_config, Config
from ruletable.errors import RuleTableError
from ruletable.models.rule import RemovalResult
from ruletable.services.gateway import StoreGateway
from ruletable.services.policy_file import PolicyFileService


logger = logging.getLogger(__name__)


def _load(args) -> Config | None:
    """Load config and set up logging. Prints an error and returns None on failure."""
    config_path = Path(args.config)
    if not config_path.exists():
        print(f"Error: Config file not found: {config_path}")
        print("Please create a config.yaml file or specify a different path with -c")
        return None

    try:
        config = load_config(config_path)
    except ValueError as e:
        print(f"Error: {e}")
        return None

    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return config


async def create_table(config: Config) -> bool:
    async with open_table_client(config) as client:
        return await StoreGateway(client, config.batch).create_table()


async def export_policy(config: Config) -> str:
    async with open_synchronizer(config) as synchronizer:
        return await PolicyFileService(synchronizer).export_text()


async def import_policy(config: Config, text: str, dry_run: bool) -> dict:
    async with open_synchronizer(config) as synchronizer:
        service = PolicyFileService(synchronizer)
        diff = await service.parse_import(text)
        if not dry_run and (diff["added"] or diff["removed"]):
            await service.apply_import(text)
        return diff


async def remove_filtered(config: Config, ptype: str, field_index: int, values: list[str]) -> RemovalResult:
    async with open_synchronizer(config) as synchronizer:
        return await synchronizer.remove_filtered(ptype, field_index, *values)


def cmd_create_table(args):
    """Create the policy table if it does not exist."""
    config = _load(args)
    if config is None:
        return 1

    try:
        created = asyncio.run(create_table(config))
    except RuleTableError as e:
        print(f"Error: {e}")
        return 1

    if created:
        print(f"Created table {config.store.table_name}")
    else:
        print(f"Table {config.store.table_name} already exists")
    return 0


def cmd_export(args):
    """Write all stored rules as CSV policy lines."""
    config = _load(args)
    if config is None:
        return 1

    try:
        text = asyncio.run(export_policy(config))
    except RuleTableError as e:
        print(f"Error: {e}")
        return 1

    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Exported {len(text.splitlines())} rule(s) to {args.output}")
    else:
        sys.stdout.write(text)
    return 0


def cmd_import(args):
    """Replace the stored policy with the rules in a CSV policy file."""
    config = _load(args)
    if config is None:
        return 1

    policy_path = Path(args.file)
    if not policy_path.exists():
        print(f"Error: Policy file not found: {policy_path}")
        return 1

    try:
        text = policy_path.read_text(encoding="utf-8")
        diff = asyncio.run(import_policy(config, text, args.dry_run))
    except (RuleTableError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    for rule in diff["added"]:
        print(f"+ {rule}")
    for rule in diff["removed"]:
        print(f"- {rule}")
    print(
        f"{len(diff['added'])} added, {len(diff['removed'])} removed, "
        f"{len(diff['unchanged'])} unchanged"
        + (" (dry run)" if args.dry_run else "")
    )
    return 0


def cmd_remove_filtered(args):
    """Remove rules matching a type and positional field values."""
    config = _load(args)
    if config is None:
        return 1

    try:
        result = asyncio.run(remove_filtered(config, args.ptype, args.field_index, args.values))
    except (RuleTableError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    print(f"Removed {result.removed} rule(s)")
    if result.skipped:
        print(f"Kept {result.skipped} record(s) that could not be decoded")
    return 0


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Casbin policy storage in DynamoDB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_config_arg(sub):
        sub.add_argument(
            "-c", "--config",
            default="config.yaml",
            help="Path to configuration file (default: config.yaml)",
        )

    create_parser = subparsers.add_parser("create-table", help="Create the policy table if missing")
    add_config_arg(create_parser)

    export_parser = subparsers.add_parser("export", help="Export stored rules as CSV")
    add_config_arg(export_parser)
    export_parser.add_argument("-o", "--output", help="Write to this file instead of stdout")

    import_parser = subparsers.add_parser("import", help="Replace stored rules with a CSV policy file")
    add_config_arg(import_parser)
    import_parser.add_argument("file", help="CSV policy file")
    import_parser.add_argument("--dry-run", action="store_true", help="Only show the changes")

    remove_parser = subparsers.add_parser("remove-filtered", help="Remove rules matching a filter")
    add_config_arg(remove_parser)
    remove_parser.add_argument("ptype", help="Policy type, e.g. p or g")
    remove_parser.add_argument("field_index", type=int, help="Index of the first field to match")
    remove_parser.add_argument("values", nargs="+", help="Field values; use \"\" for any value")

    args = parser.parse_args()

    if args.command == "create-table":
        return cmd_create_table(args)
    elif args.command == "export":
        return cmd_export(args)
    elif args.command == "import":
        return cmd_import(args)
    elif args.command == "remove-filtered":
        return cmd_remove_filtered(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    exit(main())
