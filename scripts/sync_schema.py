#!/usr/bin/env python
# ============================================================================
# SCHEMA SYNC SCRIPT
# ============================================================================
# PURPOSE: Synchronize a PostgreSQL schema with declared entities
# USAGE:
#   python scripts/sync_schema.py myapp.models --dry-run   # Preview SQL
#   python scripts/sync_schema.py myapp.models             # Apply changes
# ============================================================================

import sys
import os
import argparse
import importlib
import json

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pydantic import BaseModel

from core.config import PostgresConnectionOptions
from core.logging import configure_logging
from core.metadata import EntityMetadata
from infrastructure import synchronize_database


def collect_models(module_names):
    """EntityMetadata instances and Pydantic models with __sql_table__ from the given modules."""
    models = []
    for module_name in module_names:
        module = importlib.import_module(module_name)
        for value in vars(module).values():
            if isinstance(value, EntityMetadata):
                models.append(value)
            elif (
                isinstance(value, type)
                and issubclass(value, BaseModel)
                and getattr(value, "__sql_table__", None)
                and value.__module__ == module.__name__
            ):
                models.append(value)
    return models


def main():
    parser = argparse.ArgumentParser(
        description="Synchronize a PostgreSQL schema with declared entities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/sync_schema.py myapp.models --dry-run   # Print planned SQL
  python scripts/sync_schema.py myapp.models             # Apply changes
  python scripts/sync_schema.py myapp.models --json      # Machine-readable result

Environment Variables:
  DATABASE_URL          Full PostgreSQL connection string
  POSTGRES_HOST         Database host (default: localhost)
  POSTGRES_DB           Database name (default: postgres)
  POSTGRES_USER         Database user (default: postgres)
  POSTGRES_PASSWORD     Database password
  POSTGRES_PORT         Database port (default: 5432)
  POSTGRES_SSLMODE      SSL mode (default: require)
  PGSYNC_SCHEMA         Target schema (default: server search schema)
        """
    )
    parser.add_argument(
        "modules",
        nargs="+",
        help="Modules declaring EntityMetadata objects or Pydantic models"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print planned SQL without executing"
    )
    parser.add_argument(
        "--connection",
        type=str,
        help="PostgreSQL connection string (overrides environment)"
    )
    parser.add_argument(
        "--schema",
        type=str,
        help="Target schema (overrides PGSYNC_SCHEMA)"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    args = parser.parse_args()

    configure_logging(level="DEBUG" if args.verbose else "INFO", json_output=False)

    options = PostgresConnectionOptions.from_env(args.connection)
    if args.schema:
        options = options.with_overrides(schema=args.schema)

    models = collect_models(args.modules)
    if not models:
        print(f"No entities found in {', '.join(args.modules)}")
        sys.exit(1)

    if not args.json:
        print("=" * 70)
        print("PGSYNC - Schema Synchronization")
        print("=" * 70)
        print(f"Target: {options.safe_conninfo}")
        print(f"Entities: {len(models)}")
        print(f"Mode: {'DRY RUN' if args.dry_run else 'EXECUTE'}")
        print("=" * 70)

    result = synchronize_database(models, dry_run=args.dry_run, options=options)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
        sys.exit(0 if result.success else 1)

    print("\n[PLAN]\n")
    if result.plan:
        for statement in result.plan:
            print(f"{statement};")
    else:
        print("-- schema is in sync, nothing to do")

    print("\n[RESULTS]\n")
    for step in result.steps:
        status_emoji = {
            "success": "✅",
            "failed": "❌",
            "skipped": "⏭️"
        }.get(step.status, "❓")

        print(f"{status_emoji} {step.name}: {step.message}")
        if step.error:
            print(f"   Error: {step.error}")
        if step.details and args.verbose:
            for key, value in step.details.items():
                if key != "statements":
                    print(f"   {key}: {value}")

    print("\n" + "=" * 70)
    if result.success:
        print("✅ Synchronization completed successfully!")
    else:
        print("❌ Synchronization failed!")
        for error in result.errors:
            print(f"   - {error}")
        sys.exit(1)
    print("=" * 70)


if __name__ == "__main__":
    main()
