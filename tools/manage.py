#!/usr/bin/env python3
"""
Trade Barriers Tracker Management CLI

Commands:
- hash-password: Generate an Argon2 password hash for the local admin
- init-schema: Create the agreements and themes tables if missing
- seed-demo: Load the demo agreements into an empty store
- export-agreements: Export agreements and themes to JSON
- health-check: Check the store and environment configuration

Usage:
    python -m tools.manage <command> [options]

Examples:
    python -m tools.manage init-schema
    python -m tools.manage seed-demo
    python -m tools.manage hash-password --password "mysecretpassword"
"""

import argparse
import json
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


def _service():
    from tradebarriers.core.service import TrackerService
    from tradebarriers.web.shared_store import create_store

    return TrackerService(create_store())


def cmd_hash_password(args):
    """Generate an Argon2 password hash."""
    from tradebarriers.web.auth import hash_password

    if args.password:
        password = args.password
    else:
        import getpass
        password = getpass.getpass("Enter password: ")

    hashed = hash_password(password)
    print("\nPassword hash (set as TRADEBARRIERS_ADMIN_PASSWORD_HASH):")
    print(hashed)


def cmd_init_schema(args):
    """Create the store's tables."""
    from tradebarriers.core.errors import StoreError

    service = _service()
    store = service.store
    print(f"Store: {type(store).__name__}")
    try:
        store.init_schema()
    except StoreError as e:
        print(f"[FAIL] {e.message}")
        return 1
    print("[OK] Schema ready")


def cmd_seed_demo(args):
    """Seed demo data into an empty store."""
    from tradebarriers.web.shared_store import seed_demo_data

    service = _service()
    inserted = seed_demo_data(service, force=True)
    if inserted:
        print(f"[OK] Seeded {inserted} agreements")
    else:
        print("Store already has agreements; nothing seeded")


def cmd_export_agreements(args):
    """Export all agreements and themes to a JSON file."""
    service = _service()

    agreements = service.list_agreements()
    themes = service.list_themes()
    print(f"Found {len(agreements)} agreements, {len(themes)} themes")

    export_data = {
        "themes": [t.model_dump(mode="json", by_alias=args.camel) for t in themes],
        "agreements": [a.model_dump(mode="json", by_alias=args.camel) for a in agreements],
    }

    output_file = args.output or "agreements_export.json"
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(export_data, f, indent=2)

    print(f"[OK] Exported {len(agreements)} agreements to {output_file}")


def cmd_health_check(args):
    """Run store and environment checks."""
    from tradebarriers.db.config import DatabaseConfig, StoreDriver, get_database_url, get_store_driver
    from tradebarriers.observability import check_health

    db_url = get_database_url()
    driver = get_store_driver()

    print("=== Trade Barriers Tracker Health Check ===\n")

    print("Database:")
    if driver != StoreDriver.MEMORY and db_url:
        config = DatabaseConfig.from_url(db_url) if "://" in db_url else DatabaseConfig.from_env()
        print(f"  Type: PostgreSQL ({driver.value})")
        print(f"  Host: {config.host}:{config.port}")
    else:
        print("  Type: In-Memory")

    service = _service()
    status = check_health(store=service.store)
    store_check = status.checks.get("store", {})
    if status.healthy:
        print(f"  Status: [OK] {store_check.get('backend')}")
        print(f"  Agreements: {store_check.get('agreement_count', 0)}")
    else:
        print(f"  Status: [FAIL] {store_check.get('error', 'unreachable')}")
        return 1

    print("\nEnvironment:")
    session_secret = os.environ.get("TRADEBARRIERS_SESSION_SECRET", "")
    if len(session_secret) >= 16:
        print("  Session secret: [OK] Set")
    else:
        print("  Session secret: [WARN] Using default (development)")

    if os.environ.get("SUPABASE_URL") and os.environ.get("SUPABASE_ANON_KEY"):
        print("  Auth: [OK] Hosted")
        if not os.environ.get("SUPABASE_SERVICE_ROLE_KEY"):
            print("  Service role key: [WARN] Not set (password updates will fail)")
    elif os.environ.get("TRADEBARRIERS_ADMIN_PASSWORD_HASH") or os.environ.get("TRADEBARRIERS_ADMIN_PASSWORD"):
        print("  Auth: [OK] Local admin")
    else:
        print("  Auth: [WARN] Local admin with default password (development)")

    print("\n=== Health Check Complete ===")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Trade Barriers Tracker Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    p_hash = subparsers.add_parser(
        "hash-password",
        help="Generate an Argon2 password hash"
    )
    p_hash.add_argument("--password", help="Password to hash (prompts if not provided)")

    subparsers.add_parser(
        "init-schema",
        help="Create the agreements and themes tables"
    )

    subparsers.add_parser(
        "seed-demo",
        help="Load demo agreements into an empty store"
    )

    p_export = subparsers.add_parser(
        "export-agreements",
        help="Export agreements and themes to JSON"
    )
    p_export.add_argument("--output", "-o", help="Output file (default: agreements_export.json)")
    p_export.add_argument("--camel", action="store_true", help="Use camelCase field names")

    subparsers.add_parser(
        "health-check",
        help="Check store and environment configuration"
    )

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "hash-password": cmd_hash_password,
        "init-schema": cmd_init_schema,
        "seed-demo": cmd_seed_demo,
        "export-agreements": cmd_export_agreements,
        "health-check": cmd_health_check,
    }

    return commands[args.command](args) or 0


if __name__ == "__main__":
    sys.exit(main())
