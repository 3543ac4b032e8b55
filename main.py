#!/usr/bin/env python3
"""
Society Desk - housing society backend

CLI Commands:
    doctor             - Run preflight checks (Python, deps, config)
    sync               - Fetch the member sheet and print members/bills
    check-email        - Check whether an email is on the member sheet
    create-manager     - Create a manager account
    serve              - Run the API server

Usage:
    python main.py doctor
    python main.py sync --json
    python main.py sync --file members.csv
    python main.py check-email alice@example.com
    python main.py create-manager --email manager@example.com --password secret123
    python main.py serve --port 8000
"""

import argparse
import json
import os
import sys
from pathlib import Path

# Ensure project root is in path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


def _load_rows(args):
    """Rows from --file when given, otherwise from the configured feed."""
    from core.config import get_config
    from services.feed_client import FeedClient
    from services.feed_parser import parse_feed

    if getattr(args, "file", None):
        return parse_feed(Path(args.file).read_text(encoding="utf-8"))

    return FeedClient.from_config(get_config().feed).fetch_rows()


def cmd_doctor(args):
    """Run preflight checks to ensure system is ready."""
    print("=" * 50)
    print(" Society Desk - System Check")
    print("=" * 50)
    print()

    all_ok = True
    warnings = []

    # Check 1: Python version
    print("[1/4] Python version...")
    py_version = sys.version_info
    if py_version.major >= 3 and py_version.minor >= 10:
        print(f"  OK: Python {py_version.major}.{py_version.minor}.{py_version.micro}")
    else:
        print(f"  FAIL: Python 3.10+ required (found {py_version.major}.{py_version.minor})")
        all_ok = False

    # Check 2: Required dependencies
    print("[2/4] Core dependencies...")
    required_deps = [
        ("fastapi", "API framework"),
        ("uvicorn", "ASGI server"),
        ("pydantic", "Request/response models"),
        ("requests", "HTTP client"),
        ("dotenv", "Environment loading", "python-dotenv"),
        ("tenacity", "Retry logic"),
    ]
    for dep in required_deps:
        module_name = dep[0]
        description = dep[1]
        pip_name = dep[2] if len(dep) > 2 else module_name
        try:
            __import__(module_name)
            print(f"  OK: {pip_name} ({description})")
        except ImportError:
            print(f"  FAIL: {pip_name} not installed")
            all_ok = False

    # Check 3: Configuration files
    print("[3/4] Configuration files...")
    if (Path(PROJECT_ROOT) / ".env").exists():
        print("  OK: .env (Environment variables)")
    else:
        print("  SKIP: .env missing (using process environment)")

    # Check 4: Load and validate config
    print("[4/4] Configuration validation...")
    from core.config import ConfigurationError, load_config_from_env

    config = load_config_from_env()
    try:
        config.validate()
        print("  OK: Configuration valid")
    except ConfigurationError as e:
        print(f"  FAIL: {e}")
        all_ok = False

    if config.auth.environment == "development" and not config.auth.jwt_secret:
        warnings.append("JWT_SECRET_KEY not set - a development secret will be generated")

    # Summary
    print()
    print("=" * 50)
    if all_ok and not warnings:
        print(" STATUS: ALL CHECKS PASSED")
    elif all_ok:
        print(f" STATUS: PASSED WITH {len(warnings)} WARNING(S)")
        for w in warnings:
            print(f"   - {w}")
    else:
        print(" STATUS: SOME CHECKS FAILED")
        print(" Fix the issues above before proceeding.")
    print("=" * 50)

    return 0 if all_ok else 1


def cmd_sync(args):
    """Fetch the member sheet and print the reconciled members and bills."""
    from core.config import get_config
    from services.feed_client import FeedUnavailableError
    from services.reconciler import reconcile, summarize

    try:
        rows = _load_rows(args)
    except FeedUnavailableError as e:
        print(f"Error: {e}")
        return 1

    result = reconcile(rows, default_amount=get_config().feed.default_maintenance_amount)
    summary = summarize(result.members)

    if args.json:
        print(json.dumps({
            "members": [m.to_dict() for m in result.members],
            "bills": [b.to_dict() for b in result.bills],
            "summary": summary.to_dict(),
        }, indent=2))
        return 0

    print(f"Members: {summary.total_members}")
    print(f"Pending dues: {summary.pending_dues} members, total {summary.total_dues_amount:,.2f}")
    print(f"Paid: {summary.recent_payments}")
    print()
    for member in result.members:
        print(f"  {member.member_id:8s} {member.flat_no:8s} {member.name:30s} "
              f"{member.maintenance_status.value:8s} {member.outstanding_dues:>10,.2f}")
    print(f"\nBills synthesized: {len(result.bills)}")
    return 0


def cmd_check_email(args):
    """Look up an email on the member sheet."""
    from services.feed_client import FeedUnavailableError
    from services.membership import is_valid_email
    from services.reconciler import collect_sheet_members

    email = args.email.strip().lower()
    if not is_valid_email(email):
        print("Error: invalid email format")
        return 1

    try:
        members = collect_sheet_members(_load_rows(args))
    except FeedUnavailableError as e:
        print(f"Error: {e}")
        return 1

    for member in members:
        if member.email == email:
            print(json.dumps(member.to_dict(), indent=2))
            return 0

    print(f"{email} is not on the member sheet")
    return 1


def cmd_create_manager(args):
    """Create a manager account."""
    from api.auth import register_profile
    from api.database import init_db
    from models.society import UserRole
    from services.membership import is_valid_email

    email = args.email.strip().lower()
    if not is_valid_email(email):
        print("Error: invalid email format")
        return 1
    if not 6 <= len(args.password) <= 72:
        print("Error: password must be 6-72 characters")
        return 1

    init_db()
    try:
        profile = register_profile(
            email=email,
            password=args.password,
            role=UserRole.MANAGER,
            name=args.name or "",
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    print(f"Created manager {profile.email} (user id: {profile.user_id})")
    return 0


def cmd_serve(args):
    """Run the API server."""
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Society Desk - housing society backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py doctor
    python main.py sync --json
    python main.py check-email alice@example.com --file members.csv
    python main.py create-manager --email manager@example.com --password secret123
    python main.py serve --port 8000 --reload
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # doctor command
    subparsers.add_parser("doctor", help="Run preflight checks")

    # sync command
    sync_parser = subparsers.add_parser("sync", help="Fetch and reconcile the member sheet")
    sync_parser.add_argument("--file", help="Read a local CSV export instead of the feed URL")
    sync_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # check-email command
    check_parser = subparsers.add_parser("check-email", help="Check an email against the member sheet")
    check_parser.add_argument("email", help="Email address to look up")
    check_parser.add_argument("--file", help="Read a local CSV export instead of the feed URL")

    # create-manager command
    manager_parser = subparsers.add_parser("create-manager", help="Create a manager account")
    manager_parser.add_argument("--email", required=True, help="Manager email")
    manager_parser.add_argument("--password", required=True, help="Initial password")
    manager_parser.add_argument("--name", help="Display name")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port")
    serve_parser.add_argument("--reload", action="store_true", help="Auto-reload on changes")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "doctor": cmd_doctor,
        "sync": cmd_sync,
        "check-email": cmd_check_email,
        "create-manager": cmd_create_manager,
        "serve": cmd_serve,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
