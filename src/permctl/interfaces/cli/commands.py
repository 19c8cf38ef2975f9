"""Subcommand handlers for the permctl CLI."""

import argparse
import getpass
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path

from permctl.config import Settings, default_config_document, write_config
from permctl.interfaces.cli.exit_codes import EXIT_FAILURE, EXIT_NOT_ENFORCED, EXIT_OK
from permctl.main import PermctlApp, create_permctl_app


async def dispatch(settings: Settings, args: argparse.Namespace) -> int:
    app = create_permctl_app(settings)
    return await args.handler(app, args)


def current_actor() -> str:
    """Invoking user, seen through sudo when possible."""
    return os.environ.get("SUDO_USER") or getpass.getuser()


async def grant(app: PermctlApp, args: argparse.Namespace) -> int:
    outcome = await app.manager.grant(
        args.username,
        args.target,
        timedelta(minutes=args.duration),
        current_actor(),
    )
    if outcome.enforced:
        print("✓ Permission granted successfully")
    else:
        print("! Permission recorded but NOT yet enforced")
    print(f"  ID: {outcome.grant_id}")
    print(f"  User: {outcome.username}")
    print(f"  Command: {outcome.command}")
    print(f"  Duration: {args.duration} minutes")
    print(f"  Expires: {_fmt(outcome.expires_at)}")
    if not outcome.enforced:
        print(f"  Error: {outcome.sync_error}")
        print("  Run 'permctl sync' to apply it.")
        return EXIT_NOT_ENFORCED
    return EXIT_OK


async def revoke(app: PermctlApp, args: argparse.Namespace) -> int:
    revoked = await app.manager.revoke(args.username, args.target, current_actor())
    if revoked:
        print("✓ Permission revoked successfully")
        print(f"  User: {args.username}")
        print(f"  Command: {args.target}")
    else:
        print("! No active permission found to revoke")
        print("  An expired grant stays in the sudoers file until cleanup runs.")
        print("  Run 'permctl cleanup' (or 'permctl sync') to remove it now.")
    return 0


async def list_permissions(app: PermctlApp, args: argparse.Namespace) -> int:
    grants = await app.manager.list_active(args.user)
    if not grants:
        print(f"No active permissions for user {args.user}" if args.user else "No active permissions")
        return 0

    print(f"Permissions for user {args.user}:" if args.user else "Active permissions:")
    for g in grants:
        print(f"  {g.username}  {g.command}")
        print(f"    Granted: {_fmt(g.granted_at)} by {g.granted_by}")
        print(f"    Expires: {_fmt(g.expires_at)}")
        if g.last_used:
            print(f"    Last used: {_fmt(g.last_used)}")
    return 0


def show_commands(settings: Settings, args: argparse.Namespace) -> int:
    print("Allowed commands:")
    for command, policy in sorted(settings.command_policies().items()):
        if not args.verbose:
            print(f"  {command}")
            continue
        print(f"\n{command}")
        print(f"  Description: {policy.description}")
        print(f"  Max duration: {int(policy.max_duration.total_seconds() // 60)} minutes")
        print(f"  Required groups: {', '.join(sorted(policy.required_groups)) or '-'}")
        print(f"  Auditing: {'enabled' if policy.audit_usage else 'disabled'}")
        print(f"  Max concurrent users: {policy.max_concurrent_users}")
    return 0


async def cleanup(app: PermctlApp, args: argparse.Namespace) -> int:
    count = await app.manager.cleanup()
    if count:
        print(f"✓ Cleaned up {count} expired permission(s)")
    else:
        print("No expired permissions to clean up")
    return 0


async def record_use(app: PermctlApp, args: argparse.Namespace) -> int:
    found = await app.manager.record_usage(args.username, args.target)
    if not found:
        print(f"! {args.username} has no active permission for {args.target}")
        return EXIT_FAILURE
    return 0


async def show_audit(app: PermctlApp, args: argparse.Namespace) -> int:
    entries = await app.manager.list_audit(
        username=args.user, command=args.audit_command, limit=args.limit
    )
    for e in entries:
        print(f"{_fmt(e.timestamp)}  {e.action.value:<6}  {e.username}  {e.command}  {e.details or ''}")
    return 0


async def sync(app: PermctlApp, args: argparse.Namespace) -> int:
    rules = await app.manager.synchronize()
    print(f"✓ Wrote {rules} rule(s) to {app.synchronizer.path}")
    return 0


def init_config(config_path: Path, args: argparse.Namespace) -> int:
    if config_path.exists() and not args.force:
        print(f"! Configuration file already exists at {config_path}")
        print("  Use --force to overwrite")
        return 0
    write_config(config_path, default_config_document())
    print(f"✓ Created default configuration at {config_path}")
    print("  Please review and customize before using")
    return 0


async def verify(app: PermctlApp, args: argparse.Namespace) -> int:
    settings = app.settings
    print("Verifying setup...")
    ok = True

    for path in (settings.sudoers_path.parent, settings.db_path.parent):
        if not path.is_dir():
            print(f"✗ Required directory not found: {path}")
            ok = False
    if ok:
        print("✓ All directories present")

    await app.manager.list_active()
    print("✓ Database connection successful")

    if not settings.sudoers_path.exists():
        print(f"✗ Sudoers file not found: {settings.sudoers_path} (run 'permctl sync')")
        ok = False
    elif not await app.manager.is_in_sync():
        print(f"✗ Sudoers file {settings.sudoers_path} differs from the ledger (run 'permctl sync')")
        ok = False
    else:
        print("✓ Sudoers file matches the ledger")

    if os.geteuid() != 0:
        print("! Warning: Not running as root")
        print("  Some operations may fail")

    if ok:
        print("✓ Setup verification complete")
        return 0
    return EXIT_FAILURE


def _fmt(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
