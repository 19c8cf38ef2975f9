"""permctl command-line interface."""

import argparse
import asyncio
import logging
from collections.abc import Sequence

from permctl import __version__
from permctl.config import load_settings, resolve_config_path
from permctl.domain.exceptions import (
    ConfigError,
    PermctlError,
    RevocationNotEnforced,
    ValidationError,
)
from permctl.interfaces.cli import commands
from permctl.interfaces.cli.exit_codes import (
    EXIT_CONFIG,
    EXIT_FAILURE,
    EXIT_REVOCATION_NOT_ENFORCED,
    EXIT_VALIDATION,
)
from permctl.logging_config import configure_logging

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="permctl",
        description="Manage temporary elevated permissions on Linux",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-c", "--config", help="Path to config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("grant", help="Grant temporary permission to a user")
    p.add_argument("username", help="Username to grant permission to")
    p.add_argument("target", metavar="command", help="Command to grant permission for")
    p.add_argument("-d", "--duration", type=_positive_int, default=60, help="Duration in minutes")
    p.set_defaults(handler=commands.grant)

    p = sub.add_parser("revoke", help="Revoke permission from a user")
    p.add_argument("username")
    p.add_argument("target", metavar="command")
    p.set_defaults(handler=commands.revoke)

    p = sub.add_parser("list", help="List active permissions")
    p.add_argument("-u", "--user", help="Only show permissions for this user")
    p.set_defaults(handler=commands.list_permissions)

    p = sub.add_parser("commands", help="Show allowed commands")
    p.add_argument("-v", "--verbose", action="store_true", help="Show policy details")
    p.set_defaults(handler=commands.show_commands, needs_app=False)

    p = sub.add_parser("cleanup", help="Revoke expired permissions")
    p.set_defaults(handler=commands.cleanup)

    p = sub.add_parser("use", help="Record use of a granted command")
    p.add_argument("username")
    p.add_argument("target", metavar="command")
    p.set_defaults(handler=commands.record_use)

    p = sub.add_parser("audit", help="Show the audit trail")
    p.add_argument("-u", "--user")
    p.add_argument("--command", dest="audit_command")
    p.add_argument("-n", "--limit", type=_positive_int, default=50)
    p.set_defaults(handler=commands.show_audit)

    p = sub.add_parser("sync", help="Rewrite the sudoers file from the ledger")
    p.set_defaults(handler=commands.sync)

    p = sub.add_parser("init", help="Write a default configuration")
    p.add_argument("-f", "--force", action="store_true", help="Overwrite existing configuration")
    p.set_defaults(handler=commands.init_config, needs_app=False, needs_settings=False)

    p = sub.add_parser("verify", help="Verify configuration, ledger and sudoers file")
    p.set_defaults(handler=commands.verify)

    return parser


def run(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if not getattr(args, "needs_settings", True):
        configure_logging(debug=args.debug, log_path=None)
        try:
            return args.handler(resolve_config_path(args.config), args)
        except ConfigError as exc:
            logger.error("%s", exc)
            return EXIT_CONFIG

    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        configure_logging(debug=args.debug, log_path=None)
        logger.error("%s", exc)
        return EXIT_CONFIG

    configure_logging(settings.log_level, settings.log_path, debug=args.debug or settings.debug)

    if not getattr(args, "needs_app", True):
        return args.handler(settings, args)

    try:
        return asyncio.run(commands.dispatch(settings, args))
    except RevocationNotEnforced as exc:
        print(f"✗ REVOCATION NOT ENFORCED: {exc}")
        print("  The ledger no longer grants this access but the sudoers file still does.")
        print("  Run 'permctl sync' as root immediately.")
        return EXIT_REVOCATION_NOT_ENFORCED
    except ValidationError as exc:
        print(f"✗ {exc}")
        return EXIT_VALIDATION
    except PermctlError as exc:
        print(f"✗ {exc}")
        if exc.transient:
            print("  This may be temporary; retrying can succeed.")
        return EXIT_FAILURE
