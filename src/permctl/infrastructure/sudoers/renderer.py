"""Render active grants into sudoers syntax."""

import re
from collections.abc import Sequence

from permctl.domain.entities import PermissionGrant

SUDOERS_HEADER = (
    "# This file is managed by permctl. Do not edit manually.\n"
    "# It is regenerated from the permission ledger on every change.\n"
)

# Characters with no special meaning in a sudoers user or command field.
_SAFE_USER = re.compile(r"[A-Za-z_][A-Za-z0-9_.-]*\$?")
# One file per rule: a trailing "/" matches a whole directory; "." and ".." segments are refused.
_SAFE_COMMAND = re.compile(r"/(?:[A-Za-z0-9_+-][A-Za-z0-9_.+-]*/)*[A-Za-z0-9_+-][A-Za-z0-9_.+-]*")


class UnsafeSudoersToken(ValueError):
    """A username or command would change the meaning of a sudoers line."""

    pass


def render_rule(username: str, command: str) -> str:
    if not _SAFE_USER.fullmatch(username):
        raise UnsafeSudoersToken(f"unsafe username {username!r}")
    if not _SAFE_COMMAND.fullmatch(command):
        raise UnsafeSudoersToken(f"unsafe command {command!r}")
    return f"{username} ALL=(ALL) NOPASSWD: {command}"


def render_sudoers(grants: Sequence[PermissionGrant]) -> str:
    """Render the whole file. Output order follows the input order.

    Given the ledger's (username, command) ordering the result is
    deterministic for a given active set.
    """
    lines = [SUDOERS_HEADER]
    lines.extend(render_rule(g.username, g.command) + "\n" for g in grants)
    return "".join(lines)


def is_safe_command(command: str) -> bool:
    return bool(_SAFE_COMMAND.fullmatch(command))
