"""Application entry point and composition root."""

import logging
import shutil
import sys
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from permctl.application.permission_manager import PermissionManager
from permctl.application.ports import IdentityOracle
from permctl.application.services.access_validator import AccessValidator
from permctl.config import Settings
from permctl.infrastructure.identity.system_identity_oracle import SystemIdentityOracle
from permctl.infrastructure.persistence.sqlite.connection import upgrade_database
from permctl.infrastructure.persistence.sqlite.unit_of_work import create_uow_factory
from permctl.infrastructure.sudoers.synchronizer import SudoersSynchronizer

logger = logging.getLogger(__name__)


@dataclass
class PermctlApp:
    """Wired application: settings plus the manager the CLI drives."""

    settings: Settings
    manager: PermissionManager
    synchronizer: SudoersSynchronizer


def main() -> None:
    """CLI entry point."""
    from permctl.interfaces.cli.app import run

    sys.exit(run())


def create_permctl_app(
    settings: Settings,
    identity_oracle: IdentityOracle | None = None,
    clock: Callable[[], datetime] | None = None,
) -> PermctlApp:
    """Composition root - migrate the ledger and wire all dependencies."""
    upgrade_database(settings.db_path)
    uow_factory = create_uow_factory(settings.db_path, settings.db_busy_timeout, clock)

    policies = settings.command_policies()
    identity = identity_oracle or SystemIdentityOracle(timeout=settings.identity_lookup_timeout)
    validator = AccessValidator(policies, identity)

    visudo = settings.visudo_path
    if visudo and shutil.which(visudo) is None:
        logger.warning("visudo not found at %s; generated files will not be syntax-checked", visudo)
        visudo = None

    synchronizer = SudoersSynchronizer(
        settings.sudoers_path,
        uow_factory,
        lock_timeout=settings.sync_lock_timeout,
        visudo_path=visudo,
    )
    manager = PermissionManager(
        unit_of_work_factory=uow_factory,
        policies=policies,
        validator=validator,
        synchronizer=synchronizer,
        enforce_concurrent_limit=settings.enforce_concurrent_limit,
        clock=clock,
    )
    return PermctlApp(settings=settings, manager=manager, synchronizer=synchronizer)
