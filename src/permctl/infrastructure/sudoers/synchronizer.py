"""Sudoers synchronizer - atomic full rewrite of the policy file."""

import asyncio
import logging
import os
import subprocess
import tempfile
from pathlib import Path

from permctl.domain.exceptions import StorageError, SynchronizationError
from permctl.infrastructure.sudoers.file_lock import SudoersFileLock
from permctl.infrastructure.sudoers.renderer import UnsafeSudoersToken, render_sudoers

logger = logging.getLogger(__name__)

SUDOERS_MODE = 0o440
REPLACE_ATTEMPTS = 3


class SudoersSynchronizer:
    """Projects the ledger's active grants into a sudoers.d file.

    The file is always recomputed in full from a fresh snapshot, never
    patched. Snapshot read and file write happen under one inter-process
    lock, so the last rewrite to finish reflects every mutation committed
    before it started.
    """

    def __init__(
        self,
        sudoers_path: Path,
        unit_of_work_factory: type,
        *,
        lock_timeout: float = 10.0,
        visudo_path: str | None = None,
        file_mode: int = SUDOERS_MODE,
    ) -> None:
        self._path = sudoers_path
        self._uow_factory = unit_of_work_factory
        self._lock_timeout = lock_timeout
        self._visudo = visudo_path
        self._mode = file_mode

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock_path(self) -> Path:
        # sudo's #includedir skips names containing a dot.
        return self._path.with_name(f".{self._path.name}.lock")

    async def rewrite(self) -> int:
        """Regenerate the file. Returns number of rules written.

        Any failure before the final rename leaves the previous file in place.
        """
        async with SudoersFileLock(self.lock_path, timeout=self._lock_timeout):
            content, rules = await self._render()
            await self._install(content)
        logger.info("Wrote %d rule(s) to %s", rules, self._path)
        return rules

    async def is_in_sync(self) -> bool:
        """True if the file on disk equals a fresh rendering of the ledger."""
        content, _ = await self._render()
        try:
            current = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise SynchronizationError(self._path, f"cannot read: {exc}") from exc
        return current == content

    async def _render(self) -> tuple[str, int]:
        try:
            async with self._uow_factory() as uow:
                grants = await uow.permissions.list_all_active()
        except StorageError as exc:
            raise SynchronizationError(self._path, f"cannot read active grants: {exc}") from exc
        try:
            return render_sudoers(grants), len(grants)
        except UnsafeSudoersToken as exc:
            raise SynchronizationError(self._path, str(exc)) from exc

    async def _install(self, content: str) -> None:
        directory = self._path.parent
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
            )
        except OSError as exc:
            raise SynchronizationError(self._path, f"cannot create temporary file: {exc}") from exc

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_path, self._mode)
            if self._visudo:
                self._check_syntax(tmp_path)
            await self._replace(tmp_path)
        except OSError as exc:
            raise SynchronizationError(self._path, str(exc)) from exc
        finally:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Cannot remove temporary file %s: %s", tmp_path, exc)

        self._fsync_directory(directory)

    def _check_syntax(self, candidate: Path) -> None:
        try:
            result = subprocess.run(
                [self._visudo, "-cf", str(candidate)],
                capture_output=True,
                text=True,
                timeout=30,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise SynchronizationError(self._path, f"visudo check failed to run: {exc}") from exc
        if result.returncode != 0:
            raise SynchronizationError(
                self._path,
                f"visudo rejected generated file: {(result.stderr or result.stdout).strip()}",
            )

    async def _replace(self, candidate: Path) -> None:
        # os.replace is atomic: on failure the target is still the old file.
        for attempt in range(1, REPLACE_ATTEMPTS + 1):
            try:
                os.replace(candidate, self._path)
                return
            except OSError as exc:
                if attempt == REPLACE_ATTEMPTS:
                    raise
                logger.warning("Rename onto %s failed (attempt %d): %s", self._path, attempt, exc)
                await asyncio.sleep(0.05 * attempt)

    def _fsync_directory(self, directory: Path) -> None:
        try:
            dir_fd = os.open(directory, os.O_RDONLY)
        except OSError as exc:
            logger.warning("Cannot open %s to persist rename: %s", directory, exc)
            return
        try:
            os.fsync(dir_fd)
        except OSError as exc:
            logger.warning("fsync of %s failed after rename: %s", directory, exc)
        finally:
            os.close(dir_fd)
