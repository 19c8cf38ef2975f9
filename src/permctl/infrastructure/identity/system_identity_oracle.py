"""Identity oracle backed by getent(1) and id(1)."""

import asyncio
import logging

from permctl.domain.exceptions import SystemLookupError

logger = logging.getLogger(__name__)

# getent(1): 0 found, 2 key not found in database.
_GETENT_FOUND = 0
_GETENT_NOT_FOUND = 2


class SystemIdentityOracle:
    """Answers user/group questions by running OS lookup tools.

    Anything other than a definitive answer (spawn failure, timeout,
    unexpected exit status) raises SystemLookupError.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        getent_path: str = "getent",
        id_path: str = "id",
    ) -> None:
        self._timeout = timeout
        self._getent = getent_path
        self._id = id_path

    async def user_exists(self, username: str) -> bool:
        returncode, _, stderr = await self._run(self._getent, "passwd", username)
        if returncode == _GETENT_FOUND:
            return True
        if returncode == _GETENT_NOT_FOUND:
            return False
        raise SystemLookupError(
            f"{self._getent} passwd",
            f"exit status {returncode}: {stderr.strip() or 'no output'}",
        )

    async def user_in_group(self, username: str, group: str) -> bool:
        returncode, stdout, stderr = await self._run(self._id, "-nG", username)
        if returncode != 0:
            raise SystemLookupError(
                f"{self._id} -nG",
                f"exit status {returncode}: {stderr.strip() or 'no output'}",
            )
        return group in stdout.split()

    async def _run(self, *argv: str) -> tuple[int, str, str]:
        name = " ".join(argv[:2])
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise SystemLookupError(name, str(exc)) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), self._timeout)
        except TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise SystemLookupError(name, f"timed out after {self._timeout}s") from exc

        logger.debug("%s exited with %s", name, proc.returncode)
        return (
            proc.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )
