"""Service manager client driving systemd through systemctl."""
import asyncio
import logging

from .base import ServiceManager

logger = logging.getLogger(__name__)


class ServiceManagerError(Exception):
    """A service manager operation failed."""

    def __init__(self, verb: str, unit: str, detail: str):
        self.verb = verb
        self.unit = unit
        self.detail = detail
        target = f" {unit}" if unit else ""
        super().__init__(f"systemctl {verb}{target} failed: {detail}")


class SystemctlServiceManager(ServiceManager):
    """
    Controls systemd units by invoking ``systemctl``.

    Each call runs one systemctl process and waits for it, bounded by
    ``timeout`` seconds.
    """

    def __init__(self, systemctl: str = "systemctl", timeout: float = 60):
        """
        Initialize the client.

        Args:
            systemctl: Path or name of the systemctl binary
            timeout: Seconds to wait for a single systemctl invocation
        """
        self.systemctl = systemctl
        self.timeout = timeout

    async def _run_systemctl(self, verb: str, unit: str = "") -> str:
        """Run a systemctl command and return its stdout."""
        cmd = [self.systemctl, verb] + ([unit] if unit else [])
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ServiceManagerError(verb, unit, str(e)) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise ServiceManagerError(verb, unit, f"timed out after {self.timeout}s")

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or f"exit code {proc.returncode}"
            raise ServiceManagerError(verb, unit, detail)

        return stdout.decode(errors="replace")

    async def enable(self, unit: str) -> None:
        await self._run_systemctl("enable", unit)

    async def disable(self, unit: str) -> None:
        await self._run_systemctl("disable", unit)

    async def stop(self, unit: str) -> None:
        await self._run_systemctl("stop", unit)

    async def restart(self, unit: str) -> None:
        await self._run_systemctl("restart", unit)

    async def daemon_reload(self) -> None:
        await self._run_systemctl("daemon-reload")
