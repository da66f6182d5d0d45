"""Shared fixtures: a recording filesystem and a fake service manager."""
import asyncio
from typing import Optional

import pytest

from node_agent.config_engine import ConfigExecutor, DiffEngine
from node_agent.host.base import ServiceManager
from node_agent.host.local import LocalFilesystem
from node_agent.utils.audit_log import EventRecorder

UNIT_DIR = "/etc/systemd/system"


class RecordingFilesystem(LocalFilesystem):
    """LocalFilesystem under a scratch root that logs every mutation."""

    def __init__(self, root, calls: list):
        super().__init__(str(root))
        self.calls = calls

    def write_file(self, path, data, mode):
        self.calls.append(("write_file", path))
        super().write_file(path, data, mode)

    def chmod(self, path, mode):
        self.calls.append(("chmod", path))
        super().chmod(path, mode)

    def rename(self, src, dst):
        self.calls.append(("rename", dst))
        super().rename(src, dst)

    def remove(self, path):
        self.calls.append(("remove", path))
        super().remove(path)

    def remove_all(self, path):
        self.calls.append(("remove_all", path))
        super().remove_all(path)

    # Test helpers writing behind the agent's back

    def seed(self, path: str, data, mode: int = 0o600) -> None:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data.encode() if isinstance(data, str) else data)
        target.chmod(mode)

    def content(self, path: str) -> Optional[bytes]:
        target = self.resolve(path)
        return target.read_bytes() if target.exists() else None


class FakeServiceManager(ServiceManager):
    """Service manager recording calls into the shared call log."""

    def __init__(self, calls: list, delay: float = 0):
        self.calls = calls
        self.delay = delay
        self.failures: dict[tuple[str, str], Exception] = {}
        self.active = 0
        self.max_active = 0

    def fail(self, verb: str, unit: str = "", error: Optional[Exception] = None) -> None:
        self.failures[(verb, unit)] = error or RuntimeError(f"{verb} {unit} failed")

    async def _invoke(self, verb: str, unit: str = "") -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.calls.append((verb, unit) if unit else (verb,))
            if (verb, unit) in self.failures:
                raise self.failures[(verb, unit)]
        finally:
            self.active -= 1

    async def enable(self, unit):
        await self._invoke("enable", unit)

    async def disable(self, unit):
        await self._invoke("disable", unit)

    async def stop(self, unit):
        await self._invoke("stop", unit)

    async def restart(self, unit):
        await self._invoke("restart", unit)

    async def daemon_reload(self):
        await self._invoke("daemon_reload")


@pytest.fixture
def calls():
    """Ordered log shared by the filesystem and the service manager."""
    return []


@pytest.fixture
def fs(tmp_path, calls):
    return RecordingFilesystem(tmp_path / "root", calls)


@pytest.fixture
def service_manager(calls):
    return FakeServiceManager(calls)


@pytest.fixture
def recorder():
    return EventRecorder("node-1")


@pytest.fixture
def diff_engine(fs):
    return DiffEngine(fs, UNIT_DIR)


@pytest.fixture
def executor(fs, service_manager, recorder):
    return ConfigExecutor(fs, service_manager, recorder, unit_directory=UNIT_DIR)
