"""Executor for applying change sets to the node.

Applies changes in six phases, strictly in order, failing fast:

1. Write new or changed files (atomically via a scratch directory)
2. Write new or changed units and drop-ins, register enablement
3. Disable, stop and remove deleted units
4. Reload the service manager
5. Stop or restart changed units (concurrently)
6. Remove deleted files

Nothing is rolled back on failure. Every step is idempotent, so the next
pass repairs partial progress.
"""
import asyncio
import logging
import posixpath
from typing import Awaitable, Callable

from ..host.base import Filesystem, ServiceManager
from ..utils.audit_log import EventRecorder
from ..utils.logging_config import timed_section
from .diff import DEFAULT_UNIT_DIRECTORY, drop_in_directory, unit_file_path
from .parser import ParseError, decode_content
from .schema import (
    DEFAULT_FILE_PERMISSIONS,
    ChangeSet,
    DesiredFile,
    UnitChange,
)

logger = logging.getLogger(__name__)


class ApplyError(Exception):
    """A single apply operation failed."""

    def __init__(self, operation: str, target: str, cause: BaseException):
        self.operation = operation
        self.target = target
        self.cause = cause
        super().__init__(f"unable to {operation} {target}: {cause}")


class ConfigExecutor:
    """Apply change sets to the filesystem and service manager."""

    def __init__(
        self,
        fs: Filesystem,
        service_manager: ServiceManager,
        recorder: EventRecorder,
        unit_directory: str = DEFAULT_UNIT_DIRECTORY,
        max_concurrent_commands: int = 10,
    ):
        """
        Initialize executor.

        Args:
            fs: Filesystem to write files and units to
            service_manager: Client of the node's service manager
            recorder: Event recorder for completed steps
            unit_directory: Directory systemd units are installed to
            max_concurrent_commands: Upper bound of parallel unit commands
        """
        self.fs = fs
        self.service_manager = service_manager
        self.recorder = recorder
        self.unit_directory = unit_directory
        self.max_concurrent_commands = max(1, max_concurrent_commands)

    @property
    def node_name(self) -> str:
        return self.recorder.node_name

    async def execute(self, changes: ChangeSet) -> None:
        """
        Apply a change set.

        An empty change set performs no writes and no service manager calls.

        Raises:
            ApplyError: If any operation fails; remaining phases are skipped
            ParseError: If file content cannot be decoded
        """
        if changes.no_change:
            logger.info("No changes to apply")
            return

        async with timed_section("apply_files", self.node_name, files=len(changes.files.changed)):
            logger.info("Applying new or changed files")
            self._apply_changed_files(changes.files.changed)

        async with timed_section("apply_units", self.node_name, units=len(changes.units.changed)):
            logger.info("Applying new or changed units")
            await self._apply_changed_units(changes.units.changed)

        async with timed_section("remove_units", self.node_name, units=len(changes.units.deleted)):
            logger.info("Removing no longer needed units")
            await self._remove_deleted_units(changes.units.deleted)

        async with timed_section("daemon_reload", self.node_name):
            logger.info("Reloading service manager")
            await self._call("reload", "service manager", self.service_manager.daemon_reload)

        async with timed_section("unit_commands", self.node_name, units=len(changes.units.changed)):
            logger.info("Executing unit commands (stop/restart)")
            await self._execute_unit_commands(changes.units.changed)

        async with timed_section("remove_files", self.node_name, files=len(changes.files.deleted)):
            logger.info("Removing no longer needed files")
            self._remove_deleted_files(changes.files.deleted)

    # --- Phase 1 ---

    def _apply_changed_files(self, files: list[DesiredFile]) -> None:
        """Write files to a scratch directory and rename them into place."""
        files = [f for f in files if f.content is not None]
        if not files:
            return

        try:
            tmp_dir = self.fs.temp_dir("node-agent-")
        except OSError as e:
            raise ApplyError("create temporary directory", "for files", e) from e

        try:
            for file in files:
                self._apply_file(tmp_dir, file)
        finally:
            try:
                self.fs.remove_all(tmp_dir)
            except OSError as e:
                logger.warning(f"Failed to remove temporary directory {tmp_dir}: {e}")

    def _apply_file(self, tmp_dir: str, file: DesiredFile) -> None:
        try:
            data = decode_content(file.content)
        except ParseError as e:
            raise ParseError(f"Unable to decode data of file {file.path}: {e}") from e

        try:
            self.fs.make_dirs(posixpath.dirname(file.path))
        except OSError as e:
            raise ApplyError("create directory for file", file.path, e) from e

        tmp_path = posixpath.join(tmp_dir, posixpath.basename(file.path))
        try:
            self.fs.write_file(tmp_path, data, file.permissions)
        except OSError as e:
            raise ApplyError("create temporary file for", file.path, e) from e

        try:
            self.fs.rename(tmp_path, file.path)
        except OSError as e:
            raise ApplyError("move temporary file into place at", file.path, e) from e

        logger.info(f"Successfully applied new or changed file {file.path}")
        self.recorder.record("FileApplied", "Applied new or changed file", target=file.path)

    # --- Phase 2 ---

    async def _apply_changed_units(self, changes: list[UnitChange]) -> None:
        for change in changes:
            unit = change.unit
            unit_path = unit_file_path(self.unit_directory, unit.name)

            if unit.content is not None:
                self._write_if_changed(unit_path, unit.content, unit.name, "unit file")

            drop_in_dir = drop_in_directory(self.unit_directory, unit.name)
            if not unit.drop_ins:
                try:
                    self.fs.remove_all(drop_in_dir)
                except OSError as e:
                    raise ApplyError("remove drop-in directory of unit", unit.name, e) from e
            else:
                try:
                    self.fs.make_dirs(drop_in_dir)
                except OSError as e:
                    raise ApplyError("create drop-in directory of unit", unit.name, e) from e

                for drop_in in change.drop_ins.changed:
                    self._write_if_changed(
                        posixpath.join(drop_in_dir, drop_in.name),
                        drop_in.content,
                        unit.name,
                        "drop-in file",
                    )

                for name in change.drop_ins.deleted:
                    drop_in_path = posixpath.join(drop_in_dir, name)
                    if self._remove_file(drop_in_path, f"drop-in file of unit {unit.name}"):
                        logger.info(f"Removed drop-in {drop_in_path} of unit {unit.name}")
                        self.recorder.record(
                            "DropInRemoved",
                            f"Removed no longer needed drop-in of unit {unit.name}",
                            target=drop_in_path,
                        )

            if unit.enabled:
                await self._call("enable unit", unit.name, self.service_manager.enable, unit.name)
                logger.info(f"Successfully enabled unit {unit.name}")
                self.recorder.record("UnitEnabled", "Enabled unit", target=unit.name)
            else:
                await self._call("disable unit", unit.name, self.service_manager.disable, unit.name)
                logger.info(f"Successfully disabled unit {unit.name}")
                self.recorder.record("UnitDisabled", "Disabled unit", target=unit.name)

    def _write_if_changed(self, path: str, content: str, unit_name: str, kind: str) -> None:
        """Write a unit or drop-in file when its content differs, then reset permissions."""
        try:
            old = self.fs.read_file(path)
        except FileNotFoundError:
            old = None
        except OSError as e:
            raise ApplyError(f"read existing {kind}", path, e) from e

        new = content.encode("utf-8")
        if new != old:
            try:
                self.fs.make_dirs(posixpath.dirname(path))
                self.fs.write_file(path, new, DEFAULT_FILE_PERMISSIONS)
            except OSError as e:
                raise ApplyError(f"write {kind}", path, e) from e
            logger.info(f"Successfully applied new or changed {kind} {path} for unit {unit_name}")
            self.recorder.record(
                "UnitFileApplied" if kind == "unit file" else "DropInApplied",
                f"Applied new or changed {kind} for unit {unit_name}",
                target=path,
            )

        # Restore permissions in case somebody changed them manually
        try:
            self.fs.chmod(path, DEFAULT_FILE_PERMISSIONS)
        except OSError as e:
            raise ApplyError(f"ensure permissions of {kind}", path, e) from e

    # --- Phase 3 ---

    async def _remove_deleted_units(self, names: list[str]) -> None:
        for name in names:
            # Disable first so nothing re-activates the unit while it stops
            await self._call("disable deleted unit", name, self.service_manager.disable, name)
            await self._call("stop deleted unit", name, self.service_manager.stop, name)

            self._remove_file(unit_file_path(self.unit_directory, name), f"unit file of {name}")

            try:
                self.fs.remove_all(drop_in_directory(self.unit_directory, name))
            except OSError as e:
                raise ApplyError("remove drop-in directory of deleted unit", name, e) from e

            logger.info(f"Successfully removed no longer needed unit {name}")
            self.recorder.record("UnitRemoved", "Removed no longer needed unit", target=name)

    # --- Phase 5 ---

    async def _execute_unit_commands(self, changes: list[UnitChange]) -> None:
        """Stop or restart all changed units concurrently.

        Every command runs to completion; the first failure is raised after
        all of them finished.
        """
        semaphore = asyncio.Semaphore(self.max_concurrent_commands)

        async def run_command(change: UnitChange) -> None:
            async with semaphore:
                if change.unit.should_stop:
                    await self._call("stop unit", change.name, self.service_manager.stop, change.name)
                    logger.info(f"Successfully stopped unit {change.name}")
                    self.recorder.record("UnitStopped", "Stopped unit", target=change.name)
                else:
                    await self._call("restart unit", change.name, self.service_manager.restart, change.name)
                    logger.info(f"Successfully restarted unit {change.name}")
                    self.recorder.record("UnitRestarted", "Restarted unit", target=change.name)

        results = await asyncio.gather(
            *(run_command(change) for change in changes),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors[1:]:
            logger.error(f"Additional unit command failure: {error}")
        if errors:
            raise errors[0]

    # --- Phase 6 ---

    def _remove_deleted_files(self, paths: list[str]) -> None:
        for path in paths:
            if not self._remove_file(path, "no longer needed file"):
                logger.debug(f"File {path} is already gone")
                continue
            logger.info(f"Successfully removed no longer needed file {path}")
            self.recorder.record("FileRemoved", "Removed no longer needed file", target=path)

    # --- Helpers ---

    def _remove_file(self, path: str, description: str) -> bool:
        """Remove a file. Returns False if it was already gone."""
        try:
            self.fs.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise ApplyError(f"remove {description}", path, e) from e
        return True

    async def _call(
        self,
        operation: str,
        target: str,
        func: Callable[..., Awaitable[None]],
        *args: str,
    ) -> None:
        """Call the service manager, wrapping failures with operation and target."""
        try:
            await func(*args)
        except ApplyError:
            raise
        except Exception as e:
            raise ApplyError(operation, target, e) from e
