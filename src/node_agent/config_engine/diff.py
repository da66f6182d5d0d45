"""Diff engine for calculating changes between desired and current state.

Computes the minimal set of changes needed to reach the desired state.
Deletions are computed against the last applied configuration, never by
scanning directories, so unmanaged files next to managed ones are left
alone.
"""
import posixpath
from typing import Optional

from ..host.base import Filesystem
from .parser import ParseError, decode_content
from .schema import (
    ChangeSet,
    DesiredConfig,
    DesiredFile,
    DesiredUnit,
    DropInChanges,
    UnitChange,
)

DEFAULT_UNIT_DIRECTORY = "/etc/systemd/system"


def unit_file_path(unit_directory: str, unit_name: str) -> str:
    return posixpath.join(unit_directory, unit_name)


def drop_in_directory(unit_directory: str, unit_name: str) -> str:
    return unit_file_path(unit_directory, unit_name) + ".d"


class DiffEngine:
    """Calculate differences between desired and current state."""

    def __init__(self, fs: Filesystem, unit_directory: str = DEFAULT_UNIT_DIRECTORY):
        self.fs = fs
        self.unit_directory = unit_directory

    def calculate(
        self,
        desired: DesiredConfig,
        previous: Optional[DesiredConfig] = None
    ) -> ChangeSet:
        """
        Calculate the change set between desired and current state.

        Args:
            desired: Desired configuration
            previous: Last fully applied configuration, if any

        Returns:
            ChangeSet with all changes needed

        Raises:
            ParseError: If file content cannot be decoded
        """
        previous = previous or DesiredConfig()
        result = ChangeSet()

        # Calculate file changes
        for file in desired.files:
            if self._file_differs(file):
                result.files.changed.append(file)

        desired_paths = {f.path for f in desired.files}
        result.files.deleted = [
            f.path for f in previous.files if f.path not in desired_paths
        ]

        # Calculate unit changes
        previous_units = previous.unit_map()
        for unit in desired.units:
            change = self._diff_unit(unit, previous_units.get(unit.name))
            if change:
                result.units.changed.append(change)

        desired_units = {u.name for u in desired.units}
        result.units.deleted = [
            u.name for u in previous.units if u.name not in desired_units
        ]

        return result

    def _file_differs(self, file: DesiredFile) -> bool:
        """Check whether a file needs to be (re)written. Files without content never do."""
        if file.content is None:
            return False

        try:
            data = decode_content(file.content)
        except ParseError as e:
            raise ParseError(f"Unable to decode data of file {file.path}: {e}") from e

        current = self._read(file.path)
        if current is None or current != data:
            return True

        return self.fs.file_mode(file.path) != file.permissions

    def _diff_unit(
        self,
        desired: DesiredUnit,
        previous: Optional[DesiredUnit]
    ) -> Optional[UnitChange]:
        """
        Calculate changes needed for a single unit.

        Returns None if no changes needed.
        """
        unit_path = unit_file_path(self.unit_directory, desired.name)
        drop_in_dir = drop_in_directory(self.unit_directory, desired.name)

        content_differs = (
            desired.content is not None and
            self._read(unit_path) != desired.content.encode("utf-8")
        )

        drop_ins = DropInChanges()
        for drop_in in desired.drop_ins:
            current = self._read(posixpath.join(drop_in_dir, drop_in.name))
            if current != drop_in.content.encode("utf-8"):
                drop_ins.changed.append(drop_in)

        if previous is not None:
            desired_names = {d.name for d in desired.drop_ins}
            drop_ins.deleted = [
                d.name for d in previous.drop_ins if d.name not in desired_names
            ]

        if previous is None:
            # Nothing on disk records the intent of a content-less unit,
            # nor that a unit should be disabled or stopped
            intent_differs = desired.content is None or desired.should_stop
        else:
            intent_differs = (
                desired.enabled != previous.enabled or
                desired.command != previous.command
            )

        has_changes = (
            content_differs or
            drop_ins.changed or
            drop_ins.deleted or
            intent_differs
        )

        if has_changes:
            return UnitChange(unit=desired, drop_ins=drop_ins)

        return None

    def _read(self, path: str) -> Optional[bytes]:
        try:
            return self.fs.read_file(path)
        except FileNotFoundError:
            return None


def summarize_diff(changes: ChangeSet) -> str:
    """
    Create a human-readable summary of a change set.

    Useful for dry-run output and logging.
    """
    if changes.no_change:
        return "No changes needed - node already matches desired configuration"

    lines = [f"Changes to apply ({changes.total_changes} total):", ""]

    for file in changes.files.changed:
        lines.append(f"  [~] Write file {file.path} (mode {oct(file.permissions)})")

    for change in changes.units.changed:
        lines.append(f"  [~] Apply unit {change.name}")
        unit = change.unit
        lines.append(f"      Enabled: {unit.enabled}")
        lines.append(f"      Command: {'stop' if unit.should_stop else 'restart'}")
        if change.drop_ins.changed:
            names = ", ".join(d.name for d in change.drop_ins.changed)
            lines.append(f"      Write drop-ins: {names}")
        if change.drop_ins.deleted:
            lines.append(f"      Remove drop-ins: {', '.join(change.drop_ins.deleted)}")

    for name in changes.units.deleted:
        lines.append(f"  [-] Remove unit {name}")

    for path in changes.files.deleted:
        lines.append(f"  [-] Remove file {path}")

    return "\n".join(lines)
