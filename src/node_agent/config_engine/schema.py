"""Schema definitions for the Config Engine.

Defines the desired configuration format and the change set computed from it.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

# Default permission bits for files and units without explicit permissions
DEFAULT_FILE_PERMISSIONS = 0o600


class Encoding(str, Enum):
    """Transfer encoding of inline file content."""
    NONE = ""
    BASE64 = "b64"


class UnitCommand(str, Enum):
    """Desired runtime command for a unit."""
    START = "start"
    STOP = "stop"


@dataclass
class FileContent:
    """Inline file content as transferred (possibly encoded)."""
    data: str
    encoding: Encoding = Encoding.NONE


@dataclass
class DesiredFile:
    """Desired state for a single file."""
    path: str
    content: Optional[FileContent] = None
    permissions: int = DEFAULT_FILE_PERMISSIONS


@dataclass
class DropIn:
    """A systemd drop-in fragment scoped to its owning unit."""
    name: str
    content: str


@dataclass
class DesiredUnit:
    """Desired state for a single systemd unit.

    ``content`` of None means only enablement and command are managed and
    the unit file itself is left alone. ``enabled`` defaults to True.
    """
    name: str
    content: Optional[str] = None
    enabled: bool = True
    command: Optional[UnitCommand] = None
    drop_ins: list[DropIn] = field(default_factory=list)

    @property
    def should_stop(self) -> bool:
        """Whether the unit should be stopped rather than restarted."""
        return not self.enabled or self.command == UnitCommand.STOP


@dataclass
class DesiredConfig:
    """Complete desired configuration for a node."""
    files: list[DesiredFile] = field(default_factory=list)
    units: list[DesiredUnit] = field(default_factory=list)

    def file_map(self) -> dict[str, DesiredFile]:
        return {f.path: f for f in self.files}

    def unit_map(self) -> dict[str, DesiredUnit]:
        return {u.name: u for u in self.units}


# --- Validation Results ---

@dataclass
class ValidationResult:
    """Result of config validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# --- Change Set ---

@dataclass
class DropInChanges:
    """Drop-in sub-diff of a single unit."""
    changed: list[DropIn] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)


@dataclass
class UnitChange:
    """A new or changed unit together with its drop-in sub-diff."""
    unit: DesiredUnit
    drop_ins: DropInChanges = field(default_factory=DropInChanges)

    @property
    def name(self) -> str:
        return self.unit.name


@dataclass
class FileChanges:
    changed: list[DesiredFile] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)


@dataclass
class UnitChanges:
    changed: list[UnitChange] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)


@dataclass
class ChangeSet:
    """Result of diffing desired vs current state."""
    files: FileChanges = field(default_factory=FileChanges)
    units: UnitChanges = field(default_factory=UnitChanges)

    @property
    def no_change(self) -> bool:
        """Check if there are any changes."""
        return self.total_changes == 0

    @property
    def total_changes(self) -> int:
        """Total number of changes."""
        return (
            len(self.files.changed) +
            len(self.files.deleted) +
            len(self.units.changed) +
            len(self.units.deleted)
        )

    def counts(self) -> dict[str, int]:
        return {
            "changed_files": len(self.files.changed),
            "deleted_files": len(self.files.deleted),
            "changed_units": len(self.units.changed),
            "deleted_units": len(self.units.deleted),
        }


# --- Reconciliation Results ---

class ReconcileOutcome(str, Enum):
    """Terminal outcome of a successful reconciliation pass."""
    ABSENT = "absent"           # No desired config resource exists
    UP_TO_DATE = "up_to_date"   # Node checksum already matches
    APPLIED = "applied"         # Changes applied (possibly none) and marker written


@dataclass
class ReconcileResult:
    """Result of a single reconciliation pass."""
    outcome: ReconcileOutcome
    checksum: Optional[str] = None
    requeue_after: Optional[float] = None
    changes: Optional[ChangeSet] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "outcome": self.outcome.value,
            "checksum": self.checksum,
            "requeue_after": self.requeue_after,
            "changes": self.changes.counts() if self.changes else None,
        }
