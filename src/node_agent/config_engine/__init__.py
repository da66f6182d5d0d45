"""Config Engine - declarative reconciliation of files and systemd units.

The Config Engine converges a node to its desired configuration:
- Send desired state, not individual commands
- Automatic validation and change calculation
- Safety-ordered apply phases
- Checksum-based convergence tracking

Usage:
    from node_agent.config_engine import ConfigEngine

    engine = ConfigEngine.from_config(load_config())
    result = await engine.reconcile()
"""

from .engine import ConfigEngine, ReconcileError
from .schema import (
    DEFAULT_FILE_PERMISSIONS,
    ChangeSet,
    DesiredConfig,
    DesiredFile,
    DesiredUnit,
    DropIn,
    DropInChanges,
    Encoding,
    FileChanges,
    FileContent,
    ReconcileOutcome,
    ReconcileResult,
    UnitChange,
    UnitChanges,
    UnitCommand,
    ValidationResult,
)
from .parser import ConfigParser, ParseError, compute_checksum, decode_content
from .validator import ConfigValidator, ConfigValidationError
from .diff import DiffEngine, summarize_diff
from .executor import ConfigExecutor, ApplyError
from .gate import should_skip

__all__ = [
    # Main engine
    "ConfigEngine",
    "ReconcileError",
    # Schema classes
    "DEFAULT_FILE_PERMISSIONS",
    "ChangeSet",
    "DesiredConfig",
    "DesiredFile",
    "DesiredUnit",
    "DropIn",
    "DropInChanges",
    "Encoding",
    "FileChanges",
    "FileContent",
    "ReconcileOutcome",
    "ReconcileResult",
    "UnitChange",
    "UnitChanges",
    "UnitCommand",
    "ValidationResult",
    # Parser
    "ConfigParser",
    "ParseError",
    "compute_checksum",
    "decode_content",
    # Components (for advanced use)
    "ConfigValidator",
    "ConfigValidationError",
    "DiffEngine",
    "summarize_diff",
    "ConfigExecutor",
    "ApplyError",
    "should_skip",
]
