"""Store for the last applied configuration (the convergence marker).

Directory structure managed:
    /var/lib/node-agent/
    ├── last-applied-config.yaml
    └── last-applied-config.yaml.checksum
"""

from .store import (
    LastAppliedStore,
    ConvergenceMarker,
    DEFAULT_STATE_DIR,
)

__all__ = [
    "LastAppliedStore",
    "ConvergenceMarker",
    "DEFAULT_STATE_DIR",
]
