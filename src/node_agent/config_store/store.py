"""Store for the last fully applied configuration.

Handles:
- Persisting the raw bytes of the last applied configuration
- Recording its checksum next to it
- Loading and decoding it again on the next pass or after a restart
"""
import logging
import posixpath
from dataclasses import dataclass
from typing import Optional

from ..config_engine.parser import ConfigParser, compute_checksum
from ..config_engine.schema import DesiredConfig
from ..host.base import Filesystem

logger = logging.getLogger(__name__)

# Default location of the last-applied marker
DEFAULT_STATE_DIR = "/var/lib/node-agent"
MARKER_FILE_NAME = "last-applied-config.yaml"
CHECKSUM_SUFFIX = ".checksum"


@dataclass
class ConvergenceMarker:
    """The last configuration that was fully applied to the node."""
    raw: bytes
    checksum: str

    def decode(self, parser: Optional[ConfigParser] = None) -> DesiredConfig:
        """Parse the stored configuration."""
        return (parser or ConfigParser()).parse(self.raw)


class LastAppliedStore:
    """
    Persists the convergence marker at a fixed, well-known path.

    Layout:
        <state_dir>/
        ├── last-applied-config.yaml            # raw configuration bytes
        └── last-applied-config.yaml.checksum   # its checksum
    """

    def __init__(self, fs: Filesystem, state_dir: str = DEFAULT_STATE_DIR):
        """
        Initialize the store.

        Args:
            fs: Filesystem the marker lives on
            state_dir: Directory holding the marker files
        """
        self.fs = fs
        self.state_dir = state_dir

    @property
    def marker_path(self) -> str:
        return posixpath.join(self.state_dir, MARKER_FILE_NAME)

    @property
    def checksum_path(self) -> str:
        return self.marker_path + CHECKSUM_SUFFIX

    def load(self) -> Optional[ConvergenceMarker]:
        """Load the marker, None if nothing was applied yet."""
        try:
            raw = self.fs.read_file(self.marker_path)
        except FileNotFoundError:
            return None

        try:
            checksum = self.fs.read_file(self.checksum_path).decode().strip()
        except FileNotFoundError:
            checksum = ""

        # Fall back to our own checksum if the sidecar is missing
        if not checksum:
            checksum = compute_checksum(raw)

        return ConvergenceMarker(raw=raw, checksum=checksum)

    def load_config(self, parser: Optional[ConfigParser] = None) -> Optional[DesiredConfig]:
        """Load and decode the last applied configuration."""
        marker = self.load()
        if marker is None:
            return None
        return marker.decode(parser)

    def save(self, raw: bytes, checksum: str) -> ConvergenceMarker:
        """
        Persist a fully applied configuration.

        Each file is written to a temporary name and renamed into place.
        """
        self.fs.make_dirs(self.state_dir)

        self._write_atomic(self.marker_path, raw)
        self._write_atomic(self.checksum_path, checksum.encode() + b"\n")

        logger.debug(f"Persisted last applied configuration to {self.marker_path}")
        return ConvergenceMarker(raw=raw, checksum=checksum)

    def _write_atomic(self, path: str, data: bytes) -> None:
        tmp_path = path + ".tmp"
        self.fs.write_file(tmp_path, data, 0o644)
        self.fs.rename(tmp_path, path)
