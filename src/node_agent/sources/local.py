"""Local file-backed implementations of the configuration source and node object."""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import yaml

from ..config_engine.parser import compute_checksum
from .base import (
    ConfigSource,
    DesiredConfigResource,
    NodeClient,
    ResourceNotFoundError,
)

logger = logging.getLogger(__name__)


class FileConfigSource(ConfigSource):
    """
    Reads the desired configuration from a local file.

    The checksum is taken from ``checksum_path`` when that file exists (the
    publisher declares it), otherwise it is computed from the raw bytes.
    """

    def __init__(self, path: str, checksum_path: Optional[str] = None):
        self.path = Path(path)
        self.checksum_path = Path(checksum_path) if checksum_path else None

    async def fetch(self) -> DesiredConfigResource:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            raise ResourceNotFoundError(f"Desired configuration {self.path} does not exist")

        checksum = ""
        if self.checksum_path is not None:
            try:
                checksum = self.checksum_path.read_text().strip()
            except FileNotFoundError:
                logger.debug(f"Checksum file {self.checksum_path} not found, computing checksum")

        return DesiredConfigResource(raw=raw, checksum=checksum or compute_checksum(raw))


class LocalNodeClient(NodeClient):
    """
    Node object kept as a YAML record on the local disk.

    Record format:
        name: node-1
        registered_at: '2026-01-13T10:00:00+00:00'
        annotations:
          node-agent.io/config-checksum: sha256:...

    A missing record means the node is not registered yet.
    """

    def __init__(self, path: str, node_name: str):
        self.path = Path(path)
        self.node_name = node_name

    def _load(self) -> Optional[dict]:
        try:
            with open(self.path) as f:
                return yaml.safe_load(f) or {}
        except FileNotFoundError:
            return None

    def _save(self, record: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(yaml.safe_dump(record, default_flow_style=False, sort_keys=False))
        tmp_path.replace(self.path)

    def register(self) -> None:
        """Create the node record if it does not exist yet."""
        if self._load() is not None:
            return
        self._save({
            "name": self.node_name,
            "registered_at": datetime.now(timezone.utc).isoformat(),
            "annotations": {},
        })
        logger.info(f"Registered node {self.node_name} at {self.path}")

    async def get_annotations(self) -> Optional[dict[str, str]]:
        record = self._load()
        if record is None:
            return None
        return dict(record.get("annotations") or {})

    async def set_annotations(self, annotations: dict[str, str]) -> None:
        record = self._load()
        if record is None:
            raise ResourceNotFoundError(f"Node {self.node_name} is not registered")
        record["annotations"] = {**(record.get("annotations") or {}), **annotations}
        self._save(record)
