"""Interfaces to the external desired-configuration resource and node object."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

# Node annotation carrying the checksum of the applied configuration
ANNOTATION_CONFIG_CHECKSUM = "node-agent.io/config-checksum"


class ResourceNotFoundError(Exception):
    """The desired configuration resource does not exist."""
    pass


@dataclass
class DesiredConfigResource:
    """Raw desired configuration plus the checksum declared by its source."""
    raw: bytes
    checksum: str


class ConfigSource(ABC):
    """Source of the desired configuration for this node."""

    @abstractmethod
    async def fetch(self) -> DesiredConfigResource:
        """Fetch the desired configuration.

        Raises:
            ResourceNotFoundError: If there is nothing to reconcile
        """
        pass


class NodeClient(ABC):
    """Access to the annotations of the node object owning this agent."""

    @abstractmethod
    async def get_annotations(self) -> Optional[dict[str, str]]:
        """Get the node's annotations, None if the node is not registered yet."""
        pass

    @abstractmethod
    async def set_annotations(self, annotations: dict[str, str]) -> None:
        """Merge the given annotations into the node object."""
        pass
