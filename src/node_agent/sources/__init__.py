"""Desired configuration source and node object access."""
from .base import (
    ANNOTATION_CONFIG_CHECKSUM,
    ConfigSource,
    DesiredConfigResource,
    NodeClient,
    ResourceNotFoundError,
)
from .local import FileConfigSource, LocalNodeClient

__all__ = [
    "ANNOTATION_CONFIG_CHECKSUM",
    "ConfigSource",
    "DesiredConfigResource",
    "NodeClient",
    "ResourceNotFoundError",
    "FileConfigSource",
    "LocalNodeClient",
]
