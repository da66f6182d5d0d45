"""Host capabilities: filesystem tree and service manager."""
from .base import Filesystem, ServiceManager
from .local import LocalFilesystem
from .systemd import SystemctlServiceManager, ServiceManagerError

__all__ = [
    "Filesystem",
    "ServiceManager",
    "LocalFilesystem",
    "SystemctlServiceManager",
    "ServiceManagerError",
]
