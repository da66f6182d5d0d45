"""Base host abstractions: the filesystem tree and the service manager."""
from abc import ABC, abstractmethod
from typing import Optional


class Filesystem(ABC):
    """Abstract hierarchical filesystem addressed by absolute paths.

    Reads of missing files raise FileNotFoundError; callers decide whether
    that is an error.
    """

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        """Read the full content of a file."""
        pass

    @abstractmethod
    def write_file(self, path: str, data: bytes, mode: int) -> None:
        """Create or truncate a file and write data to it."""
        pass

    @abstractmethod
    def chmod(self, path: str, mode: int) -> None:
        """Set the permission bits of a file."""
        pass

    @abstractmethod
    def file_mode(self, path: str) -> Optional[int]:
        """Get the permission bits of a file, None if it does not exist."""
        pass

    @abstractmethod
    def rename(self, src: str, dst: str) -> None:
        """Atomically move src to dst, replacing dst."""
        pass

    @abstractmethod
    def remove(self, path: str) -> None:
        """Remove a single file."""
        pass

    @abstractmethod
    def remove_all(self, path: str) -> None:
        """Remove a file or directory tree. Missing paths are ignored."""
        pass

    @abstractmethod
    def make_dirs(self, path: str) -> None:
        """Create a directory and all missing parents."""
        pass

    @abstractmethod
    def temp_dir(self, prefix: str) -> str:
        """Create a fresh scratch directory and return its path."""
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Whether a file or directory exists at path."""
        pass


class ServiceManager(ABC):
    """Abstract client of the node's service manager.

    Every call either completes or raises; nothing is retried internally.
    """

    @abstractmethod
    async def enable(self, unit: str) -> None:
        pass

    @abstractmethod
    async def disable(self, unit: str) -> None:
        pass

    @abstractmethod
    async def stop(self, unit: str) -> None:
        pass

    @abstractmethod
    async def restart(self, unit: str) -> None:
        pass

    @abstractmethod
    async def daemon_reload(self) -> None:
        """Make the service manager re-read all unit files."""
        pass
