"""Filesystem implementation backed by a local directory tree."""
import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path, PurePosixPath
from typing import Optional

from .base import Filesystem

logger = logging.getLogger(__name__)

DEFAULT_TEMP_BASE = "/var/lib/node-agent/tmp"


class LocalFilesystem(Filesystem):
    """
    Local filesystem rooted at a base directory.

    Absolute paths handed to this class are resolved beneath ``root``, so a
    root of ``/`` addresses the real host while tests and dry environments
    can use any scratch directory.
    """

    def __init__(self, root: str = "/", temp_base: str = DEFAULT_TEMP_BASE):
        """
        Initialize the filesystem.

        Args:
            root: Directory that absolute paths are resolved beneath
            temp_base: Directory (inside root) that scratch directories go to,
                which must share a filesystem with the targets
        """
        self.root = Path(root)
        self.temp_base = temp_base

    def resolve(self, path: str) -> Path:
        """Map an absolute path to its location beneath the root."""
        parts = PurePosixPath("/", path).parts[1:]
        if ".." in parts:
            raise ValueError(f"Path escapes filesystem root: {path}")
        return self.root.joinpath(*parts)

    def read_file(self, path: str) -> bytes:
        return self.resolve(path).read_bytes()

    def write_file(self, path: str, data: bytes, mode: int) -> None:
        target = self.resolve(path)
        fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        # The umask may have masked bits on creation
        os.chmod(target, mode)

    def chmod(self, path: str, mode: int) -> None:
        os.chmod(self.resolve(path), mode)

    def file_mode(self, path: str) -> Optional[int]:
        try:
            return stat.S_IMODE(self.resolve(path).stat().st_mode)
        except FileNotFoundError:
            return None

    def rename(self, src: str, dst: str) -> None:
        os.replace(self.resolve(src), self.resolve(dst))

    def remove(self, path: str) -> None:
        self.resolve(path).unlink()

    def remove_all(self, path: str) -> None:
        target = self.resolve(path)
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink(missing_ok=True)

    def make_dirs(self, path: str) -> None:
        self.resolve(path).mkdir(parents=True, exist_ok=True)

    def temp_dir(self, prefix: str) -> str:
        self.make_dirs(self.temp_base)
        created = Path(tempfile.mkdtemp(prefix=prefix, dir=self.resolve(self.temp_base)))
        path = str(PurePosixPath(self.temp_base, created.name))
        logger.debug(f"Created scratch directory {path}")
        return path

    def exists(self, path: str) -> bool:
        return self.resolve(path).exists()
