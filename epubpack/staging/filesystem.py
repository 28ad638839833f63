"""
Filesystem Capability
=====================

Narrow filesystem interface consumed by the staging tree and archive
writer. Every failure surfaces as PackagingIOError with a kind of
NOT_FOUND, PERMISSION_DENIED, ALREADY_EXISTS or OTHER.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Union
import logging
import shutil

from epubpack.errors import PackagingIOError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class Filesystem(ABC):
    """
    Abstract filesystem used by the packaging pipeline.

    Subclass this to stage into something other than the local disk
    (an app sandbox, an in-memory store for tests, etc.).
    """

    @abstractmethod
    def exists(self, path: PathLike) -> bool:
        pass

    @abstractmethod
    def is_dir(self, path: PathLike) -> bool:
        pass

    @abstractmethod
    def create_dir(self, path: PathLike) -> None:
        """Create a directory and any missing parents; no-op if present."""
        pass

    @abstractmethod
    def delete_recursive(self, path: PathLike) -> None:
        """Delete a file or directory tree; no-op if absent."""
        pass

    @abstractmethod
    def read_bytes(self, path: PathLike) -> bytes:
        pass

    @abstractmethod
    def write_bytes(self, path: PathLike, data: bytes) -> None:
        pass

    @abstractmethod
    def copy(self, src_path: PathLike, dest_path: PathLike) -> None:
        """Copy a single file to dest_path (a file path, not a directory)."""
        pass

    @abstractmethod
    def list_dir(self, path: PathLike) -> Iterator[Path]:
        """Yield the direct children of a directory."""
        pass

    def read_text(self, path: PathLike) -> str:
        return self.read_bytes(path).decode('utf-8')

    def write_text(self, path: PathLike, text: str) -> None:
        self.write_bytes(path, text.encode('utf-8'))


class LocalFilesystem(Filesystem):
    """Filesystem capability backed by pathlib and shutil."""

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def is_dir(self, path: PathLike) -> bool:
        return Path(path).is_dir()

    def create_dir(self, path: PathLike) -> None:
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PackagingIOError.from_os_error(e, str(path)) from e

    def delete_recursive(self, path: PathLike) -> None:
        target = Path(path)
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
                logger.debug(f"Removed directory: {target}")
            elif target.exists() or target.is_symlink():
                target.unlink()
                logger.debug(f"Removed file: {target}")
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PackagingIOError.from_os_error(e, str(path)) from e

    def read_bytes(self, path: PathLike) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise PackagingIOError.from_os_error(e, str(path)) from e

    def write_bytes(self, path: PathLike, data: bytes) -> None:
        try:
            Path(path).write_bytes(data)
        except OSError as e:
            raise PackagingIOError.from_os_error(e, str(path)) from e

    def copy(self, src_path: PathLike, dest_path: PathLike) -> None:
        try:
            shutil.copyfile(src_path, dest_path)
        except OSError as e:
            raise PackagingIOError.from_os_error(e, str(src_path)) from e

    def list_dir(self, path: PathLike) -> Iterator[Path]:
        try:
            children = list(Path(path).iterdir())
        except OSError as e:
            raise PackagingIOError.from_os_error(e, str(path)) from e
        yield from children
