"""
Staging Tree
============

Addressable virtual directory of files to be packaged, materialized under
a working root. Paths are '/'-separated and relative to the root; the role
of each file is attached when it is staged.
"""

from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union
import logging
import posixpath

from epubpack.errors import IOErrorKind, PackagingIOError
from epubpack.models import FileRole, StagedFile, StagingEntry
from epubpack.staging.filesystem import Filesystem, LocalFilesystem
from epubpack.staging.roles import DEFAULT_NAV_FILENAMES, infer_role

logger = logging.getLogger(__name__)

Content = Union[str, bytes]


def normalize_path(path: str) -> str:
    """
    Normalize a staging path to a clean '/'-separated relative form.

    Raises:
        PackagingIOError: If the path is empty, absolute, or escapes the root
    """
    raw = str(path).replace('\\', '/')
    if raw.startswith('/') or (len(raw) > 1 and raw[1] == ':'):
        raise PackagingIOError(f"Absolute path not allowed in staging tree: {path}",
                               kind=IOErrorKind.PERMISSION_DENIED, path=str(path))

    normalized = posixpath.normpath(raw)
    if normalized == '.':
        return ""
    if normalized == '..' or normalized.startswith('../'):
        raise PackagingIOError(f"Path escapes the working root: {path}",
                               kind=IOErrorKind.PERMISSION_DENIED, path=str(path))
    return normalized


class StagingTree:
    """
    Files staged for one packaging session.

    The first writer of a path wins: staging the same path twice keeps the
    original file and logs a warning.

    Example:
        tree = StagingTree(Path("/tmp/work/book"))
        tree.put("mimetype", "application/epub+zip")
        tree.put("EPUB/content/ch1.xhtml", chapter_markup)
        for entry in tree.list("EPUB"):
            print(entry.path, entry.is_dir)
    """

    def __init__(self,
                 root: Optional[Path] = None,
                 filesystem: Optional[Filesystem] = None,
                 nav_filenames=DEFAULT_NAV_FILENAMES):
        self.root = Path(root) if root is not None else None
        self.filesystem = filesystem or LocalFilesystem()
        self.nav_filenames = tuple(nav_filenames)
        self._files: Dict[str, StagedFile] = {}

    def __contains__(self, path: str) -> bool:
        return normalize_path(path) in self._files

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[StagedFile]:
        return iter(list(self._files.values()))

    def _absolute(self, path: str) -> Path:
        if self.root is None:
            raise PackagingIOError("Working root is not set, call prepare() first",
                                   kind=IOErrorKind.OTHER, path=path)
        relative = normalize_path(path)
        target = self.root / relative if relative else self.root

        # Symlinks inside the root must not lead outside it either
        resolved_root = self.root.resolve()
        resolved = target.resolve()
        if resolved != resolved_root and resolved_root not in resolved.parents:
            raise PackagingIOError(f"Path escapes the working root: {path}",
                                   kind=IOErrorKind.PERMISSION_DENIED, path=path)
        return target

    def create_root(self) -> None:
        """Create the working root directory."""
        if self.root is None:
            raise PackagingIOError("Working root is not set", kind=IOErrorKind.OTHER)
        self.filesystem.create_dir(self.root)

    def ensure_dir(self, path: str) -> Path:
        """Create a directory and all missing parents; idempotent."""
        target = self._absolute(path)
        self.filesystem.create_dir(target)
        return target

    def put(self, path: str, content: Content, role: Optional[FileRole] = None) -> StagedFile:
        """
        Materialize a file under the working root.

        Args:
            path: Relative path inside the container
            content: Text (written as UTF-8) or bytes
            role: Explicit role; inferred from the path when omitted

        Returns:
            The StagedFile record (the existing one if already staged)

        Raises:
            PackagingIOError: If the root is unset, the path escapes the root,
                or the write fails
        """
        relative = normalize_path(path)
        target = self._absolute(relative)
        if relative in self._files:
            logger.warning(f"Path already staged, keeping first version: {relative}")
            return self._files[relative]

        data = content.encode('utf-8') if isinstance(content, str) else bytes(content)
        self.filesystem.create_dir(target.parent)
        self.filesystem.write_bytes(target, data)

        staged = StagedFile(
            relative_path=relative,
            role=role or infer_role(relative, nav_filenames=self.nav_filenames),
            size=len(data),
        )
        self._files[relative] = staged
        logger.debug(f"Staged {staged.role.value}: {relative} ({len(data)} bytes)")
        return staged

    def put_copy(self, path: str, source_path: Union[str, Path],
                 role: Optional[FileRole] = None) -> StagedFile:
        """Stage a file by copying an existing file from outside the tree."""
        relative = normalize_path(path)
        target = self._absolute(relative)
        if relative in self._files:
            logger.warning(f"Path already staged, keeping first version: {relative}")
            return self._files[relative]

        self.filesystem.create_dir(target.parent)
        self.filesystem.copy(source_path, target)

        staged = StagedFile(
            relative_path=relative,
            role=role or infer_role(relative, is_image=True, nav_filenames=self.nav_filenames),
            size=len(self.filesystem.read_bytes(target)),
        )
        self._files[relative] = staged
        logger.debug(f"Copied {source_path} -> {relative}")
        return staged

    def rewrite(self, path: str, content: Content) -> StagedFile:
        """
        Replace the content of a staged file, keeping its role.

        Files present on disk but not yet tracked are adopted.
        """
        relative = normalize_path(path)
        target = self._absolute(relative)
        data = content.encode('utf-8') if isinstance(content, str) else bytes(content)
        self.filesystem.create_dir(target.parent)
        self.filesystem.write_bytes(target, data)

        staged = self._files.get(relative)
        if staged is None:
            staged = StagedFile(relative_path=relative,
                                role=infer_role(relative, nav_filenames=self.nav_filenames))
            self._files[relative] = staged
        staged.size = len(data)
        return staged

    def remove(self, path: str) -> None:
        """Remove a file or directory; no-op if absent."""
        relative = normalize_path(path)
        self.filesystem.delete_recursive(self._absolute(relative))
        prefix = relative + '/'
        for key in [k for k in self._files if k == relative or k.startswith(prefix)]:
            del self._files[key]

    def get(self, path: str) -> Optional[StagedFile]:
        return self._files.get(normalize_path(path))

    def exists(self, path: str) -> bool:
        return self.filesystem.exists(self._absolute(path))

    def is_dir(self, path: str) -> bool:
        return self.filesystem.is_dir(self._absolute(path))

    def read_bytes(self, path: str) -> bytes:
        return self.filesystem.read_bytes(self._absolute(path))

    def read_text(self, path: str) -> str:
        return self.filesystem.read_text(self._absolute(path))

    def files(self, role: Optional[FileRole] = None) -> List[StagedFile]:
        """Staged files in staging order, optionally filtered by role."""
        return [f for f in self._files.values() if role is None or f.role == role]

    def list(self, root_relative: str = "") -> Iterator[StagingEntry]:
        """
        Lazily list the direct children of a directory.

        Each call returns a fresh generator. Ordering is whatever the
        filesystem yields; callers needing a stable order must sort.
        """
        base = normalize_path(root_relative)
        directory = self._absolute(base)
        for child in self.filesystem.list_dir(directory):
            child_path = f"{base}/{child.name}" if base else child.name
            yield StagingEntry(path=child_path, is_dir=self.filesystem.is_dir(child))

    def walk(self, root_relative: str = "") -> Iterator[StagingEntry]:
        """Depth-first walk, directories before their files, sorted by name."""
        entries = sorted(self.list(root_relative), key=lambda e: (not e.is_dir, e.path))
        for entry in entries:
            yield entry
            if entry.is_dir:
                yield from self.walk(entry.path)

    def discard(self) -> None:
        """Delete the working root and forget all staged files; idempotent."""
        if self.root is not None:
            self.filesystem.delete_recursive(self.root)
            logger.debug(f"Discarded working root: {self.root}")
        self._files.clear()
