"""
EPUB Archive Writer
===================

Serializes a repaired staging tree into an EPUB archive:

- mimetype first, stored (no compression), exactly "application/epub+zip"
- container.xml, package document, NCX and navigation document next
- everything else in a depth-first walk, directories before their files

The archive is written to a temporary ".part" file next to the final path
and moved into place only after the zip stream closed cleanly.
"""

from pathlib import Path
from typing import Callable, List, Optional
import logging
import os
import time
import zipfile
import zlib

from epubpack.config.settings import BuilderConfig
from epubpack.errors import PackagingIOError, StructureError
from epubpack.fixing.base import RepairResult
from epubpack.models import FileRole
from epubpack.packaging.base import BasePackager, PackageResult
from epubpack.staging.roles import MIMETYPE_CONTENT
from epubpack.staging.tree import StagingTree, normalize_path
from epubpack.validation.base import BaseValidator

logger = logging.getLogger(__name__)

MIMETYPE_ENTRY = "mimetype"
CONTAINER_PATH = "META-INF/container.xml"

# (entries_done, entries_total, entry_name)
EntryProgress = Callable[[int, int, str], None]


def temp_path_for(output_path: Path) -> Path:
    """Temporary path an archive is written to before being moved into place."""
    return output_path.with_name(output_path.name + ".part")


def _parent_dirs(path: str) -> List[str]:
    parts = path.split('/')[:-1]
    return ['/'.join(parts[:i]) + '/' for i in range(1, len(parts) + 1)]


class EpubZipStream:
    """
    Zip writer enforcing the EPUB container entry rules.

    Example:
        with EpubZipStream(Path("book.epub.part")) as stream:
            stream.write_mimetype()
            stream.write_entry("META-INF/container.xml", container_xml)
    """

    def __init__(self, path: Path, compresslevel: int = 9):
        self.path = Path(path)
        self.compresslevel = compresslevel
        self._names: List[str] = []
        self._written = set()
        try:
            self._zip = zipfile.ZipFile(self.path, 'w', zipfile.ZIP_DEFLATED)
        except OSError as e:
            raise PackagingIOError.from_os_error(e, str(self.path)) from e

    def __enter__(self) -> 'EpubZipStream':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def names(self) -> List[str]:
        """Entry names in write order."""
        return list(self._names)

    @property
    def mimetype_written(self) -> bool:
        return MIMETYPE_ENTRY in self._written

    def _record(self, name: str) -> None:
        self._names.append(name)
        self._written.add(name)

    def write_mimetype(self) -> None:
        """Write the stored mimetype entry; must be the first entry."""
        if self._names:
            raise StructureError("mimetype must be the first archive entry")

        info = zipfile.ZipInfo(MIMETYPE_ENTRY)
        info.compress_type = zipfile.ZIP_STORED
        self._zip.writestr(info, MIMETYPE_CONTENT, compress_type=zipfile.ZIP_STORED)
        self._record(MIMETYPE_ENTRY)

    def write_directory(self, name: str) -> None:
        """Write a directory entry; already written directories are skipped."""
        if not self.mimetype_written:
            raise StructureError(f"Entry {name} written before mimetype")

        name = name if name.endswith('/') else name + '/'
        if name in self._written:
            return

        info = zipfile.ZipInfo(name, date_time=time.localtime(time.time())[:6])
        info.compress_type = zipfile.ZIP_STORED
        info.external_attr = (0o40755 << 16) | 0x10
        self._zip.writestr(info, b"", compress_type=zipfile.ZIP_STORED)
        self._record(name)

    def write_entry(self, name: str, data: bytes) -> None:
        """
        Write a file entry with DEFLATE compression.

        Raises:
            StructureError: If mimetype was not written yet or the name is a duplicate
        """
        if not self.mimetype_written:
            raise StructureError(f"Entry {name} written before mimetype")
        if name in self._written:
            raise StructureError(f"Duplicate archive entry: {name}")

        info = zipfile.ZipInfo(name, date_time=time.localtime(time.time())[:6])
        info.compress_type = zipfile.ZIP_DEFLATED
        try:
            self._zip.writestr(info, data, compress_type=zipfile.ZIP_DEFLATED,
                               compresslevel=self.compresslevel)
        except zlib.error:
            if data:
                raise
            logger.warning(f"Compression failed for empty entry {name}, storing it")
            info.compress_type = zipfile.ZIP_STORED
            self._zip.writestr(info, data, compress_type=zipfile.ZIP_STORED)
        self._record(name)

    def close(self) -> None:
        self._zip.close()


class EpubArchiveWriter(BasePackager):
    """
    Packages a repaired staging tree as an EPUB archive.

    Example:
        writer = EpubArchiveWriter(config, validator=EpubContainerValidator())
        result = writer.package(tree, Path("out/My_Book.epub"), repair=repair_result)
        print(result.summary())
    """

    def __init__(self,
                 config: Optional[BuilderConfig] = None,
                 validator: Optional[BaseValidator] = None):
        self.config = config or BuilderConfig()
        self.validator = validator
        self.excluded = {normalize_path(p) for p in self.config.staging.excluded_files}

    @property
    def package_format(self) -> str:
        return "EPUB"

    def entry_order(self, tree: StagingTree,
                    repair: Optional[RepairResult] = None) -> List[str]:
        """
        File paths in archive order, mimetype excluded.

        The priority documents come first, the rest follows the tree walk.
        """
        priority = [CONTAINER_PATH]
        if repair is not None:
            priority += [repair.package_document, repair.ncx_document, repair.nav_document]
        else:
            for role in (FileRole.MANIFEST, FileRole.NCX, FileRole.NAV):
                priority += sorted(f.relative_path for f in tree.files(role))

        ordered: List[str] = []
        seen = {MIMETYPE_ENTRY}
        for path in priority:
            if not path or path in seen or path in self.excluded:
                continue
            if tree.exists(path) and not tree.is_dir(path):
                ordered.append(path)
                seen.add(path)

        for entry in tree.walk():
            if entry.is_dir or entry.path in seen:
                continue
            if entry.path in self.excluded:
                logger.debug(f"Skipping excluded file: {entry.path}")
                continue
            ordered.append(entry.path)
            seen.add(entry.path)
        return ordered

    def package(self,
                tree: StagingTree,
                output_path: Path,
                progress: Optional[EntryProgress] = None,
                repair: Optional[RepairResult] = None,
                **kwargs) -> PackageResult:
        """
        Write the archive.

        Args:
            tree: Repaired staging tree
            output_path: Final .epub path
            progress: Called after each entry with (done, total, name)
            repair: Result of the repair step, used to order priority entries

        Returns:
            PackageResult with packaging outcome

        Raises:
            StructureError: On a container invariant violation, or when strict
                validation rejects the archive
            PackagingIOError: On filesystem failures
        """
        output_path = Path(output_path)
        temp_path = temp_path_for(output_path)
        result = PackageResult(output_path=output_path)

        order = self.entry_order(tree, repair)
        total = len(order) + 1
        include_dirs = self.config.packaging.include_directory_entries

        if tree.exists(MIMETYPE_ENTRY) and tree.read_bytes(MIMETYPE_ENTRY).strip() != MIMETYPE_CONTENT:
            logger.warning("Staged mimetype has unexpected content, writing the canonical value")

        tree.filesystem.create_dir(output_path.parent)
        logger.info(f"Writing {total} file entries to {temp_path}")

        try:
            with EpubZipStream(temp_path, self.config.packaging.compression_level) as stream:
                stream.write_mimetype()
                if progress:
                    progress(1, total, MIMETYPE_ENTRY)

                for done, path in enumerate(order, start=2):
                    if include_dirs:
                        for directory in _parent_dirs(path):
                            stream.write_directory(directory)
                    stream.write_entry(path, tree.read_bytes(path))

                    staged = tree.get(path)
                    if staged is not None and staged.role == FileRole.CHAPTER:
                        result.chapters_packaged += 1
                    elif staged is not None and staged.role == FileRole.ASSET:
                        result.assets_packaged += 1

                    if progress:
                        progress(done, total, path)

            result.entries_written = stream.names
            self._validate(temp_path, result)

            try:
                os.replace(temp_path, output_path)
            except OSError as e:
                raise PackagingIOError.from_os_error(e, str(output_path)) from e
        except Exception:
            self._remove_temp(temp_path)
            raise

        result.total_size_bytes = output_path.stat().st_size
        logger.info(f"Created EPUB: {output_path} ({result.total_size_bytes} bytes)")
        return result

    def _validate(self, temp_path: Path, result: PackageResult) -> None:
        if self.validator is None or not self.config.validation.validate_on_package:
            return

        validation = self.validator.validate_package(temp_path)
        result.validation = validation
        if validation.is_valid and not validation.warning_count:
            logger.debug("Archive passed container validation")
            return

        if not validation.is_valid and self.config.validation.strict:
            raise StructureError(f"Archive failed container validation:\n{validation.summary()}")

        for error in validation.errors:
            logger.warning(f"[{error['type']}] {error['file']}: {error['message']}")

    @staticmethod
    def _remove_temp(temp_path: Path) -> None:
        try:
            temp_path.unlink()
            logger.debug(f"Removed temporary archive: {temp_path}")
        except FileNotFoundError:
            pass
        except OSError:
            logger.error(f"Could not remove temporary archive {temp_path}", exc_info=True)
