"""
Packaging Orchestrator
======================

Drives one EPUB build through its lifecycle:

    IDLE -> PREPARED -> STAGED -> REPAIRED -> ARCHIVED -> CLEANED
                                                      \\-> FAILED (from any phase)

Staging runs the content generator and materializes its output under a
private working root, repair makes the package metadata consistent, and
archiving writes the .epub next to its final location before moving it
into place. Progress events are reported to a callback passed to save().
"""

from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union
import logging
import tempfile
import uuid

from epubpack.config.settings import BuilderConfig
from epubpack.constructor.generator import EpubConstructor
from epubpack.constructor.settings import EpubChapter, EpubSettings
from epubpack.errors import DestinationPermissionError, StateError
from epubpack.fixing.base import RepairResult
from epubpack.fixing.manifest_repairer import ManifestRepairer
from epubpack.models import FileRole, PackageContext, PackageState, ProgressCallback, ProgressPhase
from epubpack.navigation.builder import NavigationBuilder
from epubpack.packaging.archive_writer import EpubArchiveWriter, temp_path_for
from epubpack.packaging.base import PackageResult
from epubpack.staging.filesystem import Filesystem, LocalFilesystem
from epubpack.staging.roles import MIMETYPE_CONTENT
from epubpack.staging.tree import StagingTree
from epubpack.validation.container_validator import EpubContainerValidator
from epubpack.xml.utils import sanitize_fragment

logger = logging.getLogger(__name__)

DestinationResolver = Callable[[], Union[str, Path]]


class ProgressReporter:
    """Forwards progress events to a callback, never letting the percent decrease."""

    def __init__(self, callback: Optional[ProgressCallback], context: PackageContext):
        self.callback = callback
        self.context = context
        self.last = 0.0

    def emit(self, percent: float, label: str, phase: ProgressPhase) -> None:
        percent = max(self.last, min(100.0, float(percent)))
        self.last = percent
        self.context.progress = percent
        if self.callback is not None:
            self.callback(percent, label, phase)

    @staticmethod
    def band(start: float, end: float, fraction: float) -> float:
        return start + (end - start) * max(0.0, min(1.0, fraction))


class PackagingOrchestrator:
    """
    Builds one EPUB file from book settings.

    One instance is one session; callers must not invoke add_chapter(),
    save() and discard_changes() concurrently on the same instance.

    Example:
        builder = PackagingOrchestrator(settings, destination_dir=Path("out"))
        builder.prepare()
        builder.add_chapter(EpubChapter(title="Epilogue", html_body="<p>The end.</p>"))
        epub_path = builder.save(lambda pct, label, phase: print(f"{pct:5.1f}% {label}"))
    """

    def __init__(self,
                 settings: EpubSettings,
                 destination_dir: Optional[Union[str, Path]] = None,
                 config: Optional[BuilderConfig] = None,
                 destination_resolver: Optional[DestinationResolver] = None,
                 generator_factory: Callable[[EpubSettings], Any] = EpubConstructor,
                 filesystem: Optional[Filesystem] = None,
                 repairer: Optional[ManifestRepairer] = None,
                 writer: Optional[EpubArchiveWriter] = None):
        """
        Args:
            settings: Book to build
            destination_dir: Directory receiving the .epub; resolved lazily when omitted
            config: Builder configuration
            destination_resolver: Called by prepare() when no destination_dir was given
            generator_factory: Creates the content generator for each save()
            filesystem: Filesystem capability used for staging
            repairer: Manifest repairer (default built from config)
            writer: Archive writer (default built from config, with validation)
        """
        self.settings = settings
        self.config = config or BuilderConfig()
        self.destination_resolver = destination_resolver
        self.generator_factory = generator_factory
        self.filesystem = filesystem or LocalFilesystem()
        self.repairer = repairer or ManifestRepairer(
            self.config.packaging, NavigationBuilder(language=settings.language or None)
        )
        self.writer = writer or EpubArchiveWriter(self.config, EpubContainerValidator())

        self._destination_dir = Path(destination_dir) if destination_dir else None
        self._context = PackageContext(destination_dir=self._destination_dir)
        self._state = PackageState.IDLE
        self._tree: Optional[StagingTree] = None

        self.repair_result: Optional[RepairResult] = None
        self.package_result: Optional[PackageResult] = None

    @property
    def state(self) -> PackageState:
        return self._state

    @property
    def context(self) -> PackageContext:
        return self._context

    @property
    def tree(self) -> Optional[StagingTree]:
        return self._tree

    @property
    def file_name(self) -> str:
        return f"{self.settings.safe_file_name}.epub"

    def get_epub_settings(self) -> EpubSettings:
        return self.settings

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def prepare(self) -> 'PackagingOrchestrator':
        """
        Allocate the working root and resolve the destination.

        Returns:
            self, for chaining

        Raises:
            StateError: If called while a save is in progress or after archiving
            DestinationPermissionError: If no destination could be resolved
            PackagingIOError: If the working root cannot be created
        """
        if self._state == PackageState.PREPARED:
            return self
        if self._state not in (PackageState.IDLE, PackageState.CLEANED, PackageState.FAILED):
            raise StateError(f"prepare() is not allowed in state {self._state.value}")

        try:
            destination = self._resolve_destination()
            working_root = self._allocate_working_root()
            tree = StagingTree(working_root, self.filesystem, self.config.packaging.nav_filenames)
            tree.create_root()
        except Exception:
            self._state = PackageState.FAILED
            raise

        output_path = destination / self.file_name
        self._tree = tree
        self._context = PackageContext(
            working_root=working_root,
            destination_dir=destination,
            output_path=output_path,
            temp_output_path=temp_path_for(output_path),
        )
        self.repair_result = None
        self.package_result = None

        for chapter in self.settings.chapters:
            self._sanitize(chapter)

        self._state = PackageState.PREPARED
        logger.info(f"Prepared working root {working_root} for {self.file_name}")
        return self

    def add_chapter(self, chapter: Union[EpubChapter, Dict[str, Any]]) -> EpubChapter:
        """
        Append a chapter to the book.

        Raises:
            StateError: Unless the builder is PREPARED
        """
        if self._state != PackageState.PREPARED:
            raise StateError(f"add_chapter() requires a prepared builder, state is {self._state.value}")

        if not isinstance(chapter, EpubChapter):
            chapter = EpubChapter.from_dict(chapter)
        self._sanitize(chapter)
        self.settings.chapters.append(chapter)
        logger.debug(f"Added chapter '{chapter.title}' ({len(self.settings.chapters)} total)")
        return chapter

    def save(self, progress_callback: Optional[ProgressCallback] = None) -> Path:
        """
        Stage, repair and archive the book.

        Args:
            progress_callback: Receives (percent, label, phase) events for this call

        Returns:
            Path of the written .epub

        Raises:
            StateError: If not called from IDLE or PREPARED
            StructureError, PackagingIOError: From the failing phase, unchanged
        """
        if self._state == PackageState.IDLE:
            self.prepare()
        if self._state != PackageState.PREPARED:
            raise StateError(f"save() is not allowed in state {self._state.value}")

        reporter = ProgressReporter(progress_callback, self._context)
        tree = self._tree
        logger.info(f"Building {self.file_name} with {len(self.settings.chapters)} chapter(s)")

        try:
            self._stage(tree, reporter)
            self._state = PackageState.STAGED

            self.repair_result = self._repair(tree, reporter)
            self._state = PackageState.REPAIRED

            self.package_result = self._archive(tree, reporter, self.repair_result)
            self._state = PackageState.ARCHIVED
        except Exception:
            self._state = PackageState.FAILED
            logger.error(f"Building {self.file_name} failed", exc_info=True)
            self._remove_working_files()
            raise

        if self.config.staging.cleanup_on_success:
            self._remove_working_files()
            self._tree = None
            self._state = PackageState.CLEANED

        reporter.emit(100.0, self.file_name, ProgressPhase.FINISHED)
        logger.info(f"EPUB saved: {self._context.output_path}")
        return self._context.output_path

    def discard_changes(self) -> None:
        """Remove the working root and any temporary output. Safe in any state."""
        if self._tree is None and self._context.temp_output_path is None:
            logger.debug("Nothing to discard")
            return

        self._remove_working_files()
        self._tree = None
        self._context.temp_output_path = None
        if self._state != PackageState.IDLE:
            self._state = PackageState.CLEANED
        logger.info("Discarded staged changes")

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _stage(self, tree: StagingTree, reporter: ProgressReporter) -> None:
        staging_end = self.config.progress.staging_end
        midpoint = staging_end / 2

        generator = self.generator_factory(self.settings)
        files = generator.construct_package(
            lambda fraction: reporter.emit(reporter.band(0.0, midpoint, fraction),
                                           self.file_name, ProgressPhase.STAGING)
        )
        logger.info(f"Staging {len(files)} generated file(s)")

        for index, generated in enumerate(files, start=1):
            path = generated.path
            if generated.is_directory:
                if path.strip('/'):
                    tree.ensure_dir(path.rstrip('/'))
            elif path == "mimetype":
                tree.put(path, MIMETYPE_CONTENT, role=FileRole.MIMETYPE)
            elif generated.is_image and isinstance(generated.content, str):
                source = Path(generated.content)
                if generated.content and source.is_file():
                    tree.put_copy(path, source, role=FileRole.ASSET)
                else:
                    logger.warning(f"Source image not found: {generated.content!r}")
            else:
                tree.put(path, generated.content,
                         role=FileRole.ASSET if generated.is_image else None)

            # fraction stays below 1 so staging never reaches the repair band
            fraction = index / (len(files) + 1)
            reporter.emit(reporter.band(midpoint, staging_end, fraction), path, ProgressPhase.STAGING)

        for excluded in self.config.staging.excluded_files:
            if tree.exists(excluded):
                tree.remove(excluded)
                logger.info(f"Removed unwanted generated file: {excluded}")

    def _repair(self, tree: StagingTree, reporter: ProgressReporter) -> RepairResult:
        staging_end = self.config.progress.staging_end
        repair_end = self.config.progress.repair_end

        reporter.emit(staging_end, "Repairing package structure", ProgressPhase.REPAIRING)
        result = self.repairer.fix_package(tree)
        logger.debug(result.summary())

        self._context.manifest = list(result.manifest)
        self._context.spine = list(result.spine)
        self._context.navigation = list(result.navigation)
        reporter.emit(reporter.band(staging_end, repair_end, 0.5),
                      result.package_document, ProgressPhase.REPAIRING)
        return result

    def _archive(self, tree: StagingTree, reporter: ProgressReporter,
                 repair: RepairResult) -> PackageResult:
        repair_end = self.config.progress.repair_end
        reporter.emit(repair_end, self.file_name, ProgressPhase.ARCHIVING)

        def on_entry(done: int, total: int, name: str) -> None:
            reporter.emit(reporter.band(repair_end, 100.0, done / total), name, ProgressPhase.ARCHIVING)

        result = self.writer.package(tree, self._context.output_path, progress=on_entry, repair=repair)
        logger.debug(result.summary())
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_destination(self) -> Path:
        if self._destination_dir is not None:
            return self._destination_dir
        if self.destination_resolver is None:
            raise DestinationPermissionError("No destination directory given and no resolver configured")

        try:
            destination = self.destination_resolver()
        except Exception as e:
            raise DestinationPermissionError(f"Destination resolution failed: {e}") from e
        if not destination:
            raise DestinationPermissionError("Destination resolver returned no directory")
        return Path(destination)

    def _allocate_working_root(self) -> Path:
        staging = self.config.staging
        base = Path(staging.base_dir) if staging.base_dir else Path(tempfile.gettempdir())
        return base / staging.working_dir_name / f"{self.settings.safe_file_name}_{uuid.uuid4().hex[:8]}"

    def _sanitize(self, chapter: EpubChapter) -> None:
        chapter.html_body = sanitize_fragment(chapter.html_body, self.config.staging.strip_tags)

    def _remove_working_files(self) -> None:
        """Best-effort removal of the working root and temporary archive; errors are logged."""
        if self._tree is not None:
            try:
                self._tree.discard()
            except OSError:
                logger.error(f"Could not remove working root {self._tree.root}", exc_info=True)

        temp_output = self._context.temp_output_path
        if temp_output is not None:
            try:
                self.filesystem.delete_recursive(temp_output)
            except OSError:
                logger.error(f"Could not remove temporary output {temp_output}", exc_info=True)
