"""
Data Model
==========

Shared data structures for one packaging session: staged files, manifest
entries, spine items, navigation entries and the session-scoped
PackageContext aggregate.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional


class FileRole(str, Enum):
    """Role of a staged file inside the EPUB container."""

    MIMETYPE = "mimetype"
    MANIFEST = "manifest"    # package document (.opf)
    NCX = "ncx"              # legacy navigation
    NAV = "nav"              # EPUB 3 navigation document
    CHAPTER = "chapter"
    ASSET = "asset"          # images, stylesheets, fonts
    OTHER = "other"


class ProgressPhase(str, Enum):
    """Phase reported with each progress event."""

    STAGING = "staging"
    REPAIRING = "repairing"
    ARCHIVING = "archiving"
    FINISHED = "finished"


class PackageState(str, Enum):
    """Lifecycle states of a packaging orchestrator."""

    IDLE = "idle"
    PREPARED = "prepared"
    STAGED = "staged"
    REPAIRED = "repaired"
    ARCHIVED = "archived"
    CLEANED = "cleaned"
    FAILED = "failed"


# (progress_percent, label, phase)
ProgressCallback = Callable[[float, str, ProgressPhase], None]


@dataclass
class StagedFile:
    """A file materialized under the working root."""

    relative_path: str       # '/'-separated, relative to the working root
    role: FileRole
    size: int = 0

    @property
    def name(self) -> str:
        return self.relative_path.rsplit('/', 1)[-1]

    @property
    def parent(self) -> str:
        if '/' not in self.relative_path:
            return ""
        return self.relative_path.rsplit('/', 1)[0]


@dataclass
class StagingEntry:
    """One item produced by a directory listing of the staging tree."""

    path: str
    is_dir: bool

    @property
    def name(self) -> str:
        return self.path.rstrip('/').rsplit('/', 1)[-1]


@dataclass
class ManifestEntry:
    """A manifest <item>: id, href relative to the package root, media type."""

    id: str
    href: str
    media_type: str
    properties: Optional[str] = None


@dataclass
class SpineItem:
    """Ordered reference to a manifest entry."""

    idref: str
    linear: bool = True


@dataclass
class NavigationEntry:
    """A table of contents entry; order is 1-based and follows the spine."""

    href: str
    label: str
    order: int


@dataclass
class PackageContext:
    """
    Session-scoped state of one packaging run.

    Owned by exactly one orchestrator; never shared between builders.

    Attributes:
        working_root: Transient staging directory
        destination_dir: Directory that receives the final archive
        output_path: Final archive path (set once known)
        temp_output_path: Temporary archive path while writing
        manifest: Manifest entries produced by repair
        spine: Spine produced by repair
        navigation: Navigation entries produced by repair
        progress: Last reported progress percent
    """
    working_root: Optional[Path] = None
    destination_dir: Optional[Path] = None
    output_path: Optional[Path] = None
    temp_output_path: Optional[Path] = None
    manifest: List[ManifestEntry] = field(default_factory=list)
    spine: List[SpineItem] = field(default_factory=list)
    navigation: List[NavigationEntry] = field(default_factory=list)
    progress: float = 0.0
