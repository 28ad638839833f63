"""
epubpack
========

EPUB packaging and structural repair:

- Stage generated chapters, stylesheets and images under a working root
- Rebuild the package manifest, spine and navigation so they agree with
  the staged files, whatever the content generator produced
- Write the archive with an uncompressed mimetype first entry

Architecture
------------

    epubpack/
    ├── staging/       - Working root, filesystem capability, role inference
    ├── fixing/        - Manifest / spine / NCX repair
    ├── navigation/    - Navigation document and navMap builders
    ├── packaging/     - EPUB archive writer
    ├── validation/    - Container checks on produced archives
    ├── constructor/   - Book settings and the default content generator
    ├── config/        - Configuration management
    ├── xml/           - XML helpers
    └── orchestrator   - Lifecycle and progress reporting

Usage
-----

    from epubpack import EpubBuilder, EpubSettings, EpubChapter

    settings = EpubSettings(title="Air born", chapters=[
        EpubChapter(title="chapter 1", html_body="<p>One</p>"),
    ])
    builder = EpubBuilder(settings, destination_dir="out").prepare()
    builder.add_chapter(EpubChapter(title="chapter 2", html_body="<p>Two</p>"))
    path = builder.save(lambda percent, label, phase: print(percent, label))
"""

__version__ = "1.0.0"

from epubpack.config import BuilderConfig, load_config, save_config, get_default_config
from epubpack.constructor import (
    EpubSettings,
    EpubChapter,
    EpubAsset,
    EpubConstructor,
    GeneratedFile,
    load_book,
    get_valid_file_name_by_title,
)
from epubpack.errors import (
    EpubPackError,
    StateError,
    StructureError,
    PackagingIOError,
    IOErrorKind,
    DestinationPermissionError,
)
from epubpack.models import FileRole, PackageState, ProgressPhase
from epubpack.navigation import build_navigation_document
from epubpack.orchestrator import PackagingOrchestrator

EpubBuilder = PackagingOrchestrator

__all__ = [
    "__version__",
    "BuilderConfig",
    "load_config",
    "save_config",
    "get_default_config",
    "EpubSettings",
    "EpubChapter",
    "EpubAsset",
    "EpubConstructor",
    "GeneratedFile",
    "load_book",
    "get_valid_file_name_by_title",
    "EpubPackError",
    "StateError",
    "StructureError",
    "PackagingIOError",
    "IOErrorKind",
    "DestinationPermissionError",
    "FileRole",
    "PackageState",
    "ProgressPhase",
    "build_navigation_document",
    "PackagingOrchestrator",
    "EpubBuilder",
]
