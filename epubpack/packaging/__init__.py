"""
Packaging Framework
===================

Provides the abstract packaging interface and the EPUB archive writer.

Components:
- BasePackager: Abstract base class for packagers
- PackageResult: Container for packaging results
- EpubZipStream: Zip stream enforcing the mimetype-first rule
- EpubArchiveWriter: Serializes a staging tree into an .epub archive
"""

from epubpack.packaging.base import (
    BasePackager,
    PackageResult,
)

from epubpack.packaging.archive_writer import (
    EpubZipStream,
    EpubArchiveWriter,
    temp_path_for,
)

__all__ = [
    "BasePackager",
    "PackageResult",
    "EpubZipStream",
    "EpubArchiveWriter",
    "temp_path_for",
]
