"""
Staging
=======

Working-root management: the filesystem capability, role inference and
the StagingTree itself.
"""

from epubpack.staging.filesystem import (
    Filesystem,
    LocalFilesystem,
)

from epubpack.staging.roles import (
    MIMETYPE_CONTENT,
    DEFAULT_NAV_FILENAMES,
    infer_role,
    guess_media_type,
)

from epubpack.staging.tree import (
    StagingTree,
    normalize_path,
)

__all__ = [
    "Filesystem",
    "LocalFilesystem",
    "MIMETYPE_CONTENT",
    "DEFAULT_NAV_FILENAMES",
    "infer_role",
    "guess_media_type",
    "StagingTree",
    "normalize_path",
]
