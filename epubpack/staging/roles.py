"""
Role and Media-Type Inference
=============================

Roles are inferred once, when a file is staged, and stored on the
StagedFile record. Nothing downstream re-derives them from extensions.
"""

from typing import Iterable, Optional
import io
import logging
import posixpath

from PIL import Image, UnidentifiedImageError

from epubpack.models import FileRole

logger = logging.getLogger(__name__)

MIMETYPE_CONTENT = b"application/epub+zip"

DEFAULT_NAV_FILENAMES = ("toc.xhtml", "toc.html", "nav.xhtml")

MARKUP_EXTENSIONS = {'.xhtml', '.html', '.htm'}

MEDIA_TYPES = {
    '.xhtml': 'application/xhtml+xml',
    '.html': 'application/xhtml+xml',
    '.htm': 'application/xhtml+xml',
    '.opf': 'application/oebps-package+xml',
    '.ncx': 'application/x-dtbncx+xml',
    '.css': 'text/css',
    '.js': 'application/javascript',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.svg': 'image/svg+xml',
    '.webp': 'image/webp',
    '.ttf': 'font/ttf',
    '.otf': 'font/otf',
    '.woff': 'font/woff',
    '.woff2': 'font/woff2',
    '.mp3': 'audio/mpeg',
    '.m4a': 'audio/mp4',
    '.mp4': 'video/mp4',
    '.smil': 'application/smil+xml',
}

ASSET_MEDIA_PREFIXES = ('image/', 'font/', 'audio/', 'video/')


def extension_of(path: str) -> str:
    return posixpath.splitext(path)[1].lower()


def infer_role(path: str,
               is_image: bool = False,
               nav_filenames: Iterable[str] = DEFAULT_NAV_FILENAMES) -> FileRole:
    """
    Infer the container role of a staged file from its path.

    Args:
        path: '/'-separated path relative to the working root
        is_image: Generator flag marking binary image content
        nav_filenames: Conventional navigation document names

    Returns:
        FileRole for the file
    """
    if is_image:
        return FileRole.ASSET
    if path == "mimetype":
        return FileRole.MIMETYPE

    name = posixpath.basename(path)
    ext = extension_of(path)

    if ext == '.opf':
        return FileRole.MANIFEST
    if ext == '.ncx':
        return FileRole.NCX
    if ext in MARKUP_EXTENSIONS:
        if name in set(nav_filenames):
            return FileRole.NAV
        return FileRole.CHAPTER

    media_type = MEDIA_TYPES.get(ext, "")
    if media_type == 'text/css' or media_type.startswith(ASSET_MEDIA_PREFIXES):
        return FileRole.ASSET
    return FileRole.OTHER


def sniff_image_media_type(data: bytes) -> Optional[str]:
    """Detect an image media type from content using Pillow."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    return Image.MIME.get(fmt) if fmt else None


def guess_media_type(path: str, data: Optional[bytes] = None) -> str:
    """
    Determine the manifest media type for a file.

    Uses the extension first; falls back to sniffing image content when the
    extension is unknown.

    Args:
        path: File path
        data: Optional file content for sniffing

    Returns:
        Media type string (application/octet-stream if undetermined)
    """
    media_type = MEDIA_TYPES.get(extension_of(path))
    if media_type:
        return media_type

    if data:
        sniffed = sniff_image_media_type(data)
        if sniffed:
            logger.debug(f"Sniffed media type {sniffed} for {path}")
            return sniffed

    return 'application/octet-stream'
