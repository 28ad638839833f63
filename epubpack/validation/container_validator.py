"""
Container Validator
===================

Checks the container invariants the packaging pipeline guarantees on an
archive it produced:

- mimetype is the first entry, stored, exactly "application/epub+zip"
- no duplicate entry names
- META-INF/container.xml points at an existing package document
- the package document is well-formed, ids are unique, chapter ids follow
  the chapterN scheme, spine itemrefs resolve, one navigation item exists
- NCX and navigation documents are well-formed
"""

from pathlib import Path
from typing import Dict, Optional
from urllib.parse import unquote
import logging
import posixpath
import re
import zipfile

from lxml import etree

from epubpack.staging.roles import MIMETYPE_CONTENT
from epubpack.validation.base import BaseValidator, ValidationResult
from epubpack.xml.utils import find_child, find_children, is_well_formed, local_name

logger = logging.getLogger(__name__)

CONTAINER_PATH = "META-INF/container.xml"
CHAPTER_ID_PATTERN = re.compile(r"^chapter[0-9]+$")
XHTML_MEDIA_TYPE = "application/xhtml+xml"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"


class EpubContainerValidator(BaseValidator):
    """
    Validator for archives produced by the EPUB packager.

    Example:
        validator = EpubContainerValidator()
        result = validator.validate_package(Path("book.epub"))
        if not result.is_valid:
            print(result.summary())
    """

    @property
    def schema_type(self) -> str:
        return "EPUB Container"

    def validate_file(self, file_path: Path, **kwargs) -> ValidationResult:
        """
        Check XML well-formedness of a single file.

        Args:
            file_path: Path to an XML/XHTML file

        Returns:
            ValidationResult with validation outcome
        """
        result = ValidationResult()
        if not file_path.exists():
            result.add_error(file_path.name, "File not found", "Missing File")
        elif not is_well_formed(file_path.read_bytes()):
            result.add_error(file_path.name, "Document is not well-formed XML", "XML Syntax Error")
        return result

    def validate_package(self, package_path: Path, **kwargs) -> ValidationResult:
        """
        Validate the container structure of an EPUB archive.

        Args:
            package_path: Path to the .epub (or temporary .part) file

        Returns:
            ValidationResult with validation outcome
        """
        result = ValidationResult()

        try:
            zf = zipfile.ZipFile(package_path, 'r')
        except (zipfile.BadZipFile, OSError) as e:
            result.add_error(package_path.name, f"Cannot open archive: {e}", "Archive Error")
            return result

        with zf:
            infos = zf.infolist()
            self._check_mimetype(zf, infos, result)
            self._check_duplicates(infos, result)

            opf_path = self._check_container(zf, result)
            if opf_path is not None:
                self._check_package_document(zf, opf_path, result)

        result.metadata['entries'] = len(infos)
        logger.debug(f"Validated {package_path}: {result.error_count} error(s)")
        return result

    def _check_mimetype(self, zf: zipfile.ZipFile, infos, result: ValidationResult) -> None:
        if not infos or infos[0].filename != "mimetype":
            result.add_error("mimetype", "mimetype is not the first entry", "Mimetype")
            return
        first = infos[0]
        if first.compress_type != zipfile.ZIP_STORED:
            result.add_error("mimetype", "mimetype entry is compressed", "Mimetype")
        if zf.read(first) != MIMETYPE_CONTENT:
            result.add_error("mimetype", "mimetype content is not application/epub+zip", "Mimetype")
        if first.extra:
            result.add_error("mimetype", "mimetype entry carries an extra field",
                             "Mimetype", severity="Warning")

    def _check_duplicates(self, infos, result: ValidationResult) -> None:
        seen = set()
        for info in infos:
            if info.filename in seen:
                result.add_error(info.filename, "Duplicate entry name", "Duplicate Entry")
            seen.add(info.filename)

    def _check_container(self, zf: zipfile.ZipFile, result: ValidationResult) -> Optional[str]:
        names = set(zf.namelist())
        if CONTAINER_PATH not in names:
            result.add_error(CONTAINER_PATH, "container.xml is missing", "Container")
            return None

        data = zf.read(CONTAINER_PATH)
        if not is_well_formed(data):
            result.add_error(CONTAINER_PATH, "container.xml is not well-formed", "XML Syntax Error")
            return None

        root = etree.fromstring(data)
        rootfile = next((el for el in root.iter() if local_name(el) == "rootfile"), None)
        full_path = rootfile.get("full-path") if rootfile is not None else None
        if not full_path:
            result.add_error(CONTAINER_PATH, "No rootfile declared", "Container")
            return None
        if full_path not in names:
            result.add_error(CONTAINER_PATH, f"Rootfile {full_path} is not in the archive", "Container")
            return None
        return full_path

    def _check_package_document(self, zf: zipfile.ZipFile, opf_path: str,
                                result: ValidationResult) -> None:
        data = zf.read(opf_path)
        if not is_well_formed(data):
            result.add_error(opf_path, "Package document is not well-formed", "XML Syntax Error")
            return

        root = etree.fromstring(data)
        manifest = find_child(root, "manifest")
        spine = find_child(root, "spine")
        if manifest is None:
            result.add_error(opf_path, "Package document has no manifest", "Manifest")
            return

        items: Dict[str, etree._Element] = {}
        nav_items = []
        for item in find_children(manifest, "item"):
            item_id = item.get("id", "")
            if item_id in items:
                result.add_error(opf_path, f"Duplicate manifest id {item_id!r}", "Manifest")
            items[item_id] = item
            if "nav" in (item.get("properties") or "").split():
                nav_items.append(item)

        base = posixpath.dirname(opf_path)
        names = set(zf.namelist())

        if len(nav_items) != 1:
            result.add_error(opf_path, f"Expected one navigation item, found {len(nav_items)}", "Manifest")

        if spine is None:
            result.add_error(opf_path, "Package document has no spine", "Spine")
            return

        itemrefs = find_children(spine, "itemref")
        for itemref in itemrefs:
            idref = itemref.get("idref")
            if idref not in items:
                result.add_error(opf_path, f"Spine references unknown id {idref!r}", "Spine")
            elif not CHAPTER_ID_PATTERN.match(idref):
                result.add_error(opf_path, f"Spine id {idref!r} does not follow chapterN",
                                 "Spine", severity="Warning")

        toc_id = spine.get("toc")
        if toc_id and toc_id not in items:
            result.add_error(opf_path, f"Spine toc references unknown id {toc_id!r}", "Spine")

        result.metadata['spine_length'] = len(itemrefs)

        for item in items.values():
            media_type = item.get("media-type")
            if media_type not in (XHTML_MEDIA_TYPE, NCX_MEDIA_TYPE):
                continue
            href = posixpath.normpath(posixpath.join(base, unquote(item.get("href", ""))))
            if href not in names:
                result.add_error(opf_path, f"Manifest item {item.get('id')!r} points at missing {href}",
                                 "Manifest")
                continue
            if media_type == NCX_MEDIA_TYPE or item in nav_items:
                if not is_well_formed(zf.read(href)):
                    result.add_error(href, "Navigation document is not well-formed", "XML Syntax Error")
