"""
EPUB Content Generator
======================

Produces the files of an EPUB package from EpubSettings: container
descriptor, package document, NCX, stylesheet, one XHTML file per chapter
and the image assets.

The package document and NCX use title-derived ids the way common
generators do; they are normalized by the manifest repair step before the
archive is written.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from html import escape
from typing import Callable, List, Optional, Union
import logging

from lxml import etree

from epubpack.constructor.settings import EpubChapter, EpubSettings, get_valid_file_name_by_title
from epubpack.xml.utils import (
    CONTAINER_NS,
    DC_NS,
    NCX_NS,
    OPF_NS,
    create_element,
    normalize_whitespace,
    sanitize_fragment,
    serialize_document,
)

logger = logging.getLogger(__name__)

PACKAGE_DIR = "EPUB"
OPF_PATH = f"{PACKAGE_DIR}/content.opf"
NCX_PATH = f"{PACKAGE_DIR}/toc.ncx"
CSS_PATH = f"{PACKAGE_DIR}/styles.css"

CHAPTER_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops" lang="{lang}" xml:lang="{lang}">
<head>
<title>{title}</title>
<meta charset="utf-8"/>
<link rel="stylesheet" type="text/css" href="../styles.css"/>
</head>
<body>
<h1>{title}</h1>
{body}
</body>
</html>
"""

# fraction of generation done, 0..1
GenerationProgress = Callable[[float], None]


@dataclass
class GeneratedFile:
    """
    One file produced by the content generator.

    Attributes:
        path: Path inside the container; a trailing '/' marks a directory
        content: Text, bytes, or for images the path of a source file
        is_image: Whether the file is a binary image asset
    """
    path: str
    content: Union[str, bytes] = ""
    is_image: bool = False

    @property
    def is_directory(self) -> bool:
        return self.path.endswith('/')


class EpubConstructor:
    """
    Default content generator.

    Example:
        constructor = EpubConstructor(settings)
        files = constructor.construct_package(lambda fraction: print(f"{fraction:.0%}"))
    """

    def __init__(self, settings: EpubSettings):
        self.settings = settings

    def chapter_path(self, index: int, chapter: EpubChapter) -> str:
        """Path of a chapter file; the numeric prefix keeps files in reading order."""
        stem = get_valid_file_name_by_title(chapter.file_name or chapter.title)
        return f"{PACKAGE_DIR}/content/{index:04d}_{stem}.xhtml"

    def construct_package(self, on_progress: Optional[GenerationProgress] = None) -> List[GeneratedFile]:
        """
        Generate all package files.

        Args:
            on_progress: Called with the completed fraction after each file

        Returns:
            Generated files in emission order
        """
        settings = self.settings
        chapters = list(settings.chapters)
        assets = list(settings.assets)
        total = 8 + len(chapters) + len(assets) + (1 if assets else 0)
        files: List[GeneratedFile] = []

        def emit(generated: GeneratedFile) -> None:
            files.append(generated)
            if on_progress:
                on_progress(min(len(files) / total, 1.0))

        emit(GeneratedFile("mimetype", "application/epub+zip"))
        emit(GeneratedFile("META-INF/"))
        emit(GeneratedFile("META-INF/container.xml", self.build_container()))
        emit(GeneratedFile(f"{PACKAGE_DIR}/"))
        emit(GeneratedFile(OPF_PATH, self.build_package_document()))
        emit(GeneratedFile(NCX_PATH, self.build_ncx()))
        emit(GeneratedFile(CSS_PATH, settings.stylesheet))
        emit(GeneratedFile(f"{PACKAGE_DIR}/content/"))

        for index, chapter in enumerate(chapters):
            emit(GeneratedFile(self.chapter_path(index, chapter), self.build_chapter(chapter)))

        if assets:
            emit(GeneratedFile(f"{PACKAGE_DIR}/images/"))
        for asset in assets:
            content = asset.data if asset.data is not None else (asset.source_path or "")
            emit(GeneratedFile(f"{PACKAGE_DIR}/images/{asset.file_name}", content, is_image=True))

        logger.info(f"Generated {len(files)} file(s) for '{settings.title}'")
        return files

    def build_container(self) -> bytes:
        container = etree.Element(f"{{{CONTAINER_NS}}}container", nsmap={None: CONTAINER_NS},
                                  version="1.0")
        rootfiles = etree.SubElement(container, f"{{{CONTAINER_NS}}}rootfiles")
        etree.SubElement(rootfiles, f"{{{CONTAINER_NS}}}rootfile",
                         **{"full-path": OPF_PATH, "media-type": "application/oebps-package+xml"})
        return serialize_document(container)

    def build_package_document(self) -> bytes:
        """Package document with title-derived chapter ids."""
        settings = self.settings
        package = etree.Element(f"{{{OPF_NS}}}package", nsmap={None: OPF_NS},
                                version="3.0", **{"unique-identifier": "BookId"})

        metadata = etree.SubElement(package, f"{{{OPF_NS}}}metadata", nsmap={"dc": DC_NS})
        identifier = etree.SubElement(metadata, f"{{{DC_NS}}}identifier", id="BookId")
        identifier.text = settings.identifier
        for name, value in (("title", normalize_whitespace(settings.title) or "Untitled"),
                            ("language", settings.language),
                            ("creator", settings.author),
                            ("publisher", settings.publisher),
                            ("description", settings.description)):
            if value:
                metadata.append(create_element(f"{{{DC_NS}}}{name}", text=value))
        modified = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        metadata.append(create_element(f"{{{OPF_NS}}}meta", text=modified,
                                       attrib={"property": "dcterms:modified"}))

        manifest = etree.SubElement(package, f"{{{OPF_NS}}}manifest")
        etree.SubElement(manifest, f"{{{OPF_NS}}}item", id="ncx", href="toc.ncx",
                         **{"media-type": "application/x-dtbncx+xml"})
        etree.SubElement(manifest, f"{{{OPF_NS}}}item", id="styles", href="styles.css",
                         **{"media-type": "text/css"})

        spine = etree.SubElement(package, f"{{{OPF_NS}}}spine", toc="ncx")
        for index, chapter in enumerate(settings.chapters):
            item_id = get_valid_file_name_by_title(chapter.title)
            href = self.chapter_path(index, chapter)[len(PACKAGE_DIR) + 1:]
            etree.SubElement(manifest, f"{{{OPF_NS}}}item", id=item_id, href=href,
                             **{"media-type": "application/xhtml+xml"})
            etree.SubElement(spine, f"{{{OPF_NS}}}itemref", idref=item_id)

        return serialize_document(package)

    def build_ncx(self) -> bytes:
        settings = self.settings
        ncx = etree.Element(f"{{{NCX_NS}}}ncx", nsmap={None: NCX_NS}, version="2005-1")
        head = etree.SubElement(ncx, f"{{{NCX_NS}}}head")
        etree.SubElement(head, f"{{{NCX_NS}}}meta", name="dtb:uid", content=settings.identifier)
        etree.SubElement(head, f"{{{NCX_NS}}}meta", name="dtb:depth", content="1")

        doc_title = etree.SubElement(ncx, f"{{{NCX_NS}}}docTitle")
        doc_title.append(create_element(f"{{{NCX_NS}}}text",
                                        text=normalize_whitespace(settings.title) or "Untitled"))

        nav_map = etree.SubElement(ncx, f"{{{NCX_NS}}}navMap")
        for index, chapter in enumerate(settings.chapters):
            nav_point = etree.SubElement(nav_map, f"{{{NCX_NS}}}navPoint",
                                         id=get_valid_file_name_by_title(chapter.title),
                                         playOrder=str(index + 1))
            label = etree.SubElement(nav_point, f"{{{NCX_NS}}}navLabel")
            label.append(create_element(f"{{{NCX_NS}}}text", text=normalize_whitespace(chapter.title)))
            etree.SubElement(nav_point, f"{{{NCX_NS}}}content",
                             src=self.chapter_path(index, chapter)[len(PACKAGE_DIR) + 1:])
        return serialize_document(ncx)

    def build_chapter(self, chapter: EpubChapter) -> str:
        return CHAPTER_TEMPLATE.format(
            lang=escape(self.settings.language or "en"),
            title=escape(normalize_whitespace(chapter.title), quote=False),
            body=sanitize_fragment(chapter.html_body, drop_tags=()),
        )
