"""
Navigation Builder
==================

Synthesizes navigation structures from an ordered list of chapter paths:

- the EPUB 3 navigation document (nav epub:type="toc")
- the legacy NCX navMap block
- a minimal NCX document when the existing one is unusable

Everything here is pure: no filesystem access, and the same input always
produces the same output.
"""

from typing import List, Optional, Sequence
import logging

from lxml import etree

from epubpack.models import NavigationEntry
from epubpack.xml.utils import EPUB_NS, NCX_NS, XHTML_NS, XML_NS, serialize_document

logger = logging.getLogger(__name__)

NAV_DOCTYPE = "<!DOCTYPE html>"


class NavigationBuilder:
    """
    Builds navigation documents labelled "Chapter 1", "Chapter 2", ...

    Example:
        builder = NavigationBuilder()
        xhtml = builder.build_document(["content/a.xhtml", "content/b.xhtml"])
    """

    def __init__(self,
                 title: str = "Table of Contents",
                 language: Optional[str] = None,
                 label_template: str = "Chapter {order}"):
        self.title = title
        self.language = language
        self.label_template = label_template

    def entries(self, chapter_paths: Sequence[str]) -> List[NavigationEntry]:
        """Turn ordered chapter paths into 1-based navigation entries."""
        return [
            NavigationEntry(href=path, label=self.label_template.format(order=order), order=order)
            for order, path in enumerate(chapter_paths, start=1)
        ]

    def build_document(self, chapter_paths: Sequence[str]) -> str:
        """
        Build the navigation document.

        Args:
            chapter_paths: Chapter hrefs relative to the navigation document

        Returns:
            XHTML document text
        """
        nsmap = {None: XHTML_NS, "epub": EPUB_NS}
        html_tag = etree.Element(f"{{{XHTML_NS}}}html", nsmap=nsmap)
        if self.language:
            html_tag.set("lang", self.language)
            html_tag.set(f"{{{XML_NS}}}lang", self.language)

        head = etree.SubElement(html_tag, f"{{{XHTML_NS}}}head")
        title = etree.SubElement(head, f"{{{XHTML_NS}}}title")
        title.text = self.title
        etree.SubElement(head, f"{{{XHTML_NS}}}meta", charset="utf-8")

        body = etree.SubElement(html_tag, f"{{{XHTML_NS}}}body")
        nav = etree.SubElement(body, f"{{{XHTML_NS}}}nav", id="toc")
        nav.set(f"{{{EPUB_NS}}}type", "toc")
        heading = etree.SubElement(nav, f"{{{XHTML_NS}}}h1")
        heading.text = self.title

        ol = etree.SubElement(nav, f"{{{XHTML_NS}}}ol")
        for entry in self.entries(chapter_paths):
            li = etree.SubElement(ol, f"{{{XHTML_NS}}}li")
            a = etree.SubElement(li, f"{{{XHTML_NS}}}a", href=entry.href)
            a.text = entry.label

        logger.debug(f"Built navigation document with {len(chapter_paths)} entries")
        return serialize_document(html_tag, doctype=NAV_DOCTYPE).decode('utf-8')

    def build_nav_map(self, entries: Sequence[NavigationEntry],
                      id_refs: Sequence[str],
                      namespace: Optional[str] = NCX_NS) -> etree._Element:
        """
        Build an NCX <navMap> element.

        Args:
            entries: Navigation entries in spine order
            id_refs: Manifest id for each entry (used as navPoint id)
            namespace: Namespace of the target NCX (None for un-namespaced)

        Returns:
            navMap element
        """
        def tag(name: str) -> str:
            return f"{{{namespace}}}{name}" if namespace else name

        nav_map = etree.Element(tag("navMap"))
        for entry, item_id in zip(entries, id_refs):
            nav_point = etree.SubElement(nav_map, tag("navPoint"),
                                         id=item_id, playOrder=str(entry.order))
            nav_label = etree.SubElement(nav_point, tag("navLabel"))
            text = etree.SubElement(nav_label, tag("text"))
            text.text = entry.label
            etree.SubElement(nav_point, tag("content"), src=entry.href)
        return nav_map

    def build_ncx_document(self, entries: Sequence[NavigationEntry],
                           id_refs: Sequence[str],
                           uid: str,
                           doc_title: str) -> bytes:
        """Build a complete minimal NCX document."""
        ncx = etree.Element(f"{{{NCX_NS}}}ncx", nsmap={None: NCX_NS}, version="2005-1")
        head = etree.SubElement(ncx, f"{{{NCX_NS}}}head")
        for name, content in (("dtb:uid", uid),
                              ("dtb:depth", "1"),
                              ("dtb:totalPageCount", "0"),
                              ("dtb:maxPageNumber", "0")):
            etree.SubElement(head, f"{{{NCX_NS}}}meta", name=name, content=content)

        doc_title_el = etree.SubElement(ncx, f"{{{NCX_NS}}}docTitle")
        text = etree.SubElement(doc_title_el, f"{{{NCX_NS}}}text")
        text.text = doc_title

        ncx.append(self.build_nav_map(entries, id_refs, NCX_NS))
        return serialize_document(ncx)


def build_navigation_document(chapter_paths: Sequence[str]) -> str:
    """Build a navigation document with the default title and labels."""
    return NavigationBuilder().build_document(chapter_paths)
