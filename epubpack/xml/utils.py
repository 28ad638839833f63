"""
XML Utility Functions
=====================

Common XML manipulation utilities for the packaging pipeline. These
functions work with lxml elements and provide consistent handling of the
EPUB namespaces, tolerant parsing, deterministic serialization and HTML
fragment sanitizing.
"""

from typing import Iterable, List, Optional, Any
import html
import logging

from lxml import etree
import lxml.html

logger = logging.getLogger(__name__)


# EPUB namespaces
OPF_NS = "http://www.idpf.org/2007/opf"
DC_NS = "http://purl.org/dc/elements/1.1/"
NCX_NS = "http://www.daisy.org/z3986/2005/ncx/"
XHTML_NS = "http://www.w3.org/1999/xhtml"
EPUB_NS = "http://www.idpf.org/2007/ops"
CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"
XML_NS = "http://www.w3.org/XML/1998/namespace"


def local_name(element: Any) -> str:
    """
    Extract local name from element tag, stripping any namespace prefix.

    Args:
        element: XML element

    Returns:
        Local tag name without namespace

    Example:
        >>> elem = etree.Element("{http://www.idpf.org/2007/opf}manifest")
        >>> local_name(elem)
        'manifest'
    """
    tag = element.tag
    if not isinstance(tag, str):
        return ""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def qualified_tag(element: Any, tag_name: str) -> str:
    """
    Get qualified tag name matching element's namespace.

    Args:
        element: Reference element for namespace
        tag_name: Local tag name

    Returns:
        Qualified tag name with namespace (if any)
    """
    ref_tag = element.tag
    if not isinstance(ref_tag, str):
        return tag_name
    if ref_tag.startswith("{"):
        ns = ref_tag.split("}", 1)[0] + "}"
        return ns + tag_name
    return tag_name


def find_child(parent: Any, name: str) -> Optional[Any]:
    """
    Find the first direct child with a given local name (ignoring namespace).

    Args:
        parent: Element whose children are searched
        name: Local name to find

    Returns:
        Matching element or None
    """
    for child in parent:
        if local_name(child) == name:
            return child
    return None


def find_children(parent: Any, name: str) -> List[Any]:
    """Find all direct children with a given local name."""
    return [child for child in parent if local_name(child) == name]


def find_elements_by_local_name(root: Any, name: str) -> List[Any]:
    """
    Find all elements with a given local name (ignoring namespace).

    Args:
        root: Root element to search
        name: Local name to find

    Returns:
        List of matching elements
    """
    results = []
    for elem in root.iter():
        if local_name(elem) == name:
            results.append(elem)
    return results


def create_element(tag: str, text: Optional[str] = None,
                   attrib: Optional[dict] = None,
                   nsmap: Optional[dict] = None) -> Any:
    """
    Create an XML element with optional text and attributes.

    Args:
        tag: Element tag name
        text: Optional text content
        attrib: Optional attributes dict
        nsmap: Optional namespace map

    Returns:
        New lxml Element
    """
    elem = etree.Element(tag, attrib=attrib or {}, nsmap=nsmap)
    if text:
        elem.text = text
    return elem


def parse_xml_bytes(data: bytes, recover: bool = True) -> Optional[Any]:
    """
    Parse XML content into a root element.

    Blank text is dropped so that re-serializing with pretty printing is
    stable across runs.

    Args:
        data: Raw XML bytes
        recover: Let libxml2 recover from malformed input

    Returns:
        Root element, or None when nothing usable could be parsed
    """
    parser = etree.XMLParser(
        recover=recover,
        remove_blank_text=True,
        resolve_entities=False,
        no_network=True,
    )
    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        logger.debug(f"XML parse failed: {e}")
        return None
    return root


def is_well_formed(data: bytes) -> bool:
    """Check XML well-formedness without recovery."""
    parser = etree.XMLParser(recover=False, resolve_entities=False, no_network=True)
    try:
        etree.fromstring(data, parser)
    except etree.XMLSyntaxError:
        return False
    return True


def serialize_document(root: Any, doctype: Optional[str] = None) -> bytes:
    """
    Serialize an element as a standalone UTF-8 document.

    Args:
        root: Root element
        doctype: Optional DOCTYPE line

    Returns:
        Pretty-printed bytes with XML declaration
    """
    return etree.tostring(
        root,
        encoding='utf-8',
        xml_declaration=True,
        pretty_print=True,
        doctype=doctype,
    )


def sanitize_fragment(markup: str, drop_tags: Iterable[str] = ("img", "script")) -> str:
    """
    Remove unwanted elements from an HTML fragment and return it as XHTML.

    Text and tails around removed elements are kept; the removed element's
    content is dropped with it.

    Args:
        markup: HTML fragment (chapter body)
        drop_tags: Tag names to remove

    Returns:
        Sanitized fragment serialized as XML
    """
    if not markup or not markup.strip():
        return ""

    drop = {tag.lower() for tag in drop_tags}
    wrapper = lxml.html.fragment_fromstring(markup, create_parent="div")

    for elem in [e for e in wrapper.iter() if isinstance(e.tag, str) and e.tag.lower() in drop]:
        elem.drop_tree()

    parts = [html.escape(wrapper.text or "", quote=False)]
    for child in wrapper:
        if not isinstance(child.tag, str):
            # comments / processing instructions
            parts.append(child.tail and html.escape(child.tail, quote=False) or "")
            continue
        parts.append(etree.tostring(child, method="xml", encoding="unicode", with_tail=True))
    return "".join(parts)


def normalize_whitespace(text: str) -> str:
    """
    Normalize whitespace in text (collapse multiple spaces, trim).

    Args:
        text: Input text

    Returns:
        Normalized text
    """
    if not text:
        return ""
    return ' '.join(text.split())
