"""
XML Processing Utilities
========================

Namespace constants and XML helpers shared by the repair, navigation and
validation modules.
"""

from epubpack.xml.utils import (
    OPF_NS,
    DC_NS,
    NCX_NS,
    XHTML_NS,
    EPUB_NS,
    CONTAINER_NS,
    XML_NS,
    local_name,
    qualified_tag,
    find_child,
    find_children,
    find_elements_by_local_name,
    create_element,
    parse_xml_bytes,
    is_well_formed,
    serialize_document,
    sanitize_fragment,
    normalize_whitespace,
)

__all__ = [
    "OPF_NS",
    "DC_NS",
    "NCX_NS",
    "XHTML_NS",
    "EPUB_NS",
    "CONTAINER_NS",
    "XML_NS",
    "local_name",
    "qualified_tag",
    "find_child",
    "find_children",
    "find_elements_by_local_name",
    "create_element",
    "parse_xml_bytes",
    "is_well_formed",
    "serialize_document",
    "sanitize_fragment",
    "normalize_whitespace",
]
