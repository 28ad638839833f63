"""
Navigation Builder Tests

Run with: pytest tests/test_navigation.py -v
"""

from lxml import etree

from epubpack.navigation import NavigationBuilder, build_navigation_document
from epubpack.xml.utils import EPUB_NS, NCX_NS, XHTML_NS

NS = {"x": XHTML_NS, "epub": EPUB_NS, "n": NCX_NS}


def parse(document: str):
    return etree.fromstring(document.encode("utf-8"))


class TestNavigationDocument:
    """Tests for the EPUB 3 navigation document."""

    def test_lists_chapters_in_input_order(self):
        """Links should follow the input order."""
        paths = ["content/b.xhtml", "content/a.xhtml", "content/c.xhtml"]
        root = parse(build_navigation_document(paths))
        hrefs = root.xpath("//x:nav/x:ol/x:li/x:a/@href", namespaces=NS)
        assert hrefs == paths

    def test_labels_are_one_based(self):
        """Labels should read Chapter 1..n."""
        root = parse(build_navigation_document(["a.xhtml", "b.xhtml"]))
        labels = root.xpath("//x:li/x:a/text()", namespaces=NS)
        assert labels == ["Chapter 1", "Chapter 2"]

    def test_nav_is_marked_as_toc(self):
        """The nav element should carry epub:type="toc"."""
        root = parse(build_navigation_document(["a.xhtml"]))
        navs = root.xpath("//x:nav", namespaces=NS)
        assert len(navs) == 1
        assert navs[0].get(f"{{{EPUB_NS}}}type") == "toc"

    def test_empty_input_gives_empty_list(self):
        """No chapters should still produce a valid document."""
        root = parse(build_navigation_document([]))
        assert root.xpath("//x:nav/x:ol/x:li", namespaces=NS) == []

    def test_output_is_deterministic(self):
        """Same input should produce identical output."""
        paths = ["content/a.xhtml", "content/b.xhtml"]
        assert build_navigation_document(paths) == build_navigation_document(paths)

    def test_language_is_set(self):
        """A configured language should be written to the html element."""
        builder = NavigationBuilder(language="fr")
        root = parse(builder.build_document(["a.xhtml"]))
        assert root.get("lang") == "fr"


class TestNcxBuilders:
    """Tests for navMap and NCX skeleton generation."""

    def test_nav_map_points(self):
        """navPoints should use the given ids and 1-based playOrder."""
        builder = NavigationBuilder()
        entries = builder.entries(["content/a.xhtml", "content/b.xhtml"])
        nav_map = builder.build_nav_map(entries, ["chapter0", "chapter1"])

        points = nav_map.findall(f"{{{NCX_NS}}}navPoint")
        assert [p.get("id") for p in points] == ["chapter0", "chapter1"]
        assert [p.get("playOrder") for p in points] == ["1", "2"]
        assert points[1].find(f"{{{NCX_NS}}}content").get("src") == "content/b.xhtml"

    def test_nav_map_without_namespace(self):
        """An un-namespaced NCX should get an un-namespaced navMap."""
        builder = NavigationBuilder()
        nav_map = builder.build_nav_map(builder.entries(["a.xhtml"]), ["chapter0"], namespace=None)
        assert nav_map.tag == "navMap"
        assert nav_map[0].tag == "navPoint"

    def test_ncx_document_is_well_formed(self):
        """The skeleton NCX should parse and keep title and uid."""
        builder = NavigationBuilder()
        data = builder.build_ncx_document(builder.entries(["a.xhtml"]), ["chapter0"],
                                          uid="urn:uuid:1", doc_title="Book")
        root = etree.fromstring(data)
        assert root.xpath("//n:docTitle/n:text/text()", namespaces=NS) == ["Book"]
        assert root.xpath("//n:meta[@name='dtb:uid']/@content", namespaces=NS) == ["urn:uuid:1"]
        assert len(root.xpath("//n:navPoint", namespaces=NS)) == 1
