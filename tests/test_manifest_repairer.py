"""
Manifest Repairer Tests

Run with: pytest tests/test_manifest_repairer.py -v
"""

import pytest
from lxml import etree

from conftest import CHAPTER_XHTML, make_opf, stage_package
from epubpack.errors import StructureError
from epubpack.fixing import ManifestRepairer
from epubpack.models import FileRole
from epubpack.xml.utils import NCX_NS, OPF_NS, XHTML_NS

NS = {"opf": OPF_NS, "n": NCX_NS, "x": XHTML_NS}


def opf_root(tree):
    return etree.fromstring(tree.read_bytes("EPUB/content.opf"))


def manifest_items(tree):
    return [
        (item.get("id"), item.get("href"), item.get("media-type"), item.get("properties"))
        for item in opf_root(tree).xpath("/opf:package/opf:manifest/opf:item", namespaces=NS)
    ]


def spine_refs(tree):
    return opf_root(tree).xpath("/opf:package/opf:spine/opf:itemref/@idref", namespaces=NS)


class TestChapterEnumeration:
    """Tests for chapter discovery and id assignment."""

    def test_ids_follow_filename_order(self, staging_tree):
        """Chapters should get chapter0..N in lexicographic filename order."""
        stage_package(staging_tree, chapters=("b.xhtml", "a.xhtml", "c.xhtml"))
        result = ManifestRepairer().fix_package(staging_tree)

        assert spine_refs(staging_tree) == ["chapter0", "chapter1", "chapter2"]
        chapters = [(i, h) for i, h, _, _ in manifest_items(staging_tree) if i.startswith("chapter")]
        assert chapters == [
            ("chapter0", "content/a.xhtml"),
            ("chapter1", "content/b.xhtml"),
            ("chapter2", "content/c.xhtml"),
        ]
        assert result.chapter_count == 3

    def test_loose_chapters_used_without_content_dir(self, staging_tree):
        """Without content/, chapters directly in the package root are used."""
        stage_package(staging_tree, chapters=("b.xhtml", "a.xhtml"), content_dir=False)
        ManifestRepairer().fix_package(staging_tree)

        hrefs = [h for i, h, _, _ in manifest_items(staging_tree) if i.startswith("chapter")]
        assert hrefs == ["a.xhtml", "b.xhtml"]

    def test_content_dir_wins_over_loose_chapters(self, staging_tree):
        """Loose root chapters are ignored when content/ exists."""
        stage_package(staging_tree, chapters=("a.xhtml",))
        staging_tree.put("EPUB/loose.xhtml", CHAPTER_XHTML.format(title="loose"))
        ManifestRepairer().fix_package(staging_tree)

        hrefs = [h for _, h, _, _ in manifest_items(staging_tree)]
        assert "content/a.xhtml" in hrefs
        assert "loose.xhtml" not in hrefs
        assert spine_refs(staging_tree) == ["chapter0"]

    def test_hrefs_are_quoted(self, staging_tree):
        """File names with spaces should be URL-encoded in hrefs."""
        stage_package(staging_tree, chapters=("my chapter.xhtml",))
        ManifestRepairer().fix_package(staging_tree)

        hrefs = [h for i, h, _, _ in manifest_items(staging_tree) if i == "chapter0"]
        assert hrefs == ["content/my%20chapter.xhtml"]

    def test_no_chapters(self, staging_tree):
        """An empty book should still get a nav item and an empty spine."""
        stage_package(staging_tree, chapters=())
        result = ManifestRepairer().fix_package(staging_tree)

        assert spine_refs(staging_tree) == []
        assert result.nav_synthesized


class TestManifestRebuild:
    """Tests for manifest and spine rebuilding."""

    def test_missing_package_document(self, staging_tree):
        """A tree without package document should be a fatal StructureError."""
        staging_tree.put("EPUB/content/a.xhtml", CHAPTER_XHTML.format(title="a"))
        with pytest.raises(StructureError, match="missing package document"):
            ManifestRepairer().fix_package(staging_tree)

    def test_stale_spine_replaced(self, staging_tree):
        """A pre-existing spine x, y should become a single chapter0 itemref."""
        opf = make_opf(items=[("x", "content/x.xhtml", "application/xhtml+xml"),
                              ("y", "content/y.xhtml", "application/xhtml+xml")],
                       itemrefs=["x", "y"])
        stage_package(staging_tree, chapters=("a.xhtml",), opf=opf)
        ManifestRepairer().fix_package(staging_tree)

        assert spine_refs(staging_tree) == ["chapter0"]
        ids = [i for i, _, _, _ in manifest_items(staging_tree)]
        assert "x" not in ids and "y" not in ids

    def test_stylesheet_and_ncx_retained(self, staging_tree):
        """Existing text/css and NCX items should be kept verbatim."""
        stage_package(staging_tree)
        ManifestRepairer().fix_package(staging_tree)

        items = manifest_items(staging_tree)
        assert ("css", "styles.css", "text/css", None) in items
        assert ("ncx", "toc.ncx", "application/x-dtbncx+xml", None) in items
        spine = opf_root(staging_tree).xpath("/opf:package/opf:spine", namespaces=NS)[0]
        assert spine.get("toc") == "ncx"

    def test_exactly_one_nav_item(self, staging_tree):
        """The manifest should reference exactly one navigation document."""
        stage_package(staging_tree, chapters=("a.xhtml", "b.xhtml"))
        ManifestRepairer().fix_package(staging_tree)

        nav_items = [item for item in manifest_items(staging_tree) if item[3] == "nav"]
        assert nav_items == [("nav", "toc.xhtml", "application/xhtml+xml", "nav")]

    def test_ids_unique_and_well_formed(self, staging_tree):
        """Manifest ids should be unique; chapter ids match chapterN."""
        stage_package(staging_tree, chapters=("a.xhtml", "b.xhtml"))
        ManifestRepairer().fix_package(staging_tree)

        ids = [i for i, _, _, _ in manifest_items(staging_tree)]
        assert len(ids) == len(set(ids))
        for idref in spine_refs(staging_tree):
            assert idref in ids
            assert idref.startswith("chapter") and idref[len("chapter"):].isdigit()

    def test_colliding_retained_id_renamed(self, staging_tree):
        """A retained item using a generated id should be re-identified."""
        opf = make_opf(items=[("chapter0", "styles.css", "text/css")])
        stage_package(staging_tree, chapters=("a.xhtml",), opf=opf, ncx=False)
        result = ManifestRepairer().fix_package(staging_tree)

        items = manifest_items(staging_tree)
        ids = [i for i, _, _, _ in items]
        assert len(ids) == len(set(ids))
        css = [i for i, h, _, _ in items if h == "styles.css"]
        assert css == ["css"]
        assert result.fixes_by_type.get("Id Collision") == 1

    def test_assets_are_manifested(self, staging_tree):
        """Unreferenced images should be added as asset items."""
        stage_package(staging_tree)
        staging_tree.put("EPUB/images/pic.png", b"\x89PNG\r\n", role=FileRole.ASSET)
        ManifestRepairer().fix_package(staging_tree)

        assert ("asset0", "images/pic.png", "image/png", None) in manifest_items(staging_tree)

    def test_unlisted_stylesheet_is_manifested(self, staging_tree):
        """A stylesheet missing from the manifest should be added as a css item."""
        stage_package(staging_tree, opf=make_opf(), ncx=False)
        ManifestRepairer().fix_package(staging_tree)

        assert ("css", "styles.css", "text/css", None) in manifest_items(staging_tree)

    def test_dot_relative_stylesheet_not_duplicated(self, staging_tree):
        """A retained ./styles.css href should cover the staged styles.css."""
        opf = make_opf(items=[("css", "./styles.css", "text/css")])
        stage_package(staging_tree, opf=opf, ncx=False)
        ManifestRepairer().fix_package(staging_tree)

        css = [(i, h) for i, h, m, _ in manifest_items(staging_tree) if m == "text/css"]
        assert css == [("css", "./styles.css")]

    def test_equivalent_retained_hrefs_deduplicated(self, staging_tree):
        """Two retained items naming the same file should collapse to one."""
        opf = make_opf(items=[("css", "styles.css", "text/css"),
                              ("css-again", "./styles.css", "text/css")])
        stage_package(staging_tree, opf=opf, ncx=False)
        ManifestRepairer().fix_package(staging_tree)

        css = [i for i, _, m, _ in manifest_items(staging_tree) if m == "text/css"]
        assert css == ["css"]

    def test_nonlinear_chapter_preserved(self, staging_tree):
        """A chapter marked linear="no" keeps the flag under its new id."""
        opf = make_opf(items=[("notes", "content/b.xhtml", "application/xhtml+xml")],
                       itemrefs=["notes"])
        opf = opf.replace('idref="notes"', 'idref="notes" linear="no"')
        stage_package(staging_tree, chapters=("a.xhtml", "b.xhtml"), opf=opf, ncx=False)
        result = ManifestRepairer().fix_package(staging_tree)

        itemrefs = opf_root(staging_tree).xpath("/opf:package/opf:spine/opf:itemref", namespaces=NS)
        assert [(i.get("idref"), i.get("linear")) for i in itemrefs] == [
            ("chapter0", None), ("chapter1", "no"),
        ]
        assert [item.linear for item in result.spine] == [True, False]

    def test_duplicate_manifest_blocks_removed(self, staging_tree):
        """Extra manifest and spine blocks should be dropped."""
        opf = make_opf(items=[("css", "styles.css", "text/css")], itemrefs=["old"])
        opf = opf.replace("</package>", "<manifest/><spine/></package>")
        stage_package(staging_tree, opf=opf, ncx=False)
        ManifestRepairer().fix_package(staging_tree)

        root = opf_root(staging_tree)
        assert len(root.xpath("/opf:package/opf:manifest", namespaces=NS)) == 1
        assert len(root.xpath("/opf:package/opf:spine", namespaces=NS)) == 1

    def test_manifest_created_when_absent(self, staging_tree):
        """A package without manifest or spine should get both."""
        opf = make_opf()
        opf = opf.split("<manifest>")[0] + "</package>\n"
        stage_package(staging_tree, opf=opf, ncx=False)
        ManifestRepairer().fix_package(staging_tree)

        root = opf_root(staging_tree)
        children = [etree.QName(child).localname for child in root]
        assert children == ["metadata", "manifest", "spine"]

    def test_unparseable_package_replaced(self, staging_tree):
        """A package document that does not parse should be replaced by a skeleton."""
        stage_package(staging_tree, opf="this is not xml", ncx=False)
        result = ManifestRepairer().fix_package(staging_tree)

        assert result.fixes_by_type.get("Package Skeleton") == 1
        assert spine_refs(staging_tree) == ["chapter0"]
        assert opf_root(staging_tree).xpath("//opf:metadata", namespaces=NS)


class TestNavigationRepair:
    """Tests for nav synthesis and NCX navMap rebuilding."""

    def test_nav_synthesized(self, staging_tree):
        """A missing nav document should be generated and staged."""
        stage_package(staging_tree, chapters=("a.xhtml", "b.xhtml"))
        result = ManifestRepairer().fix_package(staging_tree)

        assert result.nav_synthesized
        assert result.nav_document == "EPUB/toc.xhtml"
        assert staging_tree.get("EPUB/toc.xhtml").role == FileRole.NAV

        nav = etree.fromstring(staging_tree.read_bytes("EPUB/toc.xhtml"))
        assert nav.xpath("//x:li/x:a/@href", namespaces=NS) == ["content/a.xhtml", "content/b.xhtml"]

    def test_existing_nav_referenced(self, staging_tree):
        """A nav document at a conventional path should be used as is."""
        stage_package(staging_tree)
        staging_tree.put("EPUB/nav.xhtml", "<html xmlns='http://www.w3.org/1999/xhtml'/>")
        result = ManifestRepairer().fix_package(staging_tree)

        assert not result.nav_synthesized
        assert not staging_tree.exists("EPUB/toc.xhtml")
        nav_items = [item for item in manifest_items(staging_tree) if item[3] == "nav"]
        assert nav_items == [("nav", "nav.xhtml", "application/xhtml+xml", "nav")]

    def test_nav_map_rebuilt(self, staging_tree):
        """The NCX navMap should be rebuilt while head and docTitle are kept."""
        stage_package(staging_tree, chapters=("a.xhtml", "b.xhtml"))
        ManifestRepairer().fix_package(staging_tree)

        ncx = etree.fromstring(staging_tree.read_bytes("EPUB/toc.ncx"))
        points = ncx.xpath("//n:navMap/n:navPoint", namespaces=NS)
        assert [p.get("id") for p in points] == ["chapter0", "chapter1"]
        assert [p.get("playOrder") for p in points] == ["1", "2"]
        assert ncx.xpath("//n:navPoint/n:content/@src", namespaces=NS) == [
            "content/a.xhtml", "content/b.xhtml"]
        assert ncx.xpath("//n:navLabel/n:text/text()", namespaces=NS) == ["Chapter 1", "Chapter 2"]
        assert ncx.xpath("/n:ncx/n:docTitle/n:text/text()", namespaces=NS) == ["Test Book"]
        assert ncx.xpath("//n:meta[@name='dtb:uid']/@content", namespaces=NS) == ["urn:uuid:1234"]

    def test_missing_ncx_is_skipped(self, staging_tree):
        """Without an NCX, repair should succeed and the spine has no toc."""
        stage_package(staging_tree, opf=make_opf(items=[("css", "styles.css", "text/css")]), ncx=False)
        result = ManifestRepairer().fix_package(staging_tree)

        assert result.ncx_document is None
        spine = opf_root(staging_tree).xpath("/opf:package/opf:spine", namespaces=NS)[0]
        assert spine.get("toc") is None

    def test_unmanifested_ncx_gets_item(self, staging_tree):
        """An NCX file nobody references should be added to the manifest."""
        stage_package(staging_tree, opf=make_opf(items=[("css", "styles.css", "text/css")]))
        ManifestRepairer().fix_package(staging_tree)

        assert ("ncx", "toc.ncx", "application/x-dtbncx+xml", None) in manifest_items(staging_tree)

    def test_unparseable_ncx_replaced(self, staging_tree):
        """An NCX that does not parse should be replaced by a skeleton."""
        stage_package(staging_tree)
        staging_tree.rewrite("EPUB/toc.ncx", "garbage")
        result = ManifestRepairer().fix_package(staging_tree)

        assert result.fixes_by_type.get("NCX Skeleton") == 1
        ncx = etree.fromstring(staging_tree.read_bytes("EPUB/toc.ncx"))
        assert ncx.xpath("/n:ncx/n:docTitle/n:text/text()", namespaces=NS) == ["Test Book"]
        assert len(ncx.xpath("//n:navPoint", namespaces=NS)) == 1


class TestIdempotence:
    """Repairing a repaired tree must not change it."""

    def test_second_repair_is_byte_identical(self, staging_tree):
        """OPF, NCX and nav should be byte-identical after a second repair."""
        stage_package(staging_tree, chapters=("b.xhtml", "a.xhtml"))
        staging_tree.put("EPUB/images/pic.png", b"\x89PNG\r\n", role=FileRole.ASSET)
        repairer = ManifestRepairer()

        repairer.fix_package(staging_tree)
        first = {path: staging_tree.read_bytes(path)
                 for path in ("EPUB/content.opf", "EPUB/toc.ncx", "EPUB/toc.xhtml")}

        repairer.fix_package(staging_tree)
        second = {path: staging_tree.read_bytes(path) for path in first}
        assert first == second

    def test_unlisted_stylesheet_stable(self, staging_tree):
        """A stylesheet added by the first repair should keep its id."""
        stage_package(staging_tree, opf=make_opf(), ncx=False)
        repairer = ManifestRepairer()

        repairer.fix_package(staging_tree)
        first = staging_tree.read_bytes("EPUB/content.opf")
        repairer.fix_package(staging_tree)
        assert staging_tree.read_bytes("EPUB/content.opf") == first
