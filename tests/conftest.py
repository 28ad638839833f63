"""
Shared fixtures for epubpack tests.

Run with: pytest tests/ -v
"""

import pytest

from epubpack.config.settings import BuilderConfig
from epubpack.constructor.settings import EpubChapter, EpubSettings
from epubpack.staging.tree import StagingTree


OPF_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="BookId">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:identifier id="BookId">urn:uuid:1234</dc:identifier>
    <dc:title>Test Book</dc:title>
    <dc:language>en</dc:language>
  </metadata>
  <manifest>
{items}
  </manifest>
  <spine toc="ncx">
{itemrefs}
  </spine>
</package>
"""

NCX_DOCUMENT = """<?xml version="1.0" encoding="utf-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <head>
    <meta name="dtb:uid" content="urn:uuid:1234"/>
  </head>
  <docTitle><text>Test Book</text></docTitle>
  <navMap>
    <navPoint id="stale" playOrder="1">
      <navLabel><text>Old</text></navLabel>
      <content src="content/old.xhtml"/>
    </navPoint>
  </navMap>
</ncx>
"""

CONTAINER_XML = """<?xml version="1.0" encoding="utf-8"?>
<container xmlns="urn:oasis:names:tc:opendocument:xmlns:container" version="1.0">
  <rootfiles>
    <rootfile full-path="EPUB/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

CHAPTER_XHTML = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml"><head><title>{title}</title></head>
<body><p>{title}</p></body></html>
"""


def make_opf(items=(), itemrefs=()):
    """Package document text with the given manifest items and spine idrefs."""
    item_lines = "\n".join(
        f'    <item id="{item_id}" href="{href}" media-type="{media_type}"/>'
        for item_id, href, media_type in items
    )
    ref_lines = "\n".join(f'    <itemref idref="{idref}"/>' for idref in itemrefs)
    return OPF_TEMPLATE.format(items=item_lines, itemrefs=ref_lines)


def stage_package(tree, chapters=("a.xhtml",), opf=None, ncx=True, content_dir=True):
    """Stage a minimal package: mimetype, container, OPF, optional NCX and chapters."""
    tree.put("mimetype", "application/epub+zip")
    tree.put("META-INF/container.xml", CONTAINER_XML)
    if opf is None:
        opf = make_opf(items=[("ncx", "toc.ncx", "application/x-dtbncx+xml"),
                              ("css", "styles.css", "text/css")])
    tree.put("EPUB/content.opf", opf)
    tree.put("EPUB/styles.css", "body { margin: 0; }")
    if ncx:
        tree.put("EPUB/toc.ncx", NCX_DOCUMENT)
    base = "EPUB/content" if content_dir else "EPUB"
    for name in chapters:
        tree.put(f"{base}/{name}", CHAPTER_XHTML.format(title=name))
    return tree


@pytest.fixture
def staging_tree(tmp_path):
    """Empty staging tree rooted in a temporary directory."""
    tree = StagingTree(tmp_path / "work")
    tree.create_root()
    return tree


@pytest.fixture
def config(tmp_path):
    """Builder configuration staging under the test's temporary directory."""
    cfg = BuilderConfig()
    cfg.staging.base_dir = str(tmp_path / "staging")
    cfg.validation.strict = True
    return cfg


@pytest.fixture
def two_chapter_settings():
    """The 'Air born' book with two chapters."""
    return EpubSettings(
        title="Air born",
        author="Test Author",
        chapters=[
            EpubChapter(title="chapter 1", html_body="<p>First <img src='x.png'/>chapter</p>"),
            EpubChapter(title="chapter 2", html_body="<p>Second chapter</p><script>alert(1)</script>"),
        ],
    )
