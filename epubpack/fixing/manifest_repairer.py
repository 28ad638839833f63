"""
Manifest Repairer
=================

Brings a staged package into a self-consistent state regardless of what the
content generator emitted:

1. Locates the package document (fatal if missing)
2. Enumerates chapters (content/ subdirectory first, package root otherwise)
3. Assigns ids chapter0..chapterN in lexicographic filename order
4. Rebuilds <manifest>: keeps stylesheet and NCX items, adds chapters,
   the navigation document (synthesized when absent) and assets
5. Rebuilds <spine> from scratch
6. Rebuilds the NCX <navMap> when an NCX exists

Blocks are located by element name and namespace with lxml, never by
textual pattern. A block that cannot be found is treated as absent and
created; a document that cannot be parsed at all is replaced by a minimal
skeleton.
"""

from copy import deepcopy
from typing import List, Optional, Set, Tuple
from urllib.parse import quote, unquote
import logging
import posixpath
import uuid

from lxml import etree

from epubpack.config.settings import PackagingConfig
from epubpack.errors import PackagingIOError, StructureError
from epubpack.fixing.base import BaseFixer, RepairResult
from epubpack.models import FileRole, ManifestEntry, SpineItem, StagedFile
from epubpack.navigation.builder import NavigationBuilder
from epubpack.staging.roles import extension_of, guess_media_type, MEDIA_TYPES
from epubpack.staging.tree import StagingTree, normalize_path
from epubpack.xml.utils import (
    DC_NS,
    OPF_NS,
    find_child,
    find_children,
    find_elements_by_local_name,
    local_name,
    parse_xml_bytes,
    qualified_tag,
    serialize_document,
)

logger = logging.getLogger(__name__)

CSS_MEDIA_TYPE = "text/css"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"
XHTML_MEDIA_TYPE = "application/xhtml+xml"

NAV_ITEM_ID = "nav"


def _join(base: str, relative: str) -> str:
    return f"{base}/{relative}" if base else relative


def _relative(path: str, start: str) -> str:
    return posixpath.relpath(path, start or ".")


def _href(path: str) -> str:
    return quote(path, safe="/")


def _doctype_of(root) -> Optional[str]:
    return root.getroottree().docinfo.doctype or None


class ManifestRepairer(BaseFixer):
    """
    Rebuilds manifest, spine and navigation of a staged EPUB package.

    Example:
        repairer = ManifestRepairer(config.packaging)
        result = repairer.fix_package(tree)
        print(result.summary())
    """

    def __init__(self,
                 config: Optional[PackagingConfig] = None,
                 navigation_builder: Optional[NavigationBuilder] = None):
        self.config = config or PackagingConfig()
        self.navigation_builder = navigation_builder or NavigationBuilder()
        self.package_dir = normalize_path(self.config.package_dir)

    @property
    def fix_categories(self) -> List[str]:
        return [
            "Package Skeleton",
            "Manifest Rebuilt",
            "Spine Rebuilt",
            "Navigation Synthesized",
            "NavMap Rebuilt",
            "NCX Skeleton",
            "Duplicate Block",
            "Id Collision",
        ]

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def locate_package_document(self, tree: StagingTree) -> str:
        """
        Find the package document in the package root.

        Raises:
            StructureError: If no package document was staged
        """
        candidates = sorted(
            f.relative_path for f in tree.files(FileRole.MANIFEST)
            if f.parent == self.package_dir
        )
        if not candidates:
            raise StructureError("missing package document")
        if len(candidates) > 1:
            logger.warning(f"Multiple package documents found, using {candidates[0]}: {candidates}")
        return candidates[0]

    def enumerate_chapters(self, tree: StagingTree) -> List[str]:
        """
        Chapter paths relative to the package root, in id-assignment order.

        Members of the content/ subdirectory win over loose markup files in
        the package root; the loose files are left out of the spine.
        """
        content_dir = _join(self.package_dir, normalize_path(self.config.content_dir))
        chapters = tree.files(FileRole.CHAPTER)
        loose = [f for f in chapters if f.parent == self.package_dir]

        if tree.is_dir(content_dir):
            members = [f for f in chapters if f.parent == content_dir]
            if loose:
                logger.warning(
                    f"Both {content_dir}/ and loose chapter files exist; "
                    f"ignoring loose files: {sorted(f.name for f in loose)}"
                )
        else:
            members = loose

        members.sort(key=lambda f: f.name)
        return [_relative(f.relative_path, self.package_dir) for f in members]

    def _locate_ncx(self, tree: StagingTree, retained: List[etree._Element]) -> Optional[str]:
        for item in retained:
            if (item.get("media-type") or "").strip() == NCX_MEDIA_TYPE and item.get("href"):
                path = self._package_path(item.get("href"))
                if path is not None and tree.exists(path):
                    return path

        conventional = _join(self.package_dir, self.config.ncx_filename)
        if tree.exists(conventional):
            return conventional

        staged = sorted(
            f.relative_path for f in tree.files(FileRole.NCX)
            if f.relative_path.startswith(self.package_dir + "/") or not self.package_dir
        )
        return staged[0] if staged else None

    def _locate_nav(self, tree: StagingTree) -> Optional[str]:
        for name in self.config.nav_filenames:
            path = _join(self.package_dir, name)
            if tree.exists(path):
                return path
        return None

    def _package_assets(self, tree: StagingTree) -> List[StagedFile]:
        prefix = self.package_dir + "/" if self.package_dir else ""
        return sorted(
            (f for f in tree.files(FileRole.ASSET) if f.relative_path.startswith(prefix)),
            key=lambda f: f.relative_path,
        )

    def _media_type_for(self, tree: StagingTree, staged: StagedFile) -> str:
        if extension_of(staged.relative_path) in MEDIA_TYPES:
            return guess_media_type(staged.relative_path)
        return guess_media_type(staged.relative_path, tree.read_bytes(staged.relative_path))

    # ------------------------------------------------------------------
    # Repair
    # ------------------------------------------------------------------

    def fix_package(self, tree: StagingTree, **kwargs) -> RepairResult:
        """
        Repair manifest, spine and navigation of the staged package.

        Args:
            tree: Populated staging tree

        Returns:
            RepairResult describing the rebuilt structures

        Raises:
            StructureError: If the package document is missing
        """
        result = RepairResult()

        opf_path = self.locate_package_document(tree)
        chapters = self.enumerate_chapters(tree)
        id_map: List[Tuple[str, str]] = [
            (href, f"chapter{index}") for index, href in enumerate(chapters)
        ]
        logger.info(f"Repairing {opf_path} with {len(id_map)} chapter(s)")

        opf_root = self._load_package(tree, opf_path, result)
        result.files_processed += 1

        manifests = find_children(opf_root, "manifest")
        retained = self._retained_items(manifests[0] if manifests else None)
        nonlinear = self._nonlinear_paths(opf_root, manifests)
        spine_items = [
            SpineItem(idref=item_id, linear=_join(self.package_dir, href) not in nonlinear)
            for href, item_id in id_map
        ]
        ncx_path = self._locate_ncx(tree, retained)

        nav_path = self._locate_nav(tree)
        if nav_path is None:
            nav_path = self._synthesize_nav(tree, chapters, result)
        else:
            result.files_processed += 1

        manifest_el, ncx_id = self._rebuild_manifest(
            tree, opf_root, manifests, retained, id_map, nav_path, ncx_path, result
        )
        self._rebuild_spine(opf_root, manifest_el, spine_items, ncx_id, result)

        tree.rewrite(opf_path, serialize_document(opf_root, doctype=_doctype_of(opf_root)))
        result.files_fixed += 1

        navigation = self.navigation_builder.entries([_href(href) for href, _ in id_map])
        if ncx_path is not None:
            self._rebuild_ncx(tree, ncx_path, opf_root, id_map, result)
            result.files_processed += 1
            result.files_fixed += 1
        else:
            logger.debug("No legacy NCX present, skipping navMap rebuild")

        result.package_document = opf_path
        result.ncx_document = ncx_path
        result.nav_document = nav_path
        result.manifest = [
            ManifestEntry(
                id=item.get("id"),
                href=item.get("href"),
                media_type=item.get("media-type"),
                properties=item.get("properties"),
            )
            for item in find_children(manifest_el, "item")
        ]
        result.spine = spine_items
        result.navigation = navigation
        result.metadata['chapters'] = [href for href, _ in id_map]

        logger.info(
            f"Repair complete: {len(result.manifest)} manifest item(s), "
            f"{len(result.spine)} spine item(s)"
        )
        return result

    def _load_package(self, tree: StagingTree, opf_path: str,
                      result: RepairResult) -> etree._Element:
        root = parse_xml_bytes(tree.read_bytes(opf_path))
        if root is not None and local_name(root) == "package":
            return root

        logger.warning(f"Package document {opf_path} is unusable, replacing with a skeleton")
        result.add_fix("Package Skeleton", f"Replaced unparseable package document {opf_path}")

        root = etree.Element(f"{{{OPF_NS}}}package", nsmap={None: OPF_NS},
                             version="3.0", **{"unique-identifier": "BookId"})
        metadata = etree.SubElement(root, f"{{{OPF_NS}}}metadata", nsmap={"dc": DC_NS})
        identifier = etree.SubElement(metadata, f"{{{DC_NS}}}identifier", id="BookId")
        identifier.text = f"urn:uuid:{uuid.uuid4()}"
        title = etree.SubElement(metadata, f"{{{DC_NS}}}title")
        title.text = "Untitled"
        language = etree.SubElement(metadata, f"{{{DC_NS}}}language")
        language.text = "en"
        return root

    def _retained_items(self, manifest: Optional[etree._Element]) -> List[etree._Element]:
        """Stylesheet items first, then NCX items, each de-duplicated by href."""
        if manifest is None:
            return []

        items = find_children(manifest, "item")
        retained = []
        seen_hrefs: Set[str] = set()
        for media_type in (CSS_MEDIA_TYPE, NCX_MEDIA_TYPE):
            for item in items:
                if (item.get("media-type") or "").strip() != media_type:
                    continue
                path = self._package_path(item.get("href"))
                if path is None or path in seen_hrefs:
                    continue
                seen_hrefs.add(path)
                retained.append(deepcopy(item))
        return retained

    def _synthesize_nav(self, tree: StagingTree, chapters: List[str],
                        result: RepairResult) -> str:
        nav_name = self.config.nav_filenames[0]
        nav_path = _join(self.package_dir, nav_name)
        nav_dir = posixpath.dirname(nav_name)
        hrefs = [_href(_relative(href, nav_dir)) for href in chapters]

        tree.put(nav_path, self.navigation_builder.build_document(hrefs), role=FileRole.NAV)
        result.nav_synthesized = True
        result.files_fixed += 1
        result.add_fix("Navigation Synthesized", f"Generated {nav_path} with {len(hrefs)} entries")
        logger.info(f"Synthesized navigation document: {nav_path}")
        return nav_path

    def _rebuild_manifest(self, tree: StagingTree, opf_root: etree._Element,
                          manifests: List[etree._Element],
                          retained: List[etree._Element],
                          id_map: List[Tuple[str, str]],
                          nav_path: str,
                          ncx_path: Optional[str],
                          result: RepairResult) -> Tuple[etree._Element, Optional[str]]:
        def tag(name: str) -> str:
            return qualified_tag(opf_root, name)

        retained_paths = {self._package_path(item.get("href")) for item in retained}
        stylesheets = []
        assets = []
        for staged in self._package_assets(tree):
            if staged.relative_path in retained_paths:
                continue
            if extension_of(staged.relative_path) == ".css":
                stylesheets.append(staged)
            elif self.config.manifest_assets:
                assets.append(staged)

        taken: Set[str] = {item_id for _, item_id in id_map}
        taken.add(NAV_ITEM_ID)
        taken.update(f"asset{index}" for index in range(len(assets)))

        manifest_el = etree.Element(tag("manifest"))
        ncx_id = None

        def keep(item: etree._Element, base: str) -> str:
            item_id = item.get("id")
            if not item_id or item_id in taken:
                new_id = self._unique_id(base, taken)
                result.add_fix("Id Collision", f"Re-identified item {item_id!r} as {new_id!r}")
                item.set("id", new_id)
                item_id = new_id
            taken.add(item_id)
            item.tag = tag("item")
            manifest_el.append(item)
            return item_id

        # Stylesheets: retained items, then stylesheets missing from the manifest
        for item in retained:
            if (item.get("media-type") or "").strip() == CSS_MEDIA_TYPE:
                keep(item, "css")
        for staged in stylesheets:
            item_id = self._unique_id("css", taken)
            taken.add(item_id)
            etree.SubElement(manifest_el, tag("item"), id=item_id,
                             href=_href(_relative(staged.relative_path, self.package_dir)),
                             **{"media-type": CSS_MEDIA_TYPE})

        # Legacy navigation
        for item in retained:
            if (item.get("media-type") or "").strip() != NCX_MEDIA_TYPE:
                continue
            item_id = keep(item, "ncx")
            if ncx_id is None and ncx_path is not None:
                if self._package_path(item.get("href")) == ncx_path:
                    ncx_id = item_id

        if ncx_path is not None and ncx_id is None:
            ncx_id = self._unique_id("ncx", taken)
            taken.add(ncx_id)
            etree.SubElement(manifest_el, tag("item"), id=ncx_id,
                             href=_href(_relative(ncx_path, self.package_dir)),
                             **{"media-type": NCX_MEDIA_TYPE})

        for href, item_id in id_map:
            etree.SubElement(manifest_el, tag("item"), id=item_id, href=_href(href),
                             **{"media-type": XHTML_MEDIA_TYPE})

        etree.SubElement(manifest_el, tag("item"), id=NAV_ITEM_ID,
                         href=_href(_relative(nav_path, self.package_dir)),
                         properties="nav",
                         **{"media-type": XHTML_MEDIA_TYPE})

        for index, staged in enumerate(assets):
            etree.SubElement(manifest_el, tag("item"), id=f"asset{index}",
                             href=_href(_relative(staged.relative_path, self.package_dir)),
                             **{"media-type": self._media_type_for(tree, staged)})

        if manifests:
            opf_root.replace(manifests[0], manifest_el)
            for extra in manifests[1:]:
                opf_root.remove(extra)
                result.add_fix("Duplicate Block", "Removed extra <manifest> element")
        else:
            metadata = find_child(opf_root, "metadata")
            position = opf_root.index(metadata) + 1 if metadata is not None else 0
            opf_root.insert(position, manifest_el)

        result.add_fix("Manifest Rebuilt", f"Manifest rebuilt with {len(manifest_el)} item(s)")
        return manifest_el, ncx_id

    def _rebuild_spine(self, opf_root: etree._Element, manifest_el: etree._Element,
                       spine_items: List[SpineItem], ncx_id: Optional[str],
                       result: RepairResult) -> etree._Element:
        spines = find_children(opf_root, "spine")
        spine_el = etree.Element(qualified_tag(opf_root, "spine"))
        if ncx_id:
            spine_el.set("toc", ncx_id)
        if spines and spines[0].get("page-progression-direction"):
            spine_el.set("page-progression-direction", spines[0].get("page-progression-direction"))

        for spine_item in spine_items:
            itemref = etree.SubElement(spine_el, qualified_tag(opf_root, "itemref"),
                                       idref=spine_item.idref)
            if not spine_item.linear:
                itemref.set("linear", "no")

        stale = [item.get("idref") for spine in spines for item in find_children(spine, "itemref")]
        for spine in spines:
            opf_root.remove(spine)
        if len(spines) > 1:
            result.add_fix("Duplicate Block", f"Removed {len(spines) - 1} extra <spine> element(s)")

        opf_root.insert(opf_root.index(manifest_el) + 1, spine_el)

        if stale != [item.idref for item in spine_items]:
            logger.debug(f"Replaced stale spine references: {stale}")
        result.add_fix("Spine Rebuilt", f"Spine rebuilt with {len(spine_items)} itemref(s)")
        return spine_el

    def _rebuild_ncx(self, tree: StagingTree, ncx_path: str, opf_root: etree._Element,
                     id_map: List[Tuple[str, str]], result: RepairResult) -> None:
        ncx_dir = posixpath.dirname(ncx_path)
        hrefs = [_href(_relative(_join(self.package_dir, href), ncx_dir)) for href, _ in id_map]
        entries = self.navigation_builder.entries(hrefs)
        ids = [item_id for _, item_id in id_map]

        root = parse_xml_bytes(tree.read_bytes(ncx_path))
        if root is None or local_name(root) != "ncx":
            logger.warning(f"Legacy navigation {ncx_path} is unusable, replacing with a skeleton")
            content = self.navigation_builder.build_ncx_document(
                entries, ids, uid=self._book_uid(opf_root), doc_title=self._book_title(opf_root)
            )
            tree.rewrite(ncx_path, content)
            result.add_fix("NCX Skeleton", f"Replaced unparseable NCX {ncx_path}")
            return

        namespace = etree.QName(root).namespace
        nav_map = self.navigation_builder.build_nav_map(entries, ids, namespace)

        old_maps = find_children(root, "navMap")
        if old_maps:
            root.replace(old_maps[0], nav_map)
            for extra in old_maps[1:]:
                root.remove(extra)
        else:
            trailing = [child for child in root if local_name(child) in ("pageList", "navList")]
            if trailing:
                root.insert(root.index(trailing[0]), nav_map)
            else:
                root.append(nav_map)

        tree.rewrite(ncx_path, serialize_document(root, doctype=_doctype_of(root)))
        result.add_fix("NavMap Rebuilt", f"navMap in {ncx_path} rebuilt with {len(entries)} point(s)")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _nonlinear_paths(self, opf_root: etree._Element,
                         manifests: List[etree._Element]) -> Set[str]:
        """Tree paths of chapters the existing spine marks linear="no"."""
        hrefs = {}
        for manifest in manifests:
            for item in find_children(manifest, "item"):
                hrefs.setdefault(item.get("id"), item.get("href"))

        paths = set()
        for spine in find_children(opf_root, "spine"):
            for itemref in find_children(spine, "itemref"):
                if (itemref.get("linear") or "").strip() != "no":
                    continue
                path = self._package_path(hrefs.get(itemref.get("idref")))
                if path is not None:
                    paths.add(path)
        return paths

    def _package_path(self, href: Optional[str]) -> Optional[str]:
        """Tree path for a manifest href, or None if it points outside the tree."""
        if not href:
            return None
        try:
            return normalize_path(_join(self.package_dir, unquote(href)))
        except PackagingIOError:
            return None

    @staticmethod
    def _unique_id(base: str, taken: Set[str]) -> str:
        if base not in taken:
            return base
        index = 1
        while f"{base}{index}" in taken:
            index += 1
        return f"{base}{index}"

    @staticmethod
    def _book_uid(opf_root: etree._Element) -> str:
        for identifier in find_elements_by_local_name(opf_root, "identifier"):
            if identifier.text and identifier.text.strip():
                return identifier.text.strip()
        return "urn:uuid:unknown"

    @staticmethod
    def _book_title(opf_root: etree._Element) -> str:
        for title in find_elements_by_local_name(opf_root, "title"):
            if title.text and title.text.strip():
                return title.text.strip()
        return "Untitled"
