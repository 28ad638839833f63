"""
Book Settings
=============

Description of a book to build: metadata, chapters and assets. Books can
be written by hand as YAML or JSON files and loaded with load_book().
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Any, Optional
import json
import logging
import re
import uuid

import yaml

logger = logging.getLogger(__name__)

DEFAULT_STYLESHEET = """body {
  font-family: serif;
  line-height: 1.5;
  margin: 0 5%;
}

h1 {
  text-align: center;
  margin: 1em 0;
}

p {
  text-indent: 1.5em;
  margin: 0 0 0.5em 0;
}
"""


def get_valid_file_name_by_title(name: Any) -> str:
    """
    Convert a title into a filename-safe string.

    Every character outside [A-Za-z0-9] becomes an underscore.

    Example:
        >>> get_valid_file_name_by_title("Air born")
        'Air_born'
    """
    if not name or not isinstance(name, str):
        return "default"
    return re.sub(r'[^a-zA-Z0-9]', '_', name)


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key; accepts both snake_case and camelCase spellings."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass
class EpubChapter:
    """One chapter: a title and an HTML body fragment."""

    title: str
    html_body: str = ""
    file_name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EpubChapter':
        return cls(
            title=str(_pick(data, 'title', default="")),
            html_body=_pick(data, 'html_body', 'htmlBody', default=""),
            file_name=_pick(data, 'file_name', 'fileName', default=""),
        )


@dataclass
class EpubAsset:
    """
    A binary asset (usually an image) copied into the package.

    Either source_path (copied at staging time) or data must be set.
    """

    file_name: str
    source_path: Optional[str] = None
    data: Optional[bytes] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> 'EpubAsset':
        source = _pick(data, 'source_path', 'sourcePath', 'path')
        if source and base_dir is not None and not Path(source).is_absolute():
            source = str(base_dir / source)
        file_name = _pick(data, 'file_name', 'fileName', default="")
        if not file_name and source:
            file_name = Path(source).name
        return cls(file_name=file_name, source_path=source)


@dataclass
class EpubSettings:
    """
    Book to build.

    Attributes:
        title: Book title (also the default output file name)
        author: Creator shown in the package metadata
        language: BCP 47 language tag
        file_name: Output file name without extension; defaults to the title
        identifier: Unique identifier; a urn:uuid is generated when empty
        description: Optional description
        publisher: Optional publisher
        stylesheet: CSS written to EPUB/styles.css
        chapters: Chapters in reading order
        assets: Images and other binary assets
    """
    title: str = ""
    author: str = ""
    language: str = "en"
    file_name: str = ""
    identifier: str = ""
    description: str = ""
    publisher: str = ""
    stylesheet: str = DEFAULT_STYLESHEET
    chapters: List[EpubChapter] = field(default_factory=list)
    assets: List[EpubAsset] = field(default_factory=list)

    def __post_init__(self):
        if not self.identifier:
            self.identifier = f"urn:uuid:{uuid.uuid4()}"

    @property
    def safe_file_name(self) -> str:
        return get_valid_file_name_by_title(self.file_name or self.title)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> 'EpubSettings':
        """
        Create settings from a dictionary.

        Args:
            data: Book description
            base_dir: Directory relative asset paths are resolved against
        """
        settings = cls(
            title=str(_pick(data, 'title', default="")),
            author=str(_pick(data, 'author', 'creator', default="")),
            language=str(_pick(data, 'language', default="en")),
            file_name=str(_pick(data, 'file_name', 'fileName', default="")),
            identifier=str(_pick(data, 'identifier', 'bookId', default="")),
            description=str(_pick(data, 'description', default="")),
            publisher=str(_pick(data, 'publisher', default="")),
            chapters=[EpubChapter.from_dict(c) for c in data.get('chapters') or []],
            assets=[EpubAsset.from_dict(a, base_dir) for a in data.get('assets') or []],
        )
        stylesheet = _pick(data, 'stylesheet', 'css')
        if stylesheet is not None:
            settings.stylesheet = stylesheet
        return settings


def load_book(book_path: Path) -> EpubSettings:
    """
    Load a book description from a YAML or JSON file.

    Relative asset paths are resolved against the file's directory.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the format is not supported or the content is not a mapping
    """
    book_path = Path(book_path)
    if not book_path.exists():
        raise FileNotFoundError(f"Book file not found: {book_path}")

    suffix = book_path.suffix.lower()
    with open(book_path, 'r', encoding='utf-8') as f:
        if suffix in ['.yaml', '.yml']:
            data = yaml.safe_load(f) or {}
        elif suffix == '.json':
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported book format: {suffix}")

    if not isinstance(data, dict):
        raise ValueError(f"Book file must contain a mapping: {book_path}")

    settings = EpubSettings.from_dict(data, base_dir=book_path.parent)
    logger.info(f"Loaded book '{settings.title}' with {len(settings.chapters)} chapter(s)")
    return settings
