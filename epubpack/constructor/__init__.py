"""
Content Generator
=================

Book settings and the default generator that turns them into package files.
"""

from epubpack.constructor.settings import (
    EpubSettings,
    EpubChapter,
    EpubAsset,
    load_book,
    get_valid_file_name_by_title,
)

from epubpack.constructor.generator import (
    EpubConstructor,
    GeneratedFile,
)

__all__ = [
    "EpubSettings",
    "EpubChapter",
    "EpubAsset",
    "load_book",
    "get_valid_file_name_by_title",
    "EpubConstructor",
    "GeneratedFile",
]
