"""
Navigation
==========

Pure builders for the navigation document and NCX navMap.
"""

from epubpack.navigation.builder import (
    NavigationBuilder,
    build_navigation_document,
)

__all__ = [
    "NavigationBuilder",
    "build_navigation_document",
]
