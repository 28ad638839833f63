"""
Repair Framework
================

Provides the abstract fixer interface and the EPUB structure repairer.

Components:
- BaseFixer: Abstract base class for all fixers
- FixResult: Container for fix results
- RepairResult: Fix result carrying the rebuilt manifest, spine and navigation
- ManifestRepairer: Manifest/spine/NCX repair for staged EPUB packages
"""

from epubpack.fixing.base import (
    BaseFixer,
    FixResult,
    RepairResult,
)

from epubpack.fixing.manifest_repairer import (
    ManifestRepairer,
)

__all__ = [
    "BaseFixer",
    "FixResult",
    "RepairResult",
    "ManifestRepairer",
]
