"""
Base Packaging Classes
======================

Abstract base classes for the packaging framework. Extend these classes
to create packagers for other archive formats.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Any, Optional
import logging

from epubpack.validation.base import ValidationResult

logger = logging.getLogger(__name__)


@dataclass
class PackageResult:
    """
    Container for packaging results.

    Attributes:
        success: Whether packaging succeeded
        output_path: Path to the created package
        entries_written: Archive entries in write order (mimetype first)
        chapters_packaged: Number of chapters packaged
        assets_packaged: Number of assets (images, stylesheets, fonts) packaged
        total_size_bytes: Size of the final archive in bytes
        validation: Result of validating the archive (if run)
        metadata: Additional packaging metadata
    """
    success: bool = True
    output_path: Optional[Path] = None
    entries_written: List[str] = field(default_factory=list)
    chapters_packaged: int = 0
    assets_packaged: int = 0
    total_size_bytes: int = 0
    validation: Optional[ValidationResult] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def summary(self) -> str:
        """Generate a text summary of packaging results."""
        status = "SUCCESS" if self.success else "FAILED"
        lines = [
            f"Packaging: {status}",
            f"Output: {self.output_path}",
            f"Entries: {len(self.entries_written)}",
            f"Chapters: {self.chapters_packaged}",
            f"Assets: {self.assets_packaged}",
        ]

        if self.total_size_bytes > 0:
            size_kb = self.total_size_bytes / 1024
            lines.append(f"Size: {size_kb:.1f} KB")

        if self.validation is not None:
            lines.append(self.validation.summary())

        return "\n".join(lines)


class BasePackager(ABC):
    """
    Abstract base class for packagers.

    Example:
        class MyPackager(BasePackager):
            def package(self, tree, output_path: Path, **kwargs) -> PackageResult:
                result = PackageResult(output_path=output_path)
                # ... packaging logic ...
                return result
    """

    @abstractmethod
    def package(self,
                tree: Any,
                output_path: Path,
                **kwargs) -> PackageResult:
        """
        Serialize a staged tree into a package.

        Args:
            tree: StagingTree holding the repaired package
            output_path: Path for the output package
            **kwargs: Additional packaging options

        Returns:
            PackageResult with packaging outcome
        """
        pass

    @property
    def package_format(self) -> str:
        """Return the format of packages created (e.g., 'EPUB')."""
        return "Unknown"
