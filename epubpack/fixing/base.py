"""
Base Fixer Classes
==================

Abstract base classes for the repair framework. Extend these classes to
create fixers that bring a staged tree into conformance with a container
contract.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
import logging

from epubpack.models import ManifestEntry, NavigationEntry, SpineItem

logger = logging.getLogger(__name__)


@dataclass
class FixResult:
    """
    Container for fix results.

    Attributes:
        files_processed: Number of files processed
        files_fixed: Number of files that were rewritten
        total_fixes: Total number of individual fixes applied
        fixes_by_type: Count of fixes by type
        fix_descriptions: Detailed descriptions of all fixes
        metadata: Additional metadata about the fixing process
    """
    files_processed: int = 0
    files_fixed: int = 0
    total_fixes: int = 0
    fixes_by_type: Dict[str, int] = field(default_factory=dict)
    fix_descriptions: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_fix(self, fix_type: str, description: str) -> None:
        """
        Record a fix that was applied.

        Args:
            fix_type: Type/category of fix
            description: Description of what was fixed
        """
        self.total_fixes += 1
        self.fix_descriptions.append(description)
        self.fixes_by_type[fix_type] = self.fixes_by_type.get(fix_type, 0) + 1

    def summary(self) -> str:
        """Generate a text summary of fix results."""
        lines = [
            f"Files processed: {self.files_processed}",
            f"Files with fixes: {self.files_fixed}",
            f"Total fixes applied: {self.total_fixes}",
        ]

        if self.fixes_by_type:
            lines.append("\nFixes by type:")
            for fix_type, count in sorted(self.fixes_by_type.items(), key=lambda x: -x[1]):
                lines.append(f"  {fix_type}: {count}")

        return "\n".join(lines)


@dataclass
class RepairResult(FixResult):
    """
    Outcome of a package structure repair.

    Attributes:
        package_document: Path of the rewritten package document
        ncx_document: Path of the legacy navigation file (if any)
        nav_document: Path of the navigation document
        nav_synthesized: Whether the navigation document was generated
        manifest: Final manifest entries, in document order
        spine: Final spine
        navigation: Navigation entries in spine order
    """
    package_document: str = ""
    ncx_document: Optional[str] = None
    nav_document: Optional[str] = None
    nav_synthesized: bool = False
    manifest: List[ManifestEntry] = field(default_factory=list)
    spine: List[SpineItem] = field(default_factory=list)
    navigation: List[NavigationEntry] = field(default_factory=list)

    @property
    def chapter_count(self) -> int:
        return len(self.spine)


class BaseFixer(ABC):
    """
    Abstract base class for fixers.

    Subclass this to create fixers for different container layouts.

    Example:
        class MyFixer(BaseFixer):
            def fix_package(self, tree, **kwargs) -> FixResult:
                result = FixResult()
                # ... fixing logic ...
                return result
    """

    @abstractmethod
    def fix_package(self, tree: Any, **kwargs) -> FixResult:
        """
        Apply fixes to all relevant files of a staged package.

        Args:
            tree: StagingTree holding the package
            **kwargs: Additional fixing options

        Returns:
            FixResult with fixing outcome
        """
        pass

    @property
    def fix_categories(self) -> List[str]:
        """Return list of fix categories this fixer handles."""
        return []
