"""
Base Validation Classes
=======================

Abstract base classes for checking produced packages. Extend these classes
to add validators for other container rules.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Any
import logging

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """
    Container for validation results.

    Attributes:
        is_valid: Whether validation passed
        error_count: Total number of errors
        warning_count: Total number of warnings
        errors: List of issue dictionaries with keys:
            - file: Entry name inside the package
            - type: Issue category
            - message: Issue description
            - severity: 'Error' or 'Warning'
        metadata: Additional validation metadata
    """
    is_valid: bool = True
    error_count: int = 0
    warning_count: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_error(self,
                  file: str,
                  message: str,
                  error_type: str = "Container Error",
                  severity: str = "Error") -> None:
        """
        Add an issue to the result.

        Args:
            file: Entry name inside the package
            message: Issue description
            error_type: Issue category
            severity: 'Error' or 'Warning'
        """
        self.errors.append({
            'file': file,
            'type': error_type,
            'message': message,
            'severity': severity,
        })

        if severity == "Error":
            self.error_count += 1
            self.is_valid = False
        elif severity == "Warning":
            self.warning_count += 1

    def merge(self, other: 'ValidationResult') -> None:
        """Merge another result into this one."""
        self.errors.extend(other.errors)
        self.error_count += other.error_count
        self.warning_count += other.warning_count
        if not other.is_valid:
            self.is_valid = False
        self.metadata.update(other.metadata)

    def get_errors_by_type(self) -> Dict[str, int]:
        """Get issue counts by type."""
        by_type: Dict[str, int] = {}
        for error in self.errors:
            by_type[error['type']] = by_type.get(error['type'], 0) + 1
        return by_type

    def summary(self) -> str:
        """Generate a text summary of validation results."""
        if self.is_valid and not self.warning_count:
            return "Validation PASSED - No errors found"

        status = "PASSED" if self.is_valid else "FAILED"
        lines = [f"Validation {status} - {self.error_count} error(s), {self.warning_count} warning(s)"]
        for error in self.errors:
            lines.append(f"  [{error['severity']}] {error['file']}: {error['message']}")
        return "\n".join(lines)


class BaseValidator(ABC):
    """
    Abstract base class for validators.

    Example:
        class MyValidator(BaseValidator):
            def validate_file(self, file_path: Path) -> ValidationResult:
                ...

            def validate_package(self, package_path: Path) -> ValidationResult:
                ...
    """

    @abstractmethod
    def validate_file(self, file_path: Path, **kwargs) -> ValidationResult:
        """
        Validate a single file.

        Args:
            file_path: Path to the file to validate
            **kwargs: Additional validation options

        Returns:
            ValidationResult with validation outcome
        """
        pass

    @abstractmethod
    def validate_package(self, package_path: Path, **kwargs) -> ValidationResult:
        """
        Validate a package archive.

        Args:
            package_path: Path to the package
            **kwargs: Additional validation options

        Returns:
            ValidationResult with validation outcome
        """
        pass

    @property
    def schema_type(self) -> str:
        """Return the kind of rules this validator checks."""
        return "Unknown"
