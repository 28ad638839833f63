"""
Validation Framework
====================

Provides the abstract validation interface and the container validator
run on freshly written archives.

Components:
- BaseValidator: Abstract base class for all validators
- ValidationResult: Container for validation results
- EpubContainerValidator: EPUB container invariant checks
"""

from epubpack.validation.base import (
    BaseValidator,
    ValidationResult,
)

from epubpack.validation.container_validator import (
    EpubContainerValidator,
)

__all__ = [
    "BaseValidator",
    "ValidationResult",
    "EpubContainerValidator",
]
