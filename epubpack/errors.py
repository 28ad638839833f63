"""
Error Taxonomy
==============

Exceptions raised by the packaging pipeline.

- StateError: API called out of sequence (caller bug, not retryable)
- PackagingIOError: filesystem operation failed (retryable after remediation)
- StructureError: staged tree violates container invariants (generator defect)
- DestinationPermissionError: destination resolution denied (re-prompt)
"""

from enum import Enum
from typing import Optional


class EpubPackError(Exception):
    """Base class for all epubpack errors."""


class StateError(EpubPackError, RuntimeError):
    """Raised when builder operations are called out of sequence."""


class StructureError(EpubPackError):
    """Raised when the staged tree or archive violates the EPUB container contract."""


class IOErrorKind(str, Enum):
    """Category of a failed filesystem operation."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    ALREADY_EXISTS = "already_exists"
    OTHER = "other"


class PackagingIOError(EpubPackError, OSError):
    """
    Filesystem failure during staging or archiving.

    Attributes:
        kind: IOErrorKind describing the failure
        path: Path the operation was acting on (if known)
    """

    def __init__(self, message: str,
                 kind: IOErrorKind = IOErrorKind.OTHER,
                 path: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.path = path

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""

    @classmethod
    def from_os_error(cls, error: OSError, path: Optional[str] = None) -> 'PackagingIOError':
        """Translate a builtin OSError into a PackagingIOError of the right kind."""
        if isinstance(error, FileNotFoundError):
            kind = IOErrorKind.NOT_FOUND
        elif isinstance(error, PermissionError):
            kind = IOErrorKind.PERMISSION_DENIED
        elif isinstance(error, FileExistsError):
            kind = IOErrorKind.ALREADY_EXISTS
        else:
            kind = IOErrorKind.OTHER

        target = path or getattr(error, 'filename', None)
        reason = error.strerror or str(error)
        return cls(f"{reason}: {target}" if target else reason, kind=kind,
                   path=str(target) if target else None)


class DestinationPermissionError(EpubPackError, PermissionError):
    """Raised when no writable destination directory could be resolved."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
