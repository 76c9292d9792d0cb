"""
Exceptions raised by the document processor.
"""

from typing import Optional


class PCBSError(Exception):
    """Base exception for the Pool Contract Billing System."""
    pass


class MalformedInputError(PCBSError):
    """A URL or document failed a pure format check."""
    pass


class UnreachableError(PCBSError):
    """A remote document could not be fetched."""

    def __init__(self, message: str, url: Optional[str] = None,
                 status_code: Optional[int] = None,
                 original_error: Optional[Exception] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.original_error = original_error


class ExtractionError(PCBSError):
    """The input was well-formed but carried no recognizable structure."""
    pass
