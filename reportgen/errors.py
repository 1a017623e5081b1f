"""
Error taxonomy for report generation.

ValidationError and ResourceError abort a generation and reach the caller.
ItemError is raised for a single piece of evidence and is contained by the builder.
"""

from typing import Optional


class ReportError(Exception):
    """Base class for report generation failures"""


class ValidationError(ReportError):
    """A user-fixable precondition failed; nothing was generated."""


class ResourceError(ReportError):
    """A report template could not be fetched or is unusable."""

    def __init__(self, message: str, identifier: str, location: Optional[str] = None):
        super().__init__(message)
        self.identifier = identifier
        self.location = location

    def __str__(self) -> str:
        text = f"{self.args[0]} (template: {self.identifier}"
        if self.location:
            text += f", location: {self.location}"
        return text + ")"


class ItemError(ReportError):
    """A single evidence image could not be fetched or decoded."""

    def __init__(self, message: str, image_id: Optional[str] = None):
        super().__init__(message)
        self.image_id = image_id
