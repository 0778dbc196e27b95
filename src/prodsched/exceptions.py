"""Custom exceptions for prodsched."""

from __future__ import annotations


class ProdschedError(Exception):
    """Base exception for all prodsched errors."""

    pass


class RowFormatError(ProdschedError):
    """Raised when a CSV line does not split into the header's column count."""

    def __init__(self, message: str, line: int | None = None):
        super().__init__(message)
        self.line = line


class ValidationError(ProdschedError):
    """Raised when validation fails."""

    pass


class EmptyResultError(ValidationError):
    """Raised when input had rows but none survived cleaning."""

    pass


class DuplicateProjectError(ValidationError):
    """Raised when an uploaded batch reuses project names already loaded."""

    def __init__(self, projects: list[str]):
        self.projects = projects
        super().__init__(
            f"Upload failed. The following projects already exist: {', '.join(projects)}. "
            "Please remove them or use unique names in your CSV."
        )


class RemoteJobError(ProdschedError):
    """Raised when the scheduling service reports failure or cannot be reached."""

    def __init__(self, message: str, progress: int = 0):
        super().__init__(message)
        self.progress = progress
