"""
PdfToolkit - Custom Exceptions Module

This module defines custom exception classes for specific error cases
in the page-edit session and the PDF tools.
"""


class PdfToolkitError(Exception):
    """Base exception for all PdfToolkit errors.

    All custom exceptions should inherit from this class to allow
    catching any PdfToolkit-specific error.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional technical details for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class DecodeError(PdfToolkitError):
    """Raised when a source document cannot be decoded.

    Covers malformed, truncated, unsupported and password-protected input.
    """

    def __init__(self, reason: str | None = None, name: str | None = None) -> None:
        """Initialize the exception.

        Args:
            reason: Optional reason why decoding failed
            name: Optional display name of the offending document
        """
        self.reason = reason
        self.name = name

        msg = "Could not decode document"
        if name:
            msg += f" '{name}'"
        if reason:
            msg += f": {reason}"

        super().__init__(msg, details=f"name={name}" if name else None)


class OperationRejected(PdfToolkitError):
    """Raised when an operation is invalid for the current session state.

    The session is never modified by a rejected operation.
    """

    NOT_LOADED = "not loaded"
    BUSY = "session busy"

    def __init__(self, operation: str, reason: str) -> None:
        """Initialize the exception.

        Args:
            operation: Name of the rejected operation
            reason: Why it was rejected (e.g. NOT_LOADED, BUSY)
        """
        self.operation = operation
        self.reason = reason
        super().__init__(f"Operation '{operation}' rejected: {reason}")


class ExportError(PdfToolkitError):
    """Raised when building the output document fails."""

    def __init__(self, reason: str, page_id: str | None = None) -> None:
        """Initialize the exception.

        Args:
            reason: Reason for the failure
            page_id: Optional id of the working page being exported at the time
        """
        self.reason = reason
        self.page_id = page_id
        super().__init__(
            f"Export failed: {reason}",
            details=f"page={page_id}" if page_id else None,
        )


class RenderError(PdfToolkitError):
    """Raised when a page cannot be rasterized."""

    def __init__(self, source_index: int, reason: str | None = None) -> None:
        """Initialize the exception.

        Args:
            source_index: Index of the page that failed to render
            reason: Optional reason for the failure
        """
        self.source_index = source_index
        self.reason = reason

        msg = f"Could not render page {source_index}"
        if reason:
            msg += f": {reason}"

        super().__init__(msg)


class DependencyError(PdfToolkitError):
    """Raised when a required external tool or library is missing."""

    def __init__(self, dependency: str, hint: str | None = None) -> None:
        """Initialize the exception.

        Args:
            dependency: Name of the missing dependency
            hint: Optional installation hint
        """
        self.dependency = dependency
        self.hint = hint
        super().__init__(f"Missing dependency: {dependency}", details=hint)


# Exception hierarchy summary:
# PdfToolkitError (base)
# ├── DecodeError
# ├── OperationRejected
# ├── ExportError
# ├── RenderError
# └── DependencyError
