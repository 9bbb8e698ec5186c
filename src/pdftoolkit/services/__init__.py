"""
PdfToolkit - Services Package

PDF backend used by the edit session and the single-purpose PDF tools.
"""

from pdftoolkit.services.pdf_backend import PikepdfBackend
from pdftoolkit.services.pdf_operations import ErrorCode, OperationResult

__all__ = ["PikepdfBackend", "ErrorCode", "OperationResult"]
