"""
PdfToolkit - Utils Package

Utility modules for the toolkit.
"""

from pdftoolkit.utils.exceptions import (
    DecodeError,
    DependencyError,
    ExportError,
    OperationRejected,
    PdfToolkitError,
    RenderError,
)
from pdftoolkit.utils.format_utils import format_file_size, output_filename
from pdftoolkit.utils.i18n import _
from pdftoolkit.utils.logger import logger

__all__ = [
    "logger",
    "_",
    "PdfToolkitError",
    "DecodeError",
    "OperationRejected",
    "ExportError",
    "RenderError",
    "DependencyError",
    "format_file_size",
    "output_filename",
]
