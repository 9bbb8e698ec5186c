"""
PdfToolkit - Python package for non-destructive PDF page editing

This package provides an in-process page-edit session (reorder, rotate,
delete, duplicate, undo/redo, export) and single-purpose PDF tools built
on pikepdf.
"""

__version__ = "1.0.0"
__author__ = "PdfToolkit Developers"
__license__ = "GPL-3.0"

from pdftoolkit.editor import EditSession, ExportPipeline, ExportResult, SessionState

__all__ = [
    "__version__",
    "EditSession",
    "ExportPipeline",
    "ExportResult",
    "SessionState",
]
