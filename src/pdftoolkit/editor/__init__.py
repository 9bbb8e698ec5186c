"""
PdfToolkit - Page Editor Package

Non-destructive page editing over one source document: the page model,
selection, undo/redo history, edit session, export and thumbnails.
"""

from pdftoolkit.editor.page_model import (
    RotationDirection,
    SourceDocument,
    WorkingPage,
    WorkingPageList,
    effective_rotation,
)
from pdftoolkit.editor.session import EditSession, ExportPlan, SessionState
from pdftoolkit.editor.export import ExportPipeline, ExportResult, export_filename

__all__ = [
    "RotationDirection",
    "SourceDocument",
    "WorkingPage",
    "WorkingPageList",
    "effective_rotation",
    "EditSession",
    "ExportPlan",
    "SessionState",
    "ExportPipeline",
    "ExportResult",
    "export_filename",
]
