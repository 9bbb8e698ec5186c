"""
PdfToolkit - Edit Session Export

Builds a new document from the original source bytes and the session's
accumulated edits. Export only reads session state; a failed export leaves
the session exactly as it was.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pdftoolkit.editor.page_model import effective_rotation
from pdftoolkit.editor.session import EditSession, ExportPlan
from pdftoolkit.utils.exceptions import ExportError
from pdftoolkit.utils.format_utils import output_filename
from pdftoolkit.utils.i18n import _
from pdftoolkit.utils.logger import logger

if TYPE_CHECKING:
    from pdftoolkit.services.pdf_backend import PageEncoder


@dataclass
class ExportResult:
    """Outcome of an export: the output bytes or the error that stopped it."""

    success: bool
    data: bytes = b""
    page_count: int = 0
    message: str = ""
    error: ExportError | None = None

    def unwrap(self) -> bytes:
        """Return the output bytes.

        Raises:
            ExportError: If the export failed
        """
        if self.error is not None:
            raise self.error
        return self.data


class ExportPipeline:
    """Turns an edit session into output document bytes.

    Args:
        encoder: Page copier/encoder (defaults to the pikepdf backend)
    """

    def __init__(self, encoder: "PageEncoder | None" = None) -> None:
        if encoder is None:
            from pdftoolkit.services.pdf_backend import PikepdfBackend

            encoder = PikepdfBackend()
        self._encoder = encoder
        self._executor: ThreadPoolExecutor | None = None

    def export(self, session: EditSession) -> ExportResult:
        """Export every working page, in order, with its final rotation.

        Raises:
            OperationRejected: If nothing is loaded or the session is busy
        """
        plan = session.begin_export()
        return self._run(session, plan)

    def export_selected_only(self, session: EditSession) -> ExportResult:
        """Export only the selected pages, in page list order.

        Raises:
            OperationRejected: If nothing is loaded or the session is busy
        """
        plan = session.begin_export(selected_only=True)
        return self._run(session, plan)

    def export_async(self, session: EditSession, selected_only: bool = False) -> Future:
        """Run an export on a background worker.

        The session becomes busy before this returns, so a second export
        is rejected immediately.

        Returns:
            Future resolving to an ExportResult

        Raises:
            OperationRejected: If nothing is loaded or the session is busy
        """
        plan = session.begin_export(selected_only=selected_only)
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1)
        try:
            return self._executor.submit(self._run, session, plan)
        except RuntimeError:
            session.finish_export()
            raise

    def shutdown(self) -> None:
        """Wait for a pending background export and release the worker."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _run(self, session: EditSession, plan: ExportPlan) -> ExportResult:
        try:
            return self.build(plan)
        finally:
            session.finish_export()

    def build(self, plan: ExportPlan) -> ExportResult:
        """Produce output bytes for an export plan.

        Collaborator failures are returned as a failed ExportResult.
        """
        if not plan.pages:
            error = ExportError(_("No pages to export"))
            logger.warning(str(error))
            return ExportResult(success=False, message=error.message, error=error)

        source = plan.source
        output = None
        current_id = None
        try:
            output = self._encoder.create_output()
            for page in plan.pages:
                current_id = page.id
                copied = self._encoder.copy_page(output, source.handle, page.source_index)
                # Copies may or may not carry /Rotate, so it is always set
                self._encoder.set_rotation(
                    copied,
                    effective_rotation(
                        source.native_rotation(page.source_index), page.rotation_delta
                    ),
                )
            current_id = None
            data = self._encoder.serialize(output)
        except Exception as e:
            error = ExportError(str(e), page_id=current_id)
            logger.error(f"Export of '{source.name}' failed: {error}")
            return ExportResult(success=False, message=error.message, error=error)
        finally:
            if output is not None:
                try:
                    self._encoder.discard(output)
                except Exception as e:
                    logger.warning(f"Could not release export output: {e}")

        logger.info(f"Exported {len(plan.pages)} page(s) from '{source.name}'")
        return ExportResult(
            success=True,
            data=data,
            page_count=len(plan.pages),
            message=_("Exported {count} pages").format(count=len(plan.pages)),
        )


def export_filename(session: EditSession, selected_only: bool = False) -> str:
    """Download name for an export of this session."""
    name = session.source.name if session.source else None
    return output_filename(name, "extracted" if selected_only else "edited")
