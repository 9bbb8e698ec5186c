"""Error handling tests: exception hierarchy and failure paths."""

import pytest

from conftest import FakeDecoder
from pdftoolkit.editor.session import EditSession, SessionState
from pdftoolkit.utils.exceptions import (
    DecodeError,
    DependencyError,
    ExportError,
    OperationRejected,
    PdfToolkitError,
    RenderError,
)


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            DecodeError("bad xref"),
            OperationRejected("rotate", OperationRejected.BUSY),
            ExportError("disk full"),
            RenderError(3),
            DependencyError("pdftoppm"),
        ],
    )
    def test_all_derive_from_base(self, error):
        assert isinstance(error, PdfToolkitError)
        assert error.message

    def test_decode_error_message(self):
        error = DecodeError("bad xref", name="scan.pdf")
        assert "scan.pdf" in str(error)
        assert "bad xref" in str(error)
        assert error.reason == "bad xref"

    def test_operation_rejected_fields(self):
        error = OperationRejected("reorder", "ids do not match the current pages")
        assert error.operation == "reorder"
        assert "reorder" in str(error)

    def test_export_error_details(self):
        error = ExportError("cannot copy", page_id="p-4")
        assert error.page_id == "p-4"
        assert "page=p-4" in str(error)

    def test_dependency_hint(self):
        error = DependencyError("pdftoppm", hint="Install poppler-utils")
        assert error.details == "Install poppler-utils"


class TestSessionFailurePaths:
    def test_decoder_exception_does_not_leave_session_loading(self):
        decoder = FakeDecoder()
        decoder.fail_with = MemoryError()
        session = EditSession(decoder=decoder)
        with pytest.raises(DecodeError):
            session.load_bytes(b"data")
        assert session.state is SessionState.EMPTY
        assert not session.is_busy

    def test_rejected_operation_leaves_history_untouched(self, session):
        session.toggle_select("p-1")
        session.rotate("cw")
        with pytest.raises(OperationRejected):
            session.reorder(["p-1"])
        assert session.undo() is True
        assert not session.can_undo
