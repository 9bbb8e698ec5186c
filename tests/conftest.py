"""Pytest configuration for pdftoolkit tests.

Provides factories for real in-memory PDFs (built with pikepdf) and
in-memory stand-ins for the decoder/encoder collaborators of the edit
session.
"""

import io

import pikepdf
import pytest

from pdftoolkit.editor.session import EditSession
from pdftoolkit.services.pdf_backend import DecodedDocument
from pdftoolkit.utils.exceptions import DecodeError


def build_pdf(
    num_pages: int = 3,
    rotations: list[int] | None = None,
    sizes: list[tuple[float, float]] | None = None,
    inherited_rotate: int | None = None,
    text: bool = True,
) -> pikepdf.Pdf:
    """Create a PDF whose pages say "Page N".

    Args:
        num_pages: Number of pages
        rotations: Optional /Rotate per page
        sizes: Optional (width, height) per page (default Letter)
        inherited_rotate: Optional /Rotate set on the page tree root only
        text: Whether pages draw their label
    """
    pdf = pikepdf.Pdf.new()
    for i in range(num_pages):
        width, height = sizes[i] if sizes else (612, 792)
        content = f"BT /F1 12 Tf 100 700 Td (Page {i + 1}) Tj ET" if text else ""
        page = pikepdf.Page(
            pikepdf.Dictionary(
                Type=pikepdf.Name.Page,
                MediaBox=[0, 0, width, height],
                Contents=pdf.make_stream(content.encode()),
            )
        )
        pdf.pages.append(page)
        if rotations:
            pdf.pages[-1].Rotate = rotations[i]
    if inherited_rotate is not None:
        pdf.Root.Pages.Rotate = inherited_rotate
    return pdf


def pdf_to_bytes(pdf: pikepdf.Pdf) -> bytes:
    buffer = io.BytesIO()
    pdf.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def make_pdf_bytes():
    """Factory fixture: build_pdf(...) serialized to bytes."""

    def _make(*args, **kwargs) -> bytes:
        with build_pdf(*args, **kwargs) as pdf:
            return pdf_to_bytes(pdf)

    return _make


@pytest.fixture
def make_pdf_file(tmp_path):
    """Factory fixture: build_pdf(...) saved under tmp_path, returns the path."""
    counter = iter(range(1, 10_000))

    def _make(*args, name: str | None = None, **kwargs) -> str:
        path = tmp_path / (name or f"input{next(counter)}.pdf")
        with build_pdf(*args, **kwargs) as pdf:
            pdf.save(path)
        return str(path)

    return _make


class FakeDecoder:
    """Decoder reporting a fixed page layout; each decode returns a fresh handle."""

    def __init__(self, page_count: int = 5, rotations: tuple[int, ...] | None = None):
        self.page_count = page_count
        self.rotations = rotations or (0,) * page_count
        self.fail_with: Exception | None = None
        self.calls = 0
        self.released: list = []

    def decode(self, data: bytes) -> DecodedDocument:
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        if data == b"garbage":
            raise DecodeError("not a PDF")
        return DecodedDocument(
            page_count=self.page_count,
            native_rotations=self.rotations,
            page_sizes=((612.0, 792.0),) * self.page_count,
            handle=object(),
        )

    def release(self, handle) -> None:
        self.released.append(handle)


class FakeEncoder:
    """Encoder that records what it was asked to write.

    Output is a list of [source_index, rotation] pairs; serialize renders
    it as "index:rotation" tokens.
    """

    def __init__(self):
        self.fail_on_copy: int | None = None
        self.fail_on_serialize = False
        self.discarded = 0
        self.before_serialize = None

    def create_output(self):
        return []

    def copy_page(self, output, handle, source_index):
        if source_index == self.fail_on_copy:
            raise RuntimeError(f"cannot copy page {source_index}")
        page = [source_index, None]
        output.append(page)
        return page

    def set_rotation(self, page, degrees):
        page[1] = degrees

    def serialize(self, output):
        if self.before_serialize is not None:
            self.before_serialize()
        if self.fail_on_serialize:
            raise OSError("disk full")
        return " ".join(f"{index}:{rotation}" for index, rotation in output).encode()

    def discard(self, output):
        self.discarded += 1


@pytest.fixture
def fake_decoder():
    return FakeDecoder()


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture
def session(fake_decoder):
    """A READY session over a 5-page unrotated document (ids p-1 .. p-5)."""
    s = EditSession(decoder=fake_decoder)
    s.load_bytes(b"%PDF-fake", name="report.pdf")
    return s
