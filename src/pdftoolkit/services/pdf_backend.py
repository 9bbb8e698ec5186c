"""
PdfToolkit - PDF Backend

Decoder and encoder used by the page-edit session. The session only talks
to the PageDecoder/PageEncoder protocols; PikepdfBackend is the default
implementation on top of pikepdf.
"""

import io
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import pikepdf

from pdftoolkit.constants import DEFAULT_PAGE_SIZE
from pdftoolkit.editor.page_model import normalize_rotation
from pdftoolkit.utils.exceptions import DecodeError
from pdftoolkit.utils.i18n import _

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedDocument:
    """What the decoder reports about a source document."""

    page_count: int
    native_rotations: tuple[int, ...]
    page_sizes: tuple[tuple[float, float], ...]
    handle: Any


class PageDecoder(Protocol):
    def decode(self, data: bytes) -> DecodedDocument:
        """Parse document bytes. Raises DecodeError on malformed input."""
        ...

    def release(self, handle: Any) -> None:
        """Free a handle returned by decode."""
        ...


class PageEncoder(Protocol):
    def create_output(self) -> Any: ...

    def copy_page(self, output: Any, handle: Any, source_index: int) -> Any: ...

    def set_rotation(self, page: Any, degrees: int) -> None: ...

    def serialize(self, output: Any) -> bytes: ...

    def discard(self, output: Any) -> None: ...


def resolve_source_rotation(page: pikepdf.Page) -> int:
    """Resolve the effective /Rotate of a page, including inherited values."""
    try:
        node = page.obj
        while node is not None:
            if "/Rotate" in node:
                return normalize_rotation(int(node["/Rotate"]))
            node = node.get("/Parent")
    except (pikepdf.PdfError, TypeError, ValueError) as e:
        logger.debug("Could not resolve /Rotate: %s", e)
    return 0


def page_dimensions(page: pikepdf.Page) -> tuple[float, float]:
    """Get the unrotated (width, height) of a page from its MediaBox."""
    try:
        box = page.mediabox
        width = abs(float(box[2]) - float(box[0]))
        height = abs(float(box[3]) - float(box[1]))
        if width > 0 and height > 0:
            return (width, height)
    except (AttributeError, IndexError, TypeError, ValueError, pikepdf.PdfError):
        pass
    return DEFAULT_PAGE_SIZE


class PikepdfBackend:
    """Decoder and encoder backed by pikepdf.

    The decode handle is an open ``pikepdf.Pdf`` over an in-memory copy of
    the source bytes; it is only ever read from.
    """

    def decode(self, data: bytes) -> DecodedDocument:
        if not data:
            raise DecodeError(_("The file is empty."))
        try:
            pdf = pikepdf.Pdf.open(io.BytesIO(data))
        except pikepdf.PasswordError as e:
            raise DecodeError(
                _("This PDF is password-protected. Remove the password first.")
            ) from e
        except (pikepdf.PdfError, ValueError, OSError) as e:
            raise DecodeError(
                _("The PDF file appears to be damaged or invalid: {error}").format(error=e)
            ) from e

        try:
            rotations = tuple(resolve_source_rotation(page) for page in pdf.pages)
            sizes = tuple(page_dimensions(page) for page in pdf.pages)
        except pikepdf.PdfError as e:
            pdf.close()
            raise DecodeError(
                _("The PDF file appears to be damaged or invalid: {error}").format(error=e)
            ) from e

        logger.debug("Decoded PDF with %d pages", len(rotations))
        return DecodedDocument(
            page_count=len(rotations),
            native_rotations=rotations,
            page_sizes=sizes,
            handle=pdf,
        )

    def release(self, handle: pikepdf.Pdf) -> None:
        handle.close()

    def create_output(self) -> pikepdf.Pdf:
        return pikepdf.Pdf.new()

    def copy_page(self, output: pikepdf.Pdf, handle: pikepdf.Pdf, source_index: int) -> pikepdf.Page:
        output.pages.append(handle.pages[source_index])
        return output.pages[-1]

    def set_rotation(self, page: pikepdf.Page, degrees: int) -> None:
        # Always written, even for 0, so an inherited /Rotate cannot leak in
        page.Rotate = degrees

    def serialize(self, output: pikepdf.Pdf) -> bytes:
        buffer = io.BytesIO()
        output.save(buffer)
        return buffer.getvalue()

    def discard(self, output: pikepdf.Pdf) -> None:
        output.close()
