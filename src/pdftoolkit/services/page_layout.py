"""
PdfToolkit - Page Layout Service

Tools that change how pages look rather than which pages a document has:
page number stamping, page scaling and n-up sheet imposition.
"""

import logging
from pathlib import Path

import pikepdf
from reportlab.pdfbase import pdfmetrics

from pdftoolkit.constants import (
    DEFAULT_PAGE_NUMBER_FONT_SIZE,
    HELVETICA_HEIGHT_FACTOR,
    MAX_FONT_SIZE,
    MIN_FONT_SIZE,
    PAGE_NUMBER_MARGIN_PT,
)
from pdftoolkit.services.pdf_backend import page_dimensions, resolve_source_rotation
from pdftoolkit.services.pdf_operations import (
    OperationResult,
    _fail,
    _invalid,
    _prepare_output,
)
from pdftoolkit.utils.i18n import N_, _

logger = logging.getLogger(__name__)

# Resource name of the stamped Helvetica font
NUMBER_FONT_NAME = "/FPgNum"

# Label templates; {num} is the page number, {total} the page count
PAGE_NUMBER_STYLES = {
    "plain": N_("{num}"),
    "page": N_("Page {num}"),
    "page-no": N_("Page no. {num}"),
    "page-of-x": N_("Page {num} of {total}"),
    "n-of-x": N_("{num} / {total}"),
    "p-dot": N_("P. {num}"),
    "pg": N_("Pg {num}"),
    "sheet": N_("Sheet {num}"),
}

PAGE_NUMBER_POSITIONS = (
    "bottom-right",
    "bottom-center",
    "bottom-left",
    "top-right",
    "top-center",
    "top-left",
)

# Slot origins per sheet, in units of the slot size, filled in reading order
N_UP_SLOTS = {
    2: ((0, 1), (0, 0)),
    4: ((0, 1), (1, 1), (0, 0), (1, 0)),
}
N_UP_GRID = {2: (1, 2), 4: (2, 2)}

_UNICODE_REPLACEMENTS = {
    "\u2014": "-",  # em dash
    "\u2013": "-",  # en dash
    "\u2018": "'",
    "\u2019": "'",
    "\u201c": '"',
    "\u201d": '"',
    "\u2026": "...",
    "\u2022": "*",
    "\u2212": "-",  # minus sign
    "\u200b": "",  # zero-width space
    "\ufeff": "",  # BOM
}


def escape_pdf_text(text: str) -> str:
    """Escape text for a PDF literal string in WinAnsiEncoding.

    Characters outside latin-1 are mapped to ASCII look-alikes or "?".
    """
    text = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
    for char, replacement in _UNICODE_REPLACEMENTS.items():
        text = text.replace(char, replacement)
    return text.encode("latin-1", errors="replace").decode("latin-1")


def parse_hex_color(color: str) -> tuple[float, float, float]:
    """Parse "#rrggbb" or "#rgb" into PDF RGB components (0.0-1.0).

    Raises:
        ValueError: If the string is not a hex colour
    """
    value = color.strip().lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        raise ValueError(f"Invalid colour: {color!r}")
    try:
        channels = [int(value[i : i + 2], 16) for i in (0, 2, 4)]
    except ValueError:
        raise ValueError(f"Invalid colour: {color!r}") from None
    return tuple(channel / 255 for channel in channels)


def format_page_label(style: str, number: int, total: int) -> str:
    """Render the label text for one page.

    Raises:
        ValueError: If style is unknown
    """
    if style not in PAGE_NUMBER_STYLES:
        raise ValueError(f"Unknown page number style: {style}")
    return _(PAGE_NUMBER_STYLES[style]).format(num=number, total=total)


def label_position(
    position: str,
    page_size: tuple[float, float],
    text_width: float,
    font_size: float,
) -> tuple[float, float]:
    """Compute the lower-left corner of a label inside a page.

    Args:
        position: One of PAGE_NUMBER_POSITIONS
        page_size: (width, height) of the page in points
        text_width: Width of the label in points
        font_size: Font size in points

    Returns:
        (x, y) relative to the page's lower-left corner

    Raises:
        ValueError: If position is unknown
    """
    if position not in PAGE_NUMBER_POSITIONS:
        raise ValueError(f"Unknown page number position: {position}")

    width, height = page_size
    margin = PAGE_NUMBER_MARGIN_PT
    vertical, horizontal = position.split("-")

    if horizontal == "left":
        x = margin
    elif horizontal == "center":
        x = (width - text_width) / 2
    else:
        x = width - text_width - margin

    if vertical == "top":
        y = height - font_size * HELVETICA_HEIGHT_FACTOR - margin
    else:
        y = margin
    return x, y


def append_text_to_page(pdf: pikepdf.Pdf, page: pikepdf.Page, commands: list[str]) -> None:
    """Append content stream commands to a page, isolated from its graphics state.

    Registers the Helvetica font under NUMBER_FONT_NAME in the page resources.
    """
    if not commands:
        return

    if "/Resources" not in page.obj:
        page.obj["/Resources"] = pikepdf.Dictionary()
    resources = page.obj.Resources
    if "/Font" not in resources:
        resources["/Font"] = pikepdf.Dictionary()
    if NUMBER_FONT_NAME not in resources.Font:
        resources.Font[NUMBER_FONT_NAME] = pikepdf.Dictionary(
            {
                "/Type": pikepdf.Name("/Font"),
                "/Subtype": pikepdf.Name("/Type1"),
                "/BaseFont": pikepdf.Name("/Helvetica"),
                "/Encoding": pikepdf.Name("/WinAnsiEncoding"),
            }
        )

    # Wrap existing content in q/Q so its CTM cannot move the label
    page.contents_add(pikepdf.Stream(pdf, b"q\n"), prepend=True)
    content = "\n".join(["Q", "q", *commands, "Q"])
    page.contents_add(pikepdf.Stream(pdf, content.encode("latin-1", errors="replace")))


def add_page_numbers(
    pdf_path: str | Path,
    output_path: str | Path,
    *,
    style: str = "plain",
    position: str = "bottom-right",
    start_number: int = 1,
    font_size: float = DEFAULT_PAGE_NUMBER_FONT_SIZE,
    color: str = "#000000",
) -> OperationResult:
    """Stamp a page number label on every page.

    Labels are drawn in Helvetica, PAGE_NUMBER_MARGIN_PT from the page edges.

    Args:
        pdf_path: Source PDF path.
        output_path: Output PDF path.
        style: Key of PAGE_NUMBER_STYLES.
        position: One of PAGE_NUMBER_POSITIONS.
        start_number: Number printed on the first page.
        font_size: Label size in points.
        color: Hex colour of the label.

    Returns:
        OperationResult.
    """
    try:
        rgb = parse_hex_color(color)
        format_page_label(style, start_number, 1)
        label_position(position, (1.0, 1.0), 0.0, font_size)
    except ValueError as e:
        return _invalid(str(e))
    if not MIN_FONT_SIZE <= font_size <= MAX_FONT_SIZE:
        return _invalid(
            _("Font size must be between {low} and {high}").format(
                low=MIN_FONT_SIZE, high=MAX_FONT_SIZE
            )
        )

    output_path = _prepare_output(output_path)
    try:
        with pikepdf.open(pdf_path) as pdf:
            total = len(pdf.pages)
            for index, page in enumerate(pdf.pages):
                label = format_page_label(style, start_number + index, total)
                text_width = pdfmetrics.stringWidth(label, "Helvetica", font_size)
                x, y = label_position(position, page_dimensions(page), text_width, font_size)
                left, bottom = float(page.mediabox[0]), float(page.mediabox[1])

                append_text_to_page(
                    pdf,
                    page,
                    [
                        "BT",
                        f"{rgb[0]:.3f} {rgb[1]:.3f} {rgb[2]:.3f} rg",
                        f"{NUMBER_FONT_NAME} {font_size:.1f} Tf",
                        f"1 0 0 1 {left + x:.2f} {bottom + y:.2f} Tm",
                        f"({escape_pdf_text(label)}) Tj",
                        "ET",
                    ],
                )
            pdf.save(str(output_path))

        logger.info("Numbered %d pages (%s, %s) → %s", total, style, position, output_path)
        return OperationResult(
            success=True,
            message=_("Numbered {count} pages").format(count=total),
            output_path=str(output_path),
            pages_affected=total,
        )
    except (OSError, pikepdf.PdfError, ValueError) as e:
        logger.error("Page numbering failed: %s", e)
        return _fail(e)


def _scale_box(box: pikepdf.Array, factor: float) -> pikepdf.Array:
    return pikepdf.Array([float(v) * factor for v in box])


def scale_pages(
    pdf_path: str | Path,
    output_path: str | Path,
    percent: float,
) -> OperationResult:
    """Resize every page, and its content, by percent.

    Args:
        pdf_path: Source PDF path.
        output_path: Output PDF path.
        percent: New size as a percentage of the old one (100 keeps it).

    Returns:
        OperationResult.
    """
    if percent <= 0:
        return _invalid(_("Scale must be greater than 0%"))

    factor = percent / 100
    output_path = _prepare_output(output_path)
    try:
        with pikepdf.open(pdf_path) as pdf:
            total = len(pdf.pages)
            if factor != 1:
                for page in pdf.pages:
                    page.contents_add(
                        pikepdf.Stream(pdf, f"q {factor:.6f} 0 0 {factor:.6f} 0 0 cm\n".encode()),
                        prepend=True,
                    )
                    page.contents_add(pikepdf.Stream(pdf, b"\nQ"))
                    page.obj.MediaBox = _scale_box(page.mediabox, factor)
                    for box in ("/CropBox", "/BleedBox", "/TrimBox", "/ArtBox"):
                        if box in page.obj:
                            page.obj[box] = _scale_box(page.obj[box], factor)
            pdf.save(str(output_path))

        logger.info("Scaled %d pages to %g%% → %s", total, percent, output_path)
        return OperationResult(
            success=True,
            message=_("Scaled {count} pages to {percent}%").format(count=total, percent=f"{percent:g}"),
            output_path=str(output_path),
            pages_affected=total,
        )
    except (OSError, pikepdf.PdfError, ValueError) as e:
        logger.error("Scaling failed: %s", e)
        return _fail(e)


def _displayed_size(page: pikepdf.Page) -> tuple[float, float]:
    width, height = page_dimensions(page)
    if resolve_source_rotation(page) in (90, 270):
        return height, width
    return width, height


def n_up(
    pdf_path: str | Path,
    output_path: str | Path,
    per_sheet: int,
) -> OperationResult:
    """Place several pages on each output sheet.

    2-up stacks two pages vertically; 4-up arranges a 2x2 grid. Each sheet
    is sized from the first page of its group; other pages are shrunk to fit
    their slot keeping their aspect ratio.

    Args:
        pdf_path: Source PDF path.
        output_path: Output PDF path.
        per_sheet: Pages per sheet, 2 or 4.

    Returns:
        OperationResult; pages_affected is the number of sheets.
    """
    if per_sheet not in N_UP_SLOTS:
        return _invalid(_("Pages per sheet must be 2 or 4"))

    columns, rows = N_UP_GRID[per_sheet]
    output_path = _prepare_output(output_path)
    try:
        with pikepdf.open(pdf_path) as src, pikepdf.Pdf.new() as dst:
            total = len(src.pages)
            for start in range(0, total, per_sheet):
                slot_w, slot_h = _displayed_size(src.pages[start])
                sheet = dst.add_blank_page(page_size=(slot_w * columns, slot_h * rows))
                group = range(start, min(start + per_sheet, total))
                for (col, row), index in zip(N_UP_SLOTS[per_sheet], group):
                    x, y = col * slot_w, row * slot_h
                    sheet.add_overlay(
                        src.pages[index], pikepdf.Rectangle(x, y, x + slot_w, y + slot_h)
                    )
            sheets = len(dst.pages)
            dst.save(str(output_path))

        logger.info("Imposed %d pages %d-up onto %d sheets → %s", total, per_sheet, sheets, output_path)
        return OperationResult(
            success=True,
            message=_("Placed {pages} pages on {sheets} sheets").format(pages=total, sheets=sheets),
            output_path=str(output_path),
            pages_affected=sheets,
        )
    except (OSError, pikepdf.PdfError, ValueError) as e:
        logger.error("N-up failed: %s", e)
        return _fail(e)
