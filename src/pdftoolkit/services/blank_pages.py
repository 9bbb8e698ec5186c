"""
PdfToolkit - Blank Page Detection

Finds pages that carry (almost) no visible content and removes them.

A page is blank when the share of non-white pixels in its rendering is
below a threshold, unless its text layer holds substantial text.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import pikepdf
from PIL import Image, ImageChops

from pdftoolkit.constants import (
    BLANK_ANALYSIS_DPI,
    BLANK_PIXEL_WHITE_LEVEL,
    DEFAULT_BLANK_THRESHOLD_PERCENT,
    POINTS_PER_INCH,
    SUBSTANTIAL_TEXT_MIN_CHARS,
    SUBSTANTIAL_TEXT_MIN_RUNS,
)
from pdftoolkit.editor.page_model import SourceDocument
from pdftoolkit.services.pdf_backend import PikepdfBackend
from pdftoolkit.services.pdf_operations import OperationResult, _fail, delete_pages
from pdftoolkit.services.image_conversion import require_pdftoppm
from pdftoolkit.utils.exceptions import DecodeError, DependencyError
from pdftoolkit.utils.i18n import _

logger = logging.getLogger(__name__)

_TEXT_OPERATORS = "Tj TJ ' \""


class PageRasterizer(Protocol):
    def render(
        self, source: SourceDocument, source_index: int, scale: float | None = None, rotation: int = 0
    ) -> Image.Image: ...


@dataclass
class PageAnalysis:
    """Blank-page verdict for one page (1-based page number)."""

    page: int
    content_percent: float
    text_chars: int
    text_runs: int
    is_blank: bool

    @property
    def has_substantial_text(self) -> bool:
        return (
            self.text_chars > SUBSTANTIAL_TEXT_MIN_CHARS
            and self.text_runs > SUBSTANTIAL_TEXT_MIN_RUNS
        )


def page_content_ratio(image: Image.Image) -> float:
    """Percentage of pixels where any channel is darker than near-white.

    Returns:
        Value between 0.0 and 100.0, rounded to two decimals
    """
    total = image.width * image.height
    if total == 0:
        return 0.0

    channels = image.convert("RGB").split()
    marks = [ch.point(lambda v: 255 if v < BLANK_PIXEL_WHITE_LEVEL else 0) for ch in channels]
    mask = ImageChops.lighter(ImageChops.lighter(marks[0], marks[1]), marks[2])
    content = mask.histogram()[255]
    return round(content / total * 100, 2)


def _string_text(operand) -> str:
    if isinstance(operand, pikepdf.String):
        return bytes(operand).decode("latin-1")
    return ""


def text_runs(page: pikepdf.Page) -> list[str]:
    """Non-empty text strings drawn by the page's own content stream."""
    runs = []
    try:
        instructions = pikepdf.parse_content_stream(page, _TEXT_OPERATORS)
    except pikepdf.PdfError as e:
        logger.debug("Could not parse content stream: %s", e)
        return runs

    for operands, operator in instructions:
        if str(operator) == "TJ":
            text = "".join(_string_text(item) for item in operands[0])
        else:
            text = _string_text(operands[-1]) if operands else ""
        text = text.strip()
        if text:
            runs.append(text)
    return runs


def analyze_pages(
    pdf_path: str | Path,
    threshold_percent: float = DEFAULT_BLANK_THRESHOLD_PERCENT,
    renderer: PageRasterizer | None = None,
) -> list[PageAnalysis]:
    """Measure the content of every page of a PDF.

    Args:
        pdf_path: PDF to analyze.
        threshold_percent: Pages below this content share are blank.
        renderer: Rasterizer (defaults to a ThumbnailRenderer).

    Returns:
        One PageAnalysis per page, in page order.

    Raises:
        DecodeError: If the file is not a readable PDF
        DependencyError: If no renderer is given and pdftoppm is missing
    """
    owns_renderer = renderer is None
    if renderer is None:
        from pdftoolkit.editor.thumbnail_renderer import ThumbnailRenderer

        require_pdftoppm()
        renderer = ThumbnailRenderer(cache_size=1, max_workers=1)

    scale = BLANK_ANALYSIS_DPI / POINTS_PER_INCH
    results = []
    backend = PikepdfBackend()
    decoded = None
    try:
        data = Path(pdf_path).read_bytes()
        decoded = backend.decode(data)
        source = SourceDocument(
            data=data,
            page_count=decoded.page_count,
            native_rotations=decoded.native_rotations,
            page_sizes=decoded.page_sizes,
            handle=decoded.handle,
            name=Path(pdf_path).name,
        )

        for index, page in enumerate(decoded.handle.pages):
            runs = text_runs(page)
            percent = page_content_ratio(renderer.render(source, index, scale))
            analysis = PageAnalysis(
                page=index + 1,
                content_percent=percent,
                text_chars=sum(len(run) for run in runs),
                text_runs=len(runs),
                is_blank=False,
            )
            analysis.is_blank = not analysis.has_substantial_text and percent < threshold_percent
            logger.debug(
                "Page %d: %.2f%% content, %d chars in %d runs%s",
                analysis.page,
                percent,
                analysis.text_chars,
                analysis.text_runs,
                " (blank)" if analysis.is_blank else "",
            )
            results.append(analysis)
    finally:
        if decoded is not None:
            backend.release(decoded.handle)
        if owns_renderer:
            renderer.clear_all()

    return results


def find_blank_pages(
    pdf_path: str | Path,
    threshold_percent: float = DEFAULT_BLANK_THRESHOLD_PERCENT,
    renderer: PageRasterizer | None = None,
) -> list[int]:
    """1-based numbers of the blank pages of a PDF.

    Pages that fail to render are drawn as a placeholder and therefore
    never reported blank.
    """
    blank = [a.page for a in analyze_pages(pdf_path, threshold_percent, renderer) if a.is_blank]
    logger.info("Found %d blank page(s) in %s", len(blank), Path(pdf_path).name)
    return blank


def remove_blank_pages(
    pdf_path: str | Path,
    output_path: str | Path,
    threshold_percent: float = DEFAULT_BLANK_THRESHOLD_PERCENT,
    renderer: PageRasterizer | None = None,
) -> OperationResult:
    """Write a copy of a PDF without its blank pages.

    Fails without writing when every page is blank or none is.
    """
    try:
        blank = find_blank_pages(pdf_path, threshold_percent, renderer)
    except (OSError, pikepdf.PdfError, ValueError, DecodeError, DependencyError) as e:
        logger.error("Blank page analysis failed: %s", e)
        return _fail(e)

    if not blank:
        return OperationResult(success=False, message=_("No blank pages found"))
    return delete_pages(pdf_path, output_path, blank)
