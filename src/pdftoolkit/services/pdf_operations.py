"""
PdfToolkit - PDF Operations Service

Path-based, single-purpose PDF tools built on pikepdf. Every tool reads
its input file, writes a new output file and reports an OperationResult;
input files are never modified.

Supported operations:
  - Document info and metadata
  - Split by page count, page ranges or file size
  - Merge multiple PDFs
  - Extract / delete / duplicate pages
  - Rotate, reorder and reverse pages
  - Compress (re-encode images, compress streams)
"""

import io
import logging
import math
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path

import pikepdf
from PIL import Image

from pdftoolkit.constants import (
    BYTES_PER_MB,
    DEFAULT_COMPRESS_DPI,
    DEFAULT_COMPRESS_QUALITY,
    MIN_IMAGE_DIMENSION_PX,
    POINTS_PER_INCH,
    VALID_ROTATIONS,
)
from pdftoolkit.services.pdf_backend import page_dimensions, resolve_source_rotation
from pdftoolkit.utils.i18n import _

logger = logging.getLogger(__name__)

# docinfo keys editable through update_metadata
METADATA_FIELDS = {
    "title": "/Title",
    "author": "/Author",
    "subject": "/Subject",
    "keywords": "/Keywords",
    "creator": "/Creator",
    "producer": "/Producer",
}


class ErrorCode(Enum):
    """Error classification for PDF operations."""

    NONE = auto()
    FILE_NOT_FOUND = auto()
    PERMISSION_DENIED = auto()
    CORRUPT_PDF = auto()
    PASSWORD_PROTECTED = auto()
    DISK_FULL = auto()
    INVALID_ARGUMENT = auto()
    UNKNOWN = auto()


def _classify_error(e: Exception) -> ErrorCode:
    """Classify an exception into an ErrorCode."""
    if isinstance(e, FileNotFoundError):
        return ErrorCode.FILE_NOT_FOUND
    if isinstance(e, PermissionError):
        return ErrorCode.PERMISSION_DENIED
    if isinstance(e, pikepdf.PasswordError):
        return ErrorCode.PASSWORD_PROTECTED
    if isinstance(e, pikepdf.PdfError):
        return ErrorCode.CORRUPT_PDF
    if isinstance(e, OSError) and e.errno == 28:
        return ErrorCode.DISK_FULL
    if isinstance(e, ValueError):
        return ErrorCode.INVALID_ARGUMENT
    return ErrorCode.UNKNOWN


def _friendly_error(e: Exception) -> str:
    """Map common exceptions to messages a user can act on."""
    if isinstance(e, FileNotFoundError):
        return _("Could not find the file. Was it moved or deleted?")
    if isinstance(e, PermissionError):
        return _("Cannot write to this folder. Choose a different location.")
    if isinstance(e, pikepdf.PasswordError):
        return _("This PDF is password-protected. Remove the password first.")
    if isinstance(e, pikepdf.PdfError):
        return _("The PDF file appears to be damaged or invalid: {error}").format(error=e)
    if isinstance(e, OSError) and e.errno == 28:
        return _("Not enough disk space to save the file.")
    return str(e)


def _fail(e: Exception) -> "OperationResult":
    """Create a failed OperationResult from an exception."""
    return OperationResult(
        success=False,
        message=_friendly_error(e),
        error_code=_classify_error(e),
    )


def _invalid(message: str) -> "OperationResult":
    return OperationResult(
        success=False, message=message, error_code=ErrorCode.INVALID_ARGUMENT
    )


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class PDFInfo:
    """Basic information about a PDF file."""

    path: str
    page_count: int
    file_size_bytes: int
    title: str = ""
    author: str = ""
    creator: str = ""
    encrypted: bool = False
    pdf_version: str = ""
    page_sizes: list[tuple[float, float]] = field(default_factory=list)
    rotations: list[int] = field(default_factory=list)

    @property
    def file_size_mb(self) -> float:
        return self.file_size_bytes / BYTES_PER_MB


@dataclass
class SplitResult:
    """Result of a split operation."""

    output_files: list[str] = field(default_factory=list)
    total_pages: int = 0
    parts: int = 0


@dataclass
class OperationResult:
    """Generic result for PDF operations."""

    success: bool
    message: str = ""
    output_path: str = ""
    pages_affected: int = 0
    error_code: ErrorCode = ErrorCode.NONE


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _prepare_output(output_path: str | Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    return output_path


def _write_pages(src: pikepdf.Pdf, indices: Iterable[int], output_path: str | Path) -> int:
    """Copy the given 0-based pages of src, in order, into a new file.

    Pages are copied with their resolved rotation so that a /Rotate
    inherited from the source page tree survives the copy.

    Returns:
        Number of pages written
    """
    written = 0
    with pikepdf.Pdf.new() as dst:
        for index in indices:
            source_page = src.pages[index]
            dst.pages.append(source_page)
            dst.pages[-1].Rotate = resolve_source_rotation(source_page)
            written += 1
        dst.save(str(output_path))
    return written


def _valid_page_numbers(pages: Iterable[int], total: int) -> list[int]:
    """Keep 1-based page numbers that exist in a document of total pages."""
    return [p for p in pages if 1 <= p <= total]


# ---------------------------------------------------------------------------
# Info / Inspection
# ---------------------------------------------------------------------------


def get_pdf_info(pdf_path: str | Path) -> PDFInfo:
    """Get basic information about a PDF file.

    Args:
        pdf_path: Path to the PDF file.

    Returns:
        PDFInfo with metadata.

    Raises:
        FileNotFoundError: If the file does not exist.
        pikepdf.PdfError: If the file is not a valid PDF.
    """
    pdf_path = str(pdf_path)
    if not os.path.isfile(pdf_path):
        raise FileNotFoundError(f"File not found: {pdf_path}")

    with pikepdf.open(pdf_path) as pdf:
        metadata = _docinfo_fields(pdf)
        info = PDFInfo(
            path=pdf_path,
            page_count=len(pdf.pages),
            file_size_bytes=os.path.getsize(pdf_path),
            title=metadata["title"],
            author=metadata["author"],
            creator=metadata["creator"],
            encrypted=pdf.is_encrypted,
            pdf_version=str(pdf.pdf_version),
            page_sizes=[page_dimensions(page) for page in pdf.pages],
            rotations=[resolve_source_rotation(page) for page in pdf.pages],
        )

    return info


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


def _docinfo_fields(pdf: pikepdf.Pdf) -> dict[str, str]:
    docinfo = pdf.docinfo
    return {
        name: str(docinfo[key]) if key in docinfo else ""
        for name, key in METADATA_FIELDS.items()
    }


def read_metadata(pdf_path: str | Path) -> dict[str, str]:
    """Read the document information fields of a PDF.

    Returns:
        Mapping of title, author, subject, keywords, creator and producer
        (empty string when a field is not set).
    """
    with pikepdf.open(pdf_path) as pdf:
        return _docinfo_fields(pdf)


def update_metadata(
    pdf_path: str | Path,
    output_path: str | Path,
    **fields: str | None,
) -> OperationResult:
    """Write a copy of a PDF with updated document information.

    Args:
        pdf_path: Source PDF path.
        output_path: Output PDF path.
        **fields: title, author, subject, keywords, creator, producer.
            An empty string or None removes the field.

    Returns:
        OperationResult; pages_affected is the number of fields changed.
    """
    unknown = set(fields) - set(METADATA_FIELDS)
    if unknown:
        return _invalid(_("Unknown metadata fields: {fields}").format(fields=", ".join(sorted(unknown))))

    output_path = _prepare_output(output_path)
    try:
        with pikepdf.open(pdf_path) as pdf:
            docinfo = pdf.docinfo
            for name, value in fields.items():
                key = METADATA_FIELDS[name]
                if value:
                    docinfo[key] = value
                elif key in docinfo:
                    del docinfo[key]
            pdf.save(str(output_path))

        logger.info("Updated %d metadata field(s) → %s", len(fields), output_path)
        return OperationResult(
            success=True,
            message=_("Updated {count} metadata fields").format(count=len(fields)),
            output_path=str(output_path),
            pages_affected=len(fields),
        )
    except (OSError, pikepdf.PdfError, ValueError) as e:
        logger.error("Metadata update failed: %s", e)
        return _fail(e)


# ---------------------------------------------------------------------------
# Split
# ---------------------------------------------------------------------------


def split_by_pages(
    pdf_path: str | Path,
    output_dir: str | Path,
    pages_per_file: int,
    *,
    prefix: str = "",
) -> SplitResult:
    """Split a PDF into files of at most pages_per_file pages each.

    Args:
        pdf_path: Path to the source PDF.
        output_dir: Directory where output files will be created.
        pages_per_file: Maximum number of pages per output file.
        prefix: Optional filename prefix (default: source filename stem).

    Returns:
        SplitResult with the list of created files.

    Raises:
        ValueError: If pages_per_file < 1
    """
    if pages_per_file < 1:
        raise ValueError("pages_per_file must be >= 1")

    pdf_path = Path(pdf_path)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    prefix = prefix or pdf_path.stem

    result = SplitResult()
    with pikepdf.open(pdf_path) as src:
        total = len(src.pages)
        result.total_pages = total
        result.parts = math.ceil(total / pages_per_file)

        for part in range(result.parts):
            start = part * pages_per_file
            end = min(start + pages_per_file, total)
            out_path = output_dir / f"{prefix}_part{part + 1:03d}.pdf"
            _write_pages(src, range(start, end), out_path)
            result.output_files.append(str(out_path))
            logger.info(
                "Split part %d/%d: pages %d-%d → %s",
                part + 1,
                result.parts,
                start + 1,
                end,
                out_path.name,
            )

    return result


def split_by_ranges(
    pdf_path: str | Path,
    output_dir: str | Path,
    ranges: list[tuple[int, int]],
    *,
    prefix: str = "",
) -> SplitResult:
    """Split a PDF into one file per page range.

    Args:
        pdf_path: Path to the source PDF.
        output_dir: Directory for output files.
        ranges: (start, end) tuples, 1-based and inclusive. Ranges outside
            the document are skipped; ends past the last page are clamped.
        prefix: Optional filename prefix.

    Returns:
        SplitResult with created files.
    """
    pdf_path = Path(pdf_path)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    prefix = prefix or pdf_path.stem

    result = SplitResult()
    with pikepdf.open(pdf_path) as src:
        total = len(src.pages)
        result.total_pages = total

        for start, end in ranges:
            first = max(0, start - 1)
            stop = min(end, total)
            if first >= stop:
                logger.warning("Skipping invalid range (%d, %d)", start, end)
                continue

            out_path = output_dir / f"{prefix}_pages{first + 1}-{stop}.pdf"
            _write_pages(src, range(first, stop), out_path)
            result.output_files.append(str(out_path))
            result.parts += 1
            logger.info("Extracted pages %d-%d → %s", first + 1, stop, out_path.name)

    return result


def _single_page_size(src: pikepdf.Pdf, index: int) -> int:
    with pikepdf.Pdf.new() as single:
        single.pages.append(src.pages[index])
        buffer = io.BytesIO()
        single.save(buffer)
        return buffer.tell()


def split_by_size(
    pdf_path: str | Path,
    output_dir: str | Path,
    max_size_mb: float,
    *,
    prefix: str = "",
) -> SplitResult:
    """Split a PDF so each part stays under max_size_mb where possible.

    Pages are added greedily; a part is closed as soon as the next page
    would push its estimated size over the limit. A single page larger
    than the limit gets a part of its own.

    Args:
        pdf_path: Path to the source PDF.
        output_dir: Directory for output files.
        max_size_mb: Maximum file size per part in megabytes.
        prefix: Optional filename prefix.

    Returns:
        SplitResult with created files.

    Raises:
        ValueError: If max_size_mb <= 0
    """
    if max_size_mb <= 0:
        raise ValueError("max_size_mb must be > 0")

    pdf_path = Path(pdf_path)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    prefix = prefix or pdf_path.stem
    max_bytes = int(max_size_mb * BYTES_PER_MB)

    result = SplitResult()
    with pikepdf.open(pdf_path) as src:
        total = len(src.pages)
        result.total_pages = total

        # Standalone page sizes overestimate a combined part (shared fonts
        # and images are counted once per page), so parts err on the small side
        sizes = [_single_page_size(src, i) for i in range(total)]

        groups: list[list[int]] = []
        current: list[int] = []
        current_size = 0
        for index, size in enumerate(sizes):
            if current and current_size + size > max_bytes:
                groups.append(current)
                current, current_size = [], 0
            current.append(index)
            current_size += size
        if current:
            groups.append(current)

        for part, group in enumerate(groups, 1):
            out_path = output_dir / f"{prefix}_part{part:03d}.pdf"
            _write_pages(src, group, out_path)
            result.output_files.append(str(out_path))
            logger.info(
                "Split part %d: %d pages, %.2f MB → %s",
                part,
                len(group),
                os.path.getsize(out_path) / BYTES_PER_MB,
                out_path.name,
            )
        result.parts = len(groups)

    return result


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge_pdfs(
    input_paths: list[str | Path],
    output_path: str | Path,
) -> OperationResult:
    """Merge multiple PDF files into one, in the given order.

    Missing files are skipped with a warning.

    Args:
        input_paths: PDF file paths to merge.
        output_path: Path for the merged output PDF.

    Returns:
        OperationResult.
    """
    if not input_paths:
        return _invalid(_("No input files provided."))

    output_path = _prepare_output(output_path)
    open_sources: list[pikepdf.Pdf] = []
    merged_files = 0
    total_pages = 0

    try:
        with pikepdf.Pdf.new() as dst:
            for path in map(Path, input_paths):
                if not path.is_file():
                    logger.warning("Skipping missing file: %s", path)
                    continue

                src = pikepdf.open(path)
                open_sources.append(src)
                for page in src.pages:
                    dst.pages.append(page)
                    dst.pages[-1].Rotate = resolve_source_rotation(page)
                merged_files += 1
                total_pages += len(src.pages)
                logger.info("Merged %d pages from %s", len(src.pages), path.name)

            if merged_files == 0:
                return _fail(FileNotFoundError("No input file exists"))

            dst.save(str(output_path))

        logger.info("Merged PDF saved: %s (%d pages)", output_path, total_pages)
        return OperationResult(
            success=True,
            message=_("Merged {files} files into {pages} pages").format(
                files=merged_files, pages=total_pages
            ),
            output_path=str(output_path),
            pages_affected=total_pages,
        )
    except (OSError, pikepdf.PdfError, ValueError) as e:
        logger.error("Merge failed: %s", e)
        return _fail(e)
    finally:
        for src in open_sources:
            src.close()


# ---------------------------------------------------------------------------
# Extract / delete / duplicate pages
# ---------------------------------------------------------------------------


def extract_pages(
    pdf_path: str | Path,
    output_path: str | Path,
    pages: list[int],
) -> OperationResult:
    """Copy the listed pages, in the listed order, into a new PDF.

    Args:
        pdf_path: Source PDF path.
        output_path: Output PDF path.
        pages: 1-based page numbers; numbers outside the document are ignored.

    Returns:
        OperationResult.
    """
    output_path = _prepare_output(output_path)
    try:
        with pikepdf.open(pdf_path) as src:
            total = len(src.pages)
            valid = _valid_page_numbers(pages, total)
            if not valid:
                return _invalid(
                    _("No valid pages in {pages} (document has {total} pages)").format(
                        pages=pages, total=total
                    )
                )

            _write_pages(src, (p - 1 for p in valid), output_path)

        logger.info("Extracted pages %s → %s", valid, output_path)
        return OperationResult(
            success=True,
            message=_("Extracted {count} pages").format(count=len(valid)),
            output_path=str(output_path),
            pages_affected=len(valid),
        )
    except (OSError, pikepdf.PdfError, ValueError) as e:
        logger.error("Extract failed: %s", e)
        return _fail(e)


def delete_pages(
    pdf_path: str | Path,
    output_path: str | Path,
    pages: list[int],
) -> OperationResult:
    """Write a copy of a PDF without the listed pages.

    Refuses to remove every page.

    Args:
        pdf_path: Source PDF path.
        output_path: Output PDF path.
        pages: 1-based page numbers to remove.

    Returns:
        OperationResult; pages_affected is the number of removed pages.
    """
    output_path = _prepare_output(output_path)
    try:
        with pikepdf.open(pdf_path) as src:
            total = len(src.pages)
            doomed = set(_valid_page_numbers(pages, total))
            if not doomed:
                return _invalid(
                    _("No valid pages to delete (document has {total} pages)").format(total=total)
                )
            if len(doomed) >= total:
                return _invalid(_("Cannot delete all pages from the document"))

            kept = _write_pages(
                src, (i for i in range(total) if i + 1 not in doomed), output_path
            )

        logger.info("Deleted pages %s, kept %d pages → %s", sorted(doomed), kept, output_path)
        return OperationResult(
            success=True,
            message=_("Deleted {deleted} pages, {kept} remaining").format(
                deleted=len(doomed), kept=kept
            ),
            output_path=str(output_path),
            pages_affected=len(doomed),
        )
    except (OSError, pikepdf.PdfError, ValueError) as e:
        logger.error("Delete pages failed: %s", e)
        return _fail(e)


def duplicate_pages(
    pdf_path: str | Path,
    output_path: str | Path,
    counts: dict[int, int],
) -> OperationResult:
    """Insert copies of pages right after the page they copy.

    Args:
        pdf_path: Source PDF path.
        output_path: Output PDF path.
        counts: Mapping of 1-based page number to the number of extra
            copies to insert after it.

    Returns:
        OperationResult; pages_affected is the number of copies added.
    """
    if any(count < 0 for count in counts.values()):
        return _invalid(_("Copy counts must not be negative"))

    output_path = _prepare_output(output_path)
    try:
        with pikepdf.open(pdf_path) as src:
            total = len(src.pages)
            valid = {p: c for p, c in counts.items() if 1 <= p <= total and c > 0}
            if not valid:
                return _invalid(
                    _("No valid pages to duplicate (document has {total} pages)").format(total=total)
                )

            order: list[int] = []
            for index in range(total):
                order.extend([index] * (1 + valid.get(index + 1, 0)))
            written = _write_pages(src, order, output_path)

        added = written - total
        logger.info("Duplicated %d page(s), %d copies added → %s", len(valid), added, output_path)
        return OperationResult(
            success=True,
            message=_("Added {added} copies, {total} pages in total").format(
                added=added, total=written
            ),
            output_path=str(output_path),
            pages_affected=added,
        )
    except (OSError, pikepdf.PdfError, ValueError) as e:
        logger.error("Duplicate pages failed: %s", e)
        return _fail(e)


# ---------------------------------------------------------------------------
# Rotate / reorder / reverse
# ---------------------------------------------------------------------------


def rotate_pages(
    pdf_path: str | Path,
    output_path: str | Path,
    pages: list[int],
    angle: int,
) -> OperationResult:
    """Rotate the listed pages clockwise by angle.

    Args:
        pdf_path: Source PDF path.
        output_path: Output PDF path.
        pages: 1-based page numbers to rotate.
        angle: Rotation in degrees; a multiple of 90 (negative is counter-clockwise).

    Returns:
        OperationResult.
    """
    angle %= 360
    if angle not in VALID_ROTATIONS:
        return _invalid(_("Invalid angle: {angle}").format(angle=angle))

    output_path = _prepare_output(output_path)
    try:
        with pikepdf.open(pdf_path) as pdf:
            total = len(pdf.pages)
            targets = set(_valid_page_numbers(pages, total))
            if not targets:
                return _invalid(
                    _("No valid pages to rotate (document has {total} pages)").format(total=total)
                )

            for number in targets:
                page = pdf.pages[number - 1]
                page.Rotate = (resolve_source_rotation(page) + angle) % 360
            pdf.save(str(output_path))

        logger.info("Rotated %d pages by %d° → %s", len(targets), angle, output_path)
        return OperationResult(
            success=True,
            message=_("Rotated {count} pages by {angle}°").format(count=len(targets), angle=angle),
            output_path=str(output_path),
            pages_affected=len(targets),
        )
    except (OSError, pikepdf.PdfError, ValueError) as e:
        logger.error("Rotate failed: %s", e)
        return _fail(e)


def reorder_pages(
    pdf_path: str | Path,
    output_path: str | Path,
    new_order: list[int],
) -> OperationResult:
    """Write the pages in a new order.

    Args:
        pdf_path: Source PDF path.
        output_path: Output PDF path.
        new_order: 1-based page numbers in the desired order. Must name
            every page exactly once.

    Returns:
        OperationResult.
    """
    output_path = _prepare_output(output_path)
    try:
        with pikepdf.open(pdf_path) as src:
            total = len(src.pages)
            if sorted(new_order) != list(range(1, total + 1)):
                return _invalid(
                    _("The new order must list each of the {total} pages exactly once").format(
                        total=total
                    )
                )

            _write_pages(src, (p - 1 for p in new_order), output_path)

        logger.info("Reordered %d pages → %s", total, output_path)
        return OperationResult(
            success=True,
            message=_("Reordered {count} pages").format(count=total),
            output_path=str(output_path),
            pages_affected=total,
        )
    except (OSError, pikepdf.PdfError, ValueError) as e:
        logger.error("Reorder failed: %s", e)
        return _fail(e)


def reverse_pages(
    pdf_path: str | Path,
    output_path: str | Path,
) -> OperationResult:
    """Reverse the page order of a PDF."""
    try:
        with pikepdf.open(pdf_path) as src:
            total = len(src.pages)
    except (OSError, pikepdf.PdfError, ValueError) as e:
        logger.error("Reverse failed: %s", e)
        return _fail(e)
    return reorder_pages(pdf_path, output_path, list(range(total, 0, -1)))


# ---------------------------------------------------------------------------
# Compress
# ---------------------------------------------------------------------------


def compress_pdf(
    pdf_path: str | Path,
    output_path: str | Path,
    *,
    image_quality: int = DEFAULT_COMPRESS_QUALITY,
    image_dpi: int = DEFAULT_COMPRESS_DPI,
) -> OperationResult:
    """Compress a PDF by re-encoding its images and compressing streams.

    Args:
        pdf_path: Source PDF path.
        output_path: Output PDF path.
        image_quality: JPEG quality for re-encoded images (1-95).
        image_dpi: Images above this effective resolution are downsampled.

    Returns:
        OperationResult; pages_affected is the number of re-encoded images.
    """
    if not 1 <= image_quality <= 95:
        return _invalid(_("Image quality must be between 1 and 95"))

    output_path = _prepare_output(output_path)
    try:
        original_size = os.path.getsize(pdf_path)
        with pikepdf.open(pdf_path) as pdf:
            seen: set = set()
            images = sum(
                _compress_page_images(pdf, page, image_quality, image_dpi, seen)
                for page in pdf.pages
            )
            pdf.remove_unreferenced_resources()
            pdf.save(
                str(output_path),
                compress_streams=True,
                object_stream_mode=pikepdf.ObjectStreamMode.generate,
            )

        new_size = os.path.getsize(output_path)
        reduction = (1 - new_size / original_size) * 100 if original_size else 0.0
        logger.info(
            "Compressed: %.2f MB → %.2f MB (%.1f%% reduction, %d images re-encoded)",
            original_size / BYTES_PER_MB,
            new_size / BYTES_PER_MB,
            reduction,
            images,
        )
        return OperationResult(
            success=True,
            message=_("Compressed {before:.2f} MB → {after:.2f} MB ({ratio:.1f}% reduction)").format(
                before=original_size / BYTES_PER_MB,
                after=new_size / BYTES_PER_MB,
                ratio=reduction,
            ),
            output_path=str(output_path),
            pages_affected=images,
        )
    except (OSError, pikepdf.PdfError, ValueError) as e:
        logger.error("Compress failed: %s", e)
        return _fail(e)


def _effective_dpi(page: pikepdf.Page, width_px: int, height_px: int) -> float:
    width_pt, height_pt = page_dimensions(page)
    return max(
        width_px / (width_pt / POINTS_PER_INCH),
        height_px / (height_pt / POINTS_PER_INCH),
    )


def _compress_page_images(
    pdf: pikepdf.Pdf,
    page: pikepdf.Page,
    quality: int,
    target_dpi: int,
    seen: set,
) -> int:
    """Re-encode the image XObjects of one page as JPEG.

    Args:
        seen: objgen tuples already handled; shared images are visited once.

    Returns:
        Number of images replaced.
    """
    try:
        xobjects = page.get("/Resources", {}).get("/XObject", {})
    except (AttributeError, TypeError):
        return 0

    count = 0
    for key in list(xobjects.keys()):
        try:
            obj = xobjects[key]
            if not isinstance(obj, pikepdf.Stream) or obj.get("/Subtype") != pikepdf.Name.Image:
                continue
            if obj.objgen in seen:
                continue
            seen.add(obj.objgen)

            width = int(obj.get("/Width", 0))
            height = int(obj.get("/Height", 0))
            if width < MIN_IMAGE_DIMENSION_PX or height < MIN_IMAGE_DIMENSION_PX:
                continue

            image = pikepdf.PdfImage(obj).as_pil_image()
            original_size = len(obj.read_raw_bytes())

            current_dpi = _effective_dpi(page, width, height)
            if current_dpi > target_dpi * 1.2:
                scale = target_dpi / current_dpi
                image = image.resize(
                    (
                        max(MIN_IMAGE_DIMENSION_PX, int(width * scale)),
                        max(MIN_IMAGE_DIMENSION_PX, int(height * scale)),
                    ),
                    Image.LANCZOS,
                )

            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")

            buffer = io.BytesIO()
            image.save(buffer, format="JPEG", quality=quality, optimize=True)
            jpeg_data = buffer.getvalue()

            # Keep the original unless re-encoding saves at least 10%
            if len(jpeg_data) >= original_size * 0.90:
                continue

            replacement = pikepdf.Stream(pdf, jpeg_data)
            replacement["/Type"] = pikepdf.Name.XObject
            replacement["/Subtype"] = pikepdf.Name.Image
            replacement["/Width"] = image.width
            replacement["/Height"] = image.height
            replacement["/ColorSpace"] = (
                pikepdf.Name.DeviceGray if image.mode == "L" else pikepdf.Name.DeviceRGB
            )
            replacement["/BitsPerComponent"] = 8
            replacement["/Filter"] = pikepdf.Name.DCTDecode
            xobjects[key] = replacement
            count += 1
        except (pikepdf.PdfError, OSError, ValueError, NotImplementedError) as e:
            logger.debug("Skipping image %s: %s", key, e)

    return count
