"""
PdfToolkit - Image Conversion Service

Converts between images and PDF pages: image files become one page each
(Pillow), and PDF pages are rasterized to image files (pdftoppm).
"""

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from pdftoolkit.config import PDFTOPPM_BINARY
from pdftoolkit.constants import (
    DEFAULT_EXPORT_DPI,
    DEFAULT_JPEG_QUALITY,
    PDFTOPPM_BATCH_TIMEOUT_SECS,
    POINTS_PER_INCH,
)
from pdftoolkit.services.pdf_operations import (
    ErrorCode,
    OperationResult,
    _fail,
    _invalid,
    _prepare_output,
)
from pdftoolkit.utils.exceptions import DependencyError
from pdftoolkit.utils.i18n import _

logger = logging.getLogger(__name__)

# pdftoppm output flag and file extension per format
IMAGE_FORMATS = {
    "jpeg": ("-jpeg", "jpg"),
    "png": ("-png", "png"),
}


def _load_page_image(path: Path) -> Image.Image:
    """Open an image upright (EXIF orientation applied) and in a PDF-friendly mode."""
    with Image.open(path) as img:
        img.load()
        image = ImageOps.exif_transpose(img)

    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode not in ("RGB", "L"):
        return image.convert("RGB")
    return image


def images_to_pdf(
    image_paths: list[str | Path],
    output_path: str | Path,
    *,
    dpi: int = POINTS_PER_INCH,
) -> OperationResult:
    """Build a PDF with one page per image, in the given order.

    Transparent areas are flattened onto white. At the default resolution
    one pixel becomes one point.

    Args:
        image_paths: Image files to convert.
        output_path: Output PDF path.
        dpi: Resolution recorded in the PDF, which sets the page size.

    Returns:
        OperationResult.
    """
    if not image_paths:
        return _invalid(_("No input files provided."))

    output_path = _prepare_output(output_path)
    pages: list[Image.Image] = []
    try:
        for path in map(Path, image_paths):
            pages.append(_load_page_image(path))
            logger.debug("Loaded image %s (%dx%d)", path.name, *pages[-1].size)

        first, rest = pages[0], pages[1:]
        first.save(
            str(output_path),
            format="PDF",
            save_all=True,
            append_images=rest,
            resolution=float(dpi),
        )

        logger.info("Converted %d images → %s", len(pages), output_path)
        return OperationResult(
            success=True,
            message=_("Converted {count} images to PDF").format(count=len(pages)),
            output_path=str(output_path),
            pages_affected=len(pages),
        )
    except UnidentifiedImageError as e:
        logger.error("Image conversion failed: %s", e)
        return OperationResult(
            success=False,
            message=_("Unsupported or damaged image: {error}").format(error=e),
            error_code=ErrorCode.INVALID_ARGUMENT,
        )
    except (OSError, ValueError) as e:
        logger.error("Image conversion failed: %s", e)
        return _fail(e)
    finally:
        for page in pages:
            page.close()


def require_pdftoppm() -> str:
    """Locate the pdftoppm binary.

    Raises:
        DependencyError: If pdftoppm is not installed
    """
    binary = shutil.which(PDFTOPPM_BINARY)
    if binary is None:
        raise DependencyError("pdftoppm", hint=_("Install poppler-utils"))
    return binary


def pdf_to_images(
    pdf_path: str | Path,
    output_dir: str | Path,
    *,
    dpi: int = DEFAULT_EXPORT_DPI,
    fmt: str = "jpeg",
    quality: int = DEFAULT_JPEG_QUALITY,
    prefix: str = "",
) -> list[str]:
    """Rasterize every page of a PDF into image files.

    Files are named "<prefix>_page<NNN>.<ext>" in page order.

    Args:
        pdf_path: Source PDF path.
        output_dir: Directory for the images.
        dpi: Render resolution.
        fmt: "jpeg" or "png".
        quality: JPEG quality (ignored for PNG).
        prefix: Filename prefix (default: source filename stem).

    Returns:
        Paths of the created images.

    Raises:
        ValueError: If fmt is unknown or dpi is not positive
        DependencyError: If pdftoppm is not installed
        FileNotFoundError: If pdf_path does not exist
        RuntimeError: If pdftoppm fails
    """
    if fmt not in IMAGE_FORMATS:
        raise ValueError(f"Unsupported image format: {fmt}")
    if dpi <= 0:
        raise ValueError("dpi must be > 0")

    pdf_path = Path(pdf_path)
    if not pdf_path.is_file():
        raise FileNotFoundError(f"File not found: {pdf_path}")

    binary = require_pdftoppm()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    prefix = prefix or pdf_path.stem
    flag, ext = IMAGE_FORMATS[fmt]

    cmd = [binary, flag, "-r", str(dpi)]
    if fmt == "jpeg":
        cmd += ["-jpegopt", f"quality={quality}"]

    with tempfile.TemporaryDirectory() as tmpdir:
        cmd += [str(pdf_path), str(Path(tmpdir) / "p")]
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=PDFTOPPM_BATCH_TIMEOUT_SECS
            )
        except subprocess.TimeoutExpired as e:
            raise RuntimeError(f"pdftoppm timed out after {e.timeout}s") from e
        if result.returncode != 0:
            raise RuntimeError(f"pdftoppm failed: {result.stderr.strip()}")

        # pdftoppm pads page numbers to the width of the page count
        rendered = sorted(Path(tmpdir).glob(f"p-*.{ext}"), key=lambda p: int(p.stem.split("-")[-1]))
        outputs = []
        for number, image in enumerate(rendered, 1):
            target = output_dir / f"{prefix}_page{number:03d}.{ext}"
            shutil.move(str(image), target)
            outputs.append(str(target))

    logger.info("Rendered %d pages at %d dpi → %s", len(outputs), dpi, output_dir)
    return outputs
