"""
PdfToolkit - Numeric Constants

Simple numeric constants with ZERO internal imports to avoid circular dependencies.
For application-level constants (strings, paths), use config.py.
"""

from typing import Final

# ============================================================================
# Size Constants
# ============================================================================

BYTES_PER_MB: Final[int] = 1024 * 1024

# ============================================================================
# Page Geometry
# ============================================================================

VALID_ROTATIONS: Final[tuple[int, ...]] = (0, 90, 180, 270)
POINTS_PER_INCH: Final[int] = 72

# A4 in points, used when a page carries no usable MediaBox
DEFAULT_PAGE_SIZE: Final[tuple[float, float]] = (595.0, 842.0)

# ============================================================================
# Page Numbering
# ============================================================================

PAGE_NUMBER_MARGIN_PT: Final[float] = 24.0
DEFAULT_PAGE_NUMBER_FONT_SIZE: Final[float] = 12.0
MIN_FONT_SIZE: Final[float] = 4.0
MAX_FONT_SIZE: Final[float] = 72.0

# Helvetica ascent + |descent| per unit of font size
HELVETICA_HEIGHT_FACTOR: Final[float] = 0.925

# ============================================================================
# Image Dimension & Quality
# ============================================================================

MIN_IMAGE_DIMENSION_PX: Final[int] = 64
DEFAULT_JPEG_QUALITY: Final[int] = 85
DEFAULT_COMPRESS_QUALITY: Final[int] = 60
DEFAULT_COMPRESS_DPI: Final[int] = 150
DEFAULT_EXPORT_DPI: Final[int] = 144

# ============================================================================
# Blank Page Detection
# ============================================================================

# A pixel counts as content when any channel is below this value
BLANK_PIXEL_WHITE_LEVEL: Final[int] = 250
DEFAULT_BLANK_THRESHOLD_PERCENT: Final[float] = 5.0
SUBSTANTIAL_TEXT_MIN_CHARS: Final[int] = 20
SUBSTANTIAL_TEXT_MIN_RUNS: Final[int] = 3
BLANK_ANALYSIS_DPI: Final[int] = 72

# ============================================================================
# Subprocess Timeouts (seconds)
# ============================================================================

PDFTOPPM_PAGE_TIMEOUT_SECS: Final[int] = 30
PDFTOPPM_BATCH_TIMEOUT_SECS: Final[int] = 120
