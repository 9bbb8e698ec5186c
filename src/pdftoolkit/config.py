"""
PdfToolkit - Configuration Module

This module contains all configuration constants used by the toolkit.
"""

import logging
import os
from typing import Final

# ============================================================================
# Application Constants
# ============================================================================

APP_NAME: Final[str] = "PDF Toolkit"
APP_ID: Final[str] = "pdftoolkit"
APP_VERSION: Final[str] = "1.0.0"
GETTEXT_DOMAIN: Final[str] = "pdftoolkit"


# ============================================================================
# Edit Session
# ============================================================================

# Capacity of each of the undo and redo stacks
HISTORY_LIMIT: Final[int] = 20

DEFAULT_DOCUMENT_NAME: Final[str] = "document.pdf"

# Prefix for working page identifiers ("p-1", "p-2", ...)
PAGE_ID_PREFIX: Final[str] = "p-"


# ============================================================================
# Thumbnails
# ============================================================================

DEFAULT_THUMBNAIL_SCALE: Final[float] = 0.2
THUMBNAIL_CACHE_SIZE: Final[int] = 200
THUMBNAIL_WORKERS: Final[int] = 4
PDFTOPPM_BINARY: Final[str] = "pdftoppm"


# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: int = logging.DEBUG if os.environ.get("PDFTOOLKIT_DEBUG") else logging.INFO
LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOGGER_NAME: Final[str] = "PdfToolkit"
