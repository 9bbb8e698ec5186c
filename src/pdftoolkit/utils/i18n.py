"""
PdfToolkit - Internationalization Module

This module initializes gettext for user-facing messages.
"""

import gettext
import os
import sys
from collections.abc import Callable

from pdftoolkit.config import GETTEXT_DOMAIN


def _dummy_translate(text: str) -> str:
    """Fallback translation function that returns the original text.

    Args:
        text: The text to translate.

    Returns:
        The original text unchanged.
    """
    return text


# Initialize _ with the fallback function
_: Callable[[str], str] = _dummy_translate

# Configure gettext. The library never changes the process locale; that is
# the embedding application's call.
try:
    locale_dirs = [
        "/usr/share/locale",
        os.path.join(sys.prefix, "share", "locale"),
        os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "locale"),
    ]

    for locale_dir in locale_dirs:
        if os.path.exists(locale_dir):
            gettext.bindtextdomain(GETTEXT_DOMAIN, locale_dir)

    _translation = gettext.translation(GETTEXT_DOMAIN, fallback=True)
    _ = _translation.gettext

except OSError:
    # Keep using the dummy function if the catalogs cannot be read
    pass


def N_(text: str) -> str:
    """Mark a string for extraction without translating it at definition time.

    Use this for strings that are defined as constants but translated later
    via ``_()``.
    """
    return text
