"""
PdfToolkit - Format Utilities Module

This module provides shared utility functions for formatting values
and naming output files.
"""

import os


def format_file_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB")
    """
    if size_bytes <= 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB", "TB"]

    size = float(size_bytes)
    unit_index = 0

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    if unit_index == 0:  # Bytes - no decimals
        return f"{int(size)} {units[unit_index]}"
    elif size >= 100:
        return f"{int(size)} {units[unit_index]}"
    elif size >= 10:
        return f"{size:.1f} {units[unit_index]}"
    else:
        return f"{size:.2f} {units[unit_index]}"


def output_filename(
    original_name: str | None,
    transformation: str,
    part: int | None = None,
    ext: str = "pdf",
) -> str:
    """Build the download name for a transformed document.

    Args:
        original_name: Name of the source file (may be empty)
        transformation: Short tag such as "edited", "extracted" or "numbered"
        part: Optional part number for multi-file outputs
        ext: Output extension without the dot

    Returns:
        "<stem>_<transformation>[_part<n>].<ext>", or
        "output_<transformation>.<ext>" when there is no source name
    """
    if not original_name:
        return f"output_{transformation}.{ext}"

    stem = os.path.splitext(os.path.basename(original_name))[0]
    if part is not None:
        return f"{stem}_{transformation}_part{part}.{ext}"
    return f"{stem}_{transformation}.{ext}"
