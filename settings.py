"""
Settings for the BMP viewer and decoder.

Values can be overridden through environment variables where noted.
"""

import os

# =============================================================================
# LOGGING
# =============================================================================
LOG_LEVEL = os.getenv("BMP_LOG_LEVEL", "INFO")

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | <level>{message}</level>"
)

# =============================================================================
# BMP FORMAT
# =============================================================================
# "BM" read as a little-endian uint16
BMP_MAGIC = 0x4D42

FILE_HEADER_SIZE = 14
MIN_DIB_HEADER_SIZE = 40

# File header + the 40-byte BITMAPINFOHEADER subset we actually read
PIXEL_DATA_MIN_OFFSET = FILE_HEADER_SIZE + MIN_DIB_HEADER_SIZE

SUPPORTED_BPP = (24, 32)
BI_RGB = 0

# Alpha used for 24-bit images
OPAQUE_ALPHA = 255

# =============================================================================
# DEBUG CHECKS
# =============================================================================
# Write-once / no-early-read bookkeeping on the pixel buffer.
# Defaults to on unless Python runs with -O.
CHECK_PIXEL_INVARIANTS = os.getenv(
    "BMP_CHECK_INVARIANTS", "1" if __debug__ else "0"
) not in ("0", "false", "no", "")

# =============================================================================
# VIEWER
# =============================================================================
VIEWER_WIDTH = int(os.getenv("BMP_VIEWER_WIDTH", "700"))
VIEWER_HEIGHT = int(os.getenv("BMP_VIEWER_HEIGHT", "400"))
