"""
BMP decoding errors.
"""


class BmpError(Exception):
    """Base error for everything raised while loading a BMP."""
    pass


class TruncatedInput(BmpError, EOFError):
    """The byte source ran out in the middle of a read."""

    def __init__(self, requested, received, field=None):
        self.requested = requested
        self.received = received
        self.field = field
        what = f"'{field}'" if field else "data"
        super().__init__(
            f"Truncated input while reading {what}: "
            f"needed {requested} bytes, got {received}"
        )


class BmpFormatError(BmpError, ValueError):
    """The file is not a BMP this decoder supports."""

    def __init__(self, message, value=None):
        self.value = value
        super().__init__(message)


class RejectedMagic(BmpFormatError):
    pass


class RejectedHeaderSize(BmpFormatError):
    pass


class RejectedPixelFormat(BmpFormatError):
    pass


class RejectedCompression(BmpFormatError):
    pass


class RejectedDimensions(BmpFormatError):
    pass


class OutOfBounds(BmpError, IndexError):
    """Pixel accessor called with coordinates outside the image."""

    def __init__(self, x, y, width, height):
        self.x = x
        self.y = y
        self.width = width
        self.height = height
        super().__init__(
            f"Pixel ({x}, {y}) is outside the image "
            f"(valid x: 1..{width}, y: 1..{height})"
        )


class IOFailure(BmpError, OSError):
    """The byte source could not be opened."""
    pass
