from dataclasses import dataclass, fields
from enum import Enum

from loguru import logger

from byte_reader import ByteReader
from errors import (
    BmpFormatError,
    OutOfBounds,
    RejectedCompression,
    RejectedDimensions,
    RejectedHeaderSize,
    RejectedMagic,
    RejectedPixelFormat,
    TruncatedInput,
)
from settings import (
    BI_RGB,
    BMP_MAGIC,
    CHECK_PIXEL_INVARIANTS,
    MIN_DIB_HEADER_SIZE,
    OPAQUE_ALPHA,
    PIXEL_DATA_MIN_OFFSET,
    SUPPORTED_BPP,
)


def padded_row_size(bpp, width):
    # Each row is padded to a multiple of 4 bytes
    return ((bpp * width + 31) // 32) * 4


@dataclass(frozen=True)
class BMPHeaderInfo:
    """File header plus the 40-byte BITMAPINFOHEADER subset."""

    magic: int
    file_size: int
    reserved: int
    data_offset: int
    header_size: int
    width: int
    height: int
    planes: int
    bpp: int
    compression: int
    image_size: int
    x_pixels_per_meter: int
    y_pixels_per_meter: int
    colors_used: int
    important_colors: int

    @property
    def top_down(self):
        # Negative height means the first stored row is the top one
        return self.height < 0

    @property
    def row_count(self):
        return abs(self.height)

    @property
    def bytes_per_pixel(self):
        return self.bpp // 8

    def as_metadata(self):
        meta = {f.name: getattr(self, f.name) for f in fields(self)}
        meta["top_down"] = self.top_down
        return meta


class PixelBuffer:
    """Flat RGBA storage, row-major, row 0 is the bottom scanline.

    With invariant checks on, every slot must be filled exactly once by
    put() and nothing may be read until all slots are filled.
    """

    def __init__(self, width, height, check_invariants=CHECK_PIXEL_INVARIANTS):
        self.width = width
        self.height = height
        self.data = bytearray(width * height * 4)
        self._filled = 0
        self._written = bytearray(width * height) if check_invariants else None

    def __len__(self):
        return len(self.data)

    @property
    def complete(self):
        return self._filled == self.width * self.height

    def _index(self, col, row):
        return row * self.width + col

    def put(self, col, row, rgba):
        index = self._index(col, row)
        if self._written is not None:
            assert not self._written[index], f"pixel slot ({col}, {row}) written twice"
            self._written[index] = 1
        self._filled += 1
        self.data[index * 4:index * 4 + 4] = bytes(rgba)

    def get(self, col, row):
        if self._written is not None:
            assert self.complete, "pixel buffer read before every slot was written"
        start = self._index(col, row) * 4
        return tuple(self.data[start:start + 4])

    def overwrite(self, col, row, rgba):
        start = self._index(col, row) * 4
        self.data[start:start + 4] = bytes(rgba)


class DecodedImage:
    """A decoded BMP: header geometry plus its RGBA pixels.

    Pixel coordinates are 1-based, x from the left, y from the bottom
    (y=1 is the bottom row, matching bottom-up storage).
    """

    def __init__(self, header, pixels):
        self.header = header
        self._pixels = pixels

    @property
    def metadata(self):
        return self.header.as_metadata()

    def width(self):
        return self._pixels.width

    def height(self):
        return self._pixels.height

    def _check_bounds(self, x, y):
        in_range = (
            isinstance(x, int) and isinstance(y, int)
            and 1 <= x <= self.width() and 1 <= y <= self.height()
        )
        if not in_range:
            raise OutOfBounds(x, y, self.width(), self.height())

    def get_pixel(self, x, y):
        self._check_bounds(x, y)
        return self._pixels.get(x - 1, y - 1)

    def set_pixel(self, x, y, r, g, b, a):
        self._check_bounds(x, y)
        for name, value in (("r", r), ("g", g), ("b", b), ("a", a)):
            if not isinstance(value, int) or not 0 <= value <= 255:
                raise ValueError(f"Channel {name} out of range 0..255: {value}")
        self._pixels.overwrite(x - 1, y - 1, (r, g, b, a))

    def rows(self):
        # Top row first, for hosts that paint top-down
        for y in range(self.height(), 0, -1):
            yield [self.get_pixel(x, y) for x in range(1, self.width() + 1)]

    def to_bytes(self):
        # Bottom row first, 4 bytes per pixel
        return bytes(self._pixels.data)


class DecodeState(Enum):
    START = "start"
    FILE_HEADER_READ = "file_header_read"
    INFO_HEADER_READ = "info_header_read"
    VALIDATED = "validated"
    PIXEL_DATA_DECODED = "pixel_data_decoded"
    CLOSED = "closed"
    REJECTED_MAGIC = "rejected_magic"
    REJECTED_HEADER_SIZE = "rejected_header_size"
    REJECTED_PIXEL_FORMAT = "rejected_pixel_format"
    REJECTED_COMPRESSION = "rejected_compression"
    REJECTED_DIMENSIONS = "rejected_dimensions"
    IO_FAILURE = "io_failure"


_REJECTION_STATES = {
    RejectedMagic: DecodeState.REJECTED_MAGIC,
    RejectedHeaderSize: DecodeState.REJECTED_HEADER_SIZE,
    RejectedPixelFormat: DecodeState.REJECTED_PIXEL_FORMAT,
    RejectedCompression: DecodeState.REJECTED_COMPRESSION,
    RejectedDimensions: DecodeState.REJECTED_DIMENSIONS,
}


class BMPDecoder:
    """Runs one decode over a ByteReader it owns.

    The reader is closed when decode() returns or raises.
    """

    def __init__(self, reader):
        self.reader = reader
        self.state = DecodeState.START
        self.header = None

    def _advance(self, state):
        logger.debug(f"[BMP] {self.state.value} -> {state.value}")
        self.state = state

    def decode(self):
        try:
            header = self._read_header()
            self._validate(header)
            pixels = self._read_pixels(header)
        except BmpFormatError as e:
            self.state = _REJECTION_STATES.get(type(e), self.state)
            logger.error(f"[BMP] Rejected: {e}")
            raise
        except (TruncatedInput, OSError) as e:
            self.state = DecodeState.IO_FAILURE
            logger.error(f"[BMP] Read failed: {e}")
            raise
        finally:
            self.reader.close()

        self._advance(DecodeState.CLOSED)
        return DecodedImage(header, pixels)

    def _read_header(self):
        r = self.reader

        # Signature (must start with 'BM')
        magic = r.read_uint16("magic")
        if magic != BMP_MAGIC:
            raise RejectedMagic(f"Not a BMP file: magic 0x{magic:04X}, expected 0x{BMP_MAGIC:04X}", magic)
        file_size = r.read_uint32("file size")
        reserved = r.read_uint32("reserved")
        data_offset = r.read_uint32("pixel data offset")
        self._advance(DecodeState.FILE_HEADER_READ)

        header_size = r.read_uint32("DIB header size")
        if header_size < MIN_DIB_HEADER_SIZE:
            raise RejectedHeaderSize(
                f"DIB header size {header_size} is smaller than {MIN_DIB_HEADER_SIZE} bytes",
                header_size,
            )

        # Only the common 40-byte subset is read, extended headers included
        header = BMPHeaderInfo(
            magic=magic,
            file_size=file_size,
            reserved=reserved,
            data_offset=data_offset,
            header_size=header_size,
            width=r.read_int32("width"),
            height=r.read_int32("height"),
            planes=r.read_uint16("color planes"),
            bpp=r.read_uint16("bits per pixel"),
            compression=r.read_int32("compression method"),
            image_size=r.read_uint32("raw image size"),
            x_pixels_per_meter=r.read_int32("x pixels per meter"),
            y_pixels_per_meter=r.read_int32("y pixels per meter"),
            colors_used=r.read_uint32("palette colors"),
            important_colors=r.read_uint32("important colors"),
        )
        self.header = header
        self._advance(DecodeState.INFO_HEADER_READ)
        logger.debug(
            f"[BMP] {header.width}x{header.height} {header.bpp}bpp, "
            f"compression={header.compression}, offset={header.data_offset}"
        )
        return header

    def _validate(self, header):
        if header.bpp not in SUPPORTED_BPP:
            raise RejectedPixelFormat(
                f"Unsupported bits per pixel: {header.bpp} "
                f"(palette images not supported, expected one of {SUPPORTED_BPP})",
                header.bpp,
            )
        if header.compression != BI_RGB:
            raise RejectedCompression(
                f"Unsupported compression method {header.compression}, only uncompressed (0) is supported",
                header.compression,
            )
        if header.width <= 0:
            raise RejectedDimensions(f"Width must be positive, got {header.width}", header.width)
        if header.height == 0:
            raise RejectedDimensions("Height must not be zero", header.height)
        if header.planes != 1:
            logger.warning(f"[BMP] Unexpected color plane count {header.planes}, decoding anyway")
        if header.top_down:
            logger.debug("[BMP] Negative height, rows stored top-down")
        self._advance(DecodeState.VALIDATED)

    def _row_layout(self, header):
        """Skip to the pixel data and work out the per-row padding.

        The header's pixel offset is only trusted when the source actually
        holds the rows after it. Row padding is taken from the sizes the
        header declares (raw image size, then file size minus pixel offset)
        and guessed from the remaining bytes only when neither matches.
        """
        r = self.reader
        row_bytes = header.width * header.bytes_per_pixel
        rows = header.row_count
        remaining = r.bytes_remaining()

        gap = header.data_offset - PIXEL_DATA_MIN_OFFSET
        offset_used = gap == 0
        if gap > 0:
            if remaining - gap >= row_bytes * rows:
                logger.debug(f"[BMP] Skipping {gap} bytes to pixel data at offset {header.data_offset}")
                r.skip(gap, "pixel data offset")
                remaining -= gap
                offset_used = True
            else:
                logger.warning(
                    f"[BMP] Pixel data offset {header.data_offset} points past the data, "
                    f"reading pixels at offset {PIXEL_DATA_MIN_OFFSET}"
                )

        # Check before anything the size of the image is allocated
        if remaining < row_bytes * rows:
            raise TruncatedInput(row_bytes * rows, remaining, "pixel data")

        padded = padded_row_size(header.bpp, header.width)
        if padded == row_bytes:
            return row_bytes, 0
        padding = padded - row_bytes
        padded_fits = remaining >= padded * (rows - 1) + row_bytes

        declared = [header.image_size]
        if offset_used:
            declared.append(header.file_size - header.data_offset)
        for size in declared:
            if size == row_bytes * rows:
                return row_bytes, 0
            # Last row may come without its padding
            if size in (padded * rows, padded * rows - padding) and padded_fits:
                return row_bytes, padding

        if padded_fits:
            return row_bytes, padding
        logger.warning("[BMP] Rows are not padded to 4 bytes, reading them packed")
        return row_bytes, 0

    def _read_pixels(self, header):
        r = self.reader
        width = header.width
        rows = header.row_count
        bpp = header.bytes_per_pixel
        row_bytes, padding = self._row_layout(header)

        pixels = PixelBuffer(width, rows)
        for file_row in range(rows):
            # Buffer row 0 is the bottom scanline for both storage orders
            row = rows - 1 - file_row if header.top_down else file_row
            row_data = r.read_bytes(row_bytes, f"pixel row {file_row}")
            for col in range(width):
                i = col * bpp
                # Bytes go to R, G, B in the order they are stored
                red, green, blue = row_data[i], row_data[i + 1], row_data[i + 2]
                alpha = row_data[i + 3] if bpp == 4 else OPAQUE_ALPHA
                pixels.put(col, row, (red, green, blue, alpha))
            # Last row may come without its padding
            if padding and file_row < rows - 1:
                r.skip(padding, "row padding")

        self._advance(DecodeState.PIXEL_DATA_DECODED)
        return pixels


def decode(source, opener=None):
    """Decode a BMP from a path or an open byte source.

    `source` is a path-like (opened with `opener`, default read-only binary),
    an object with read/seek/tell/close, or a ByteReader. The source is
    closed before this returns or raises.
    """
    if isinstance(source, ByteReader):
        reader = source
    elif hasattr(source, "read"):
        reader = ByteReader(source)
    else:
        reader = ByteReader.from_path(source, opener)
    return BMPDecoder(reader).decode()


def load_bmp(filepath):
    logger.info(f"Loading {filepath}")
    image = decode(filepath)
    logger.info(f"Loaded {filepath}: {image.width()}x{image.height()}")
    return image
