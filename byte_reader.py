import io
import os

from loguru import logger

from errors import IOFailure, TruncatedInput


def open_binary(path):
    # Default opener: read-only binary file
    return open(path, "rb")


def _to_signed(value, bits):
    # Two's complement reinterpretation of an unsigned value
    if value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


class ByteReader:
    """Sequential little-endian reader over a seekable byte source.

    The source is anything with read(n), seek(offset, whence), tell() and
    close(). The reader owns it: close() releases the source.
    """

    def __init__(self, source):
        self.source = source
        self._closed = False

    @classmethod
    def from_path(cls, path, opener=None):
        opener = opener or open_binary
        try:
            source = opener(path)
        except OSError as e:
            logger.error(f"Cannot open {path}: {e}")
            raise IOFailure(f"Cannot open {path}: {e}") from e
        if source is None:
            logger.error(f"Opener returned nothing for {path}")
            raise IOFailure(f"Cannot open {path}: opener returned no byte source")
        return cls(source)

    @classmethod
    def from_bytes(cls, data):
        return cls(io.BytesIO(data))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def closed(self):
        return self._closed

    def close(self):
        if self._closed:
            return
        self._closed = True
        self.source.close()

    def tell(self):
        return self.source.tell()

    def read_bytes(self, n, field=None):
        if n < 0:
            raise ValueError(f"Cannot read a negative number of bytes: {n}")
        data = self.source.read(n)
        # Some sources signal end of data with None
        received = len(data) if data else 0
        if received < n:
            raise TruncatedInput(n, received, field)
        return bytes(data)

    def read_byte(self, field=None):
        return self.read_bytes(1, field)[0]

    def read_uint16(self, field=None):
        return int.from_bytes(self.read_bytes(2, field), "little")

    def read_int16(self, field=None):
        return _to_signed(self.read_uint16(field), 16)

    def read_uint32(self, field=None):
        return int.from_bytes(self.read_bytes(4, field), "little")

    def read_int32(self, field=None):
        return _to_signed(self.read_uint32(field), 32)

    def bytes_remaining(self):
        # Measure from the end and put the cursor back
        pos = self.source.tell()
        self.source.seek(0, os.SEEK_END)
        end = self.source.tell()
        self.source.seek(pos, os.SEEK_SET)
        return end - pos

    def skip(self, n, field=None):
        if n < 0:
            raise ValueError(f"Cannot skip backwards: {n}")
        remaining = self.bytes_remaining()
        if n > remaining:
            raise TruncatedInput(n, remaining, field)
        self.source.seek(n, os.SEEK_CUR)
