import io
import struct

import pytest


def build_bmp(
    width,
    height,
    bpp=24,
    rows=None,
    magic=b"BM",
    header_size=40,
    compression=0,
    planes=1,
    data_offset=54,
    gap=b"",
    pad_rows=False,
):
    """Build BMP bytes. `rows` are the stored rows, in file order."""
    bytes_per_pixel = bpp // 8
    row_count = abs(height)
    if rows is None:
        rows = [
            bytes((r * 31 + c) % 256 for c in range(width * bytes_per_pixel))
            for r in range(row_count)
        ]
    if pad_rows:
        padded = ((bpp * width + 31) // 32) * 4
        rows = [row + b"\x00" * (padded - len(row)) for row in rows]
    pixel_data = b"".join(rows)

    file_size = 54 + len(gap) + len(pixel_data)
    file_header = magic + struct.pack("<III", file_size, 0, data_offset)
    info_header = struct.pack(
        "<IiiHHiIiiII",
        header_size, width, height, planes, bpp, compression,
        len(pixel_data), 2835, 2835, 0, 0,
    )
    return file_header + info_header + gap + pixel_data


class TrackingBytesIO(io.BytesIO):
    """BytesIO that remembers how often it was closed."""

    def __init__(self, data=b""):
        super().__init__(data)
        self.close_calls = 0

    def close(self):
        self.close_calls += 1
        super().close()


@pytest.fixture
def make_bmp():
    return build_bmp


@pytest.fixture
def bmp_source():
    def _source(data):
        return TrackingBytesIO(data)
    return _source


@pytest.fixture
def bmp_file(tmp_path):
    def _write(data, name="image.bmp"):
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write
