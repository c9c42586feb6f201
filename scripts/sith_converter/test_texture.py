#!/usr/bin/env python3
import struct
import sys
import tempfile
import time
import unittest
from pathlib import Path

SCRIPTS_DIR = Path(__file__).resolve().parent.parent
if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))

from sith_converter.errors import SithParseError
from sith_converter.palette import parse_cmp_bytes
from sith_converter.test_palette import build_cmp
from sith_converter.texture import (
    MAT_COLOR_FORMAT_INTS,
    MAT_HEADER_SIZE,
    MAT_TEXTURE_RECORD_SIZE,
    parse_mat,
    parse_mat_bytes,
)


def build_mat(
    cels,
    bpp: int = 8,
    record_type: int = 2,
    transparent: bool = False,
    mip_levels: int = 1,
) -> bytes:
    """MAT bytes; *cels* is a list of (width, height, pixel bytes of level 0)."""
    color_format = [0] * MAT_COLOR_FORMAT_INTS
    color_format[1] = bpp
    data = bytearray(b"MAT ")
    data += struct.pack("<f", 0x32)
    data += struct.pack("<iii", record_type, len(cels), len(cels))
    data += struct.pack(f"<{MAT_COLOR_FORMAT_INTS}i", *color_format)
    data += bytes(MAT_TEXTURE_RECORD_SIZE * len(cels))
    for width, height, pixels in cels:
        data += struct.pack("<6i", width, height, 1 if transparent else 0, 0, 0, mip_levels)
        data += pixels
        for level in range(1, mip_levels):
            w = max(1, width >> level)
            h = max(1, height >> level)
            data += bytes((w * h * bpp) // 8)
    return bytes(data)


def _palette():
    return parse_cmp_bytes(build_cmp({0: (90, 80, 70), 1: (10, 20, 30), 5: (200, 100, 50)}))


class MatDecodeTests(unittest.TestCase):
    def test_8bpp_palette_lookup(self) -> None:
        data = build_mat([(2, 2, bytes([5, 5, 5, 5]))])
        textures = parse_mat_bytes(data, palette=_palette())
        self.assertEqual(len(textures), 1)
        texture = textures[0]
        self.assertEqual(texture.size, (2, 2))
        self.assertFalse(texture.transparent)
        for y in range(2):
            for x in range(2):
                self.assertEqual(texture.pixel(x, y), (200, 100, 50, 255))

    def test_8bpp_transparent_index_zero(self) -> None:
        data = build_mat([(2, 1, bytes([0, 1]))], transparent=True)
        texture = parse_mat_bytes(data, palette=_palette())[0]
        self.assertTrue(texture.transparent)
        # Entry 0 holds a real colour; the key still wins.
        self.assertEqual(texture.pixel(0, 0)[3], 0)
        self.assertNotEqual(texture.pixel(0, 0)[:3], (90, 80, 70))
        self.assertEqual(texture.pixel(1, 0), (10, 20, 30, 255))

    def test_palette_entry_zero_is_opaque_without_transparency_flag(self) -> None:
        data = build_mat([(1, 1, bytes([0]))])
        texture = parse_mat_bytes(data, palette=_palette())[0]
        self.assertEqual(texture.pixel(0, 0), (90, 80, 70, 255))

    def test_8bpp_grayscale_transparent_index_zero(self) -> None:
        data = build_mat([(2, 1, bytes([0, 128]))], transparent=True)
        texture = parse_mat_bytes(data, palette=None)[0]
        self.assertEqual(texture.pixel(0, 0)[3], 0)
        self.assertEqual(texture.pixel(1, 0), (128, 128, 128, 255))

    def test_8bpp_without_palette_is_grayscale(self) -> None:
        data = build_mat([(2, 1, bytes([0, 128]))])
        texture = parse_mat_bytes(data, palette=None)[0]
        self.assertEqual(texture.pixel(0, 0), (0, 0, 0, 255))
        self.assertEqual(texture.pixel(1, 0), (128, 128, 128, 255))

    def test_16bpp_rgb565(self) -> None:
        pixels = struct.pack("<4H", 0xF800, 0x07E0, 0x001F, 0x0000)
        data = build_mat([(4, 1, pixels)], bpp=16, transparent=True)
        texture = parse_mat_bytes(data)[0]
        self.assertEqual(texture.pixel(0, 0), (248, 0, 0, 255))
        self.assertEqual(texture.pixel(1, 0), (0, 252, 0, 255))
        self.assertEqual(texture.pixel(2, 0), (0, 0, 248, 255))
        self.assertEqual(texture.pixel(3, 0)[3], 0)

    def test_rows_are_bottom_origin(self) -> None:
        # File order is top row first: row of 1s above a row of 5s.
        data = build_mat([(2, 2, bytes([1, 1, 5, 5]))])
        texture = parse_mat_bytes(data, palette=_palette())[0]
        self.assertEqual(texture.pixel(0, 0), (200, 100, 50, 255))
        self.assertEqual(texture.pixel(0, 1), (10, 20, 30, 255))

        image = texture.to_image()
        self.assertEqual(image.size, (2, 2))
        self.assertEqual(image.getpixel((0, 0)), (10, 20, 30, 255))

    def test_bad_signature_yields_nothing(self) -> None:
        data = b"TAM " + build_mat([(1, 1, b"\x01")])[4:]
        self.assertEqual(parse_mat_bytes(data), [])

    def test_color_material_yields_nothing(self) -> None:
        color_format = [0] * MAT_COLOR_FORMAT_INTS
        color_format[1] = 8
        data = (
            b"MAT " + struct.pack("<f", 0x32) + struct.pack("<iii", 0, 1, 0)
            + struct.pack(f"<{MAT_COLOR_FORMAT_INTS}i", *color_format) + bytes(24)
        )
        self.assertEqual(parse_mat_bytes(data), [])

    def test_mip_levels_are_skipped_and_later_cels_consumed(self) -> None:
        data = build_mat(
            [(4, 4, bytes([5] * 16)), (4, 4, bytes([1] * 16))],
            mip_levels=3,
        )
        textures = parse_mat_bytes(data, palette=_palette())
        self.assertEqual(len(textures), 1)
        self.assertEqual(textures[0].pixel(3, 3), (200, 100, 50, 255))

    def test_truncated_first_texture_raises(self) -> None:
        data = build_mat([(4, 4, bytes([5] * 16))])[:-3]
        with self.assertRaises(SithParseError):
            parse_mat_bytes(data)

    def test_truncated_trailing_cel_keeps_first(self) -> None:
        data = build_mat([(2, 2, bytes([5] * 4)), (2, 2, bytes([1] * 4))])[:-2]
        with self.assertLogs(level="WARNING"):
            textures = parse_mat_bytes(data, palette=_palette())
        self.assertEqual(len(textures), 1)

    def test_corrupt_mip_count_stops_at_end_of_data(self) -> None:
        data = bytearray(build_mat([(2, 2, bytes([5] * 4))]))
        # Mip level count is the sixth int of the first mip header.
        struct.pack_into("<i", data, MAT_HEADER_SIZE + MAT_TEXTURE_RECORD_SIZE + 20, 20_000_000)
        started = time.monotonic()
        with self.assertLogs(level="WARNING"):
            textures = parse_mat_bytes(bytes(data), palette=_palette())
        self.assertLess(time.monotonic() - started, 1.0)
        self.assertEqual(len(textures), 1)
        self.assertEqual(textures[0].pixel(1, 1), (200, 100, 50, 255))

    def test_unsupported_bpp_raises(self) -> None:
        data = build_mat([(1, 1, b"\x00\x00\x00\x00")], bpp=32)
        with self.assertRaises(SithParseError):
            parse_mat_bytes(data)

    def test_parse_mat_attaches_path(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "wall.mat"
            path.write_bytes(build_mat([(2, 2, bytes([5] * 4))])[:-1])
            with self.assertRaises(SithParseError) as ctx:
                parse_mat(path)
            self.assertEqual(ctx.exception.path, path)

            path.write_bytes(build_mat([(2, 2, bytes([5] * 4))]))
            self.assertEqual(parse_mat(path)[0].name, "wall")


if __name__ == "__main__":
    unittest.main()
