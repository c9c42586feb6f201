#!/usr/bin/env python3
import struct
import sys
import tempfile
import unittest
from pathlib import Path

SCRIPTS_DIR = Path(__file__).resolve().parent.parent
if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))

from sith_converter.palette import (
    CMP_RESERVED_SIZE,
    PALETTE_ENTRIES,
    parse_cmp,
    parse_cmp_bytes,
)


def build_cmp(colors=None, version: int = 30, has_alpha: int = 0) -> bytes:
    """Colormap bytes; *colors* maps palette index -> (r, g, b), others black."""
    colors = colors or {}
    body = bytearray()
    for index in range(PALETTE_ENTRIES):
        body.extend(colors.get(index, (0, 0, 0)))
    header = b"CMP " + struct.pack("<II", version, has_alpha) + bytes(CMP_RESERVED_SIZE)
    # Light-level tables follow the palette in real files.
    return header + bytes(body) + bytes(64 * 256)


class PaletteTests(unittest.TestCase):
    def test_decodes_entries_with_opaque_alpha(self) -> None:
        palette = parse_cmp_bytes(build_cmp({0: (1, 2, 3), 255: (250, 251, 252)}), name="pal")
        self.assertIsNotNone(palette)
        self.assertEqual(palette.name, "pal")
        self.assertEqual(palette.version, 30)
        self.assertFalse(palette.has_alpha)
        self.assertEqual(palette.colors.shape, (256, 4))
        self.assertEqual(palette.color(0), (1, 2, 3, 255))
        self.assertEqual(palette.color(255), (250, 251, 252, 255))
        self.assertEqual(palette.color(100), (0, 0, 0, 255))

    def test_colors_are_read_only(self) -> None:
        palette = parse_cmp_bytes(build_cmp())
        with self.assertRaises(ValueError):
            palette.colors[0, 0] = 9

    def test_bad_signature_returns_none(self) -> None:
        data = b"PMC " + build_cmp()[4:]
        self.assertIsNone(parse_cmp_bytes(data))

    def test_short_read_returns_none(self) -> None:
        data = build_cmp()[: 4 + 8 + CMP_RESERVED_SIZE + 100]
        self.assertIsNone(parse_cmp_bytes(data))
        self.assertIsNone(parse_cmp_bytes(b""))

    def test_parse_cmp_reads_file_and_tolerates_missing(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "mission.cmp"
            path.write_bytes(build_cmp({5: (200, 100, 50)}, has_alpha=1))
            palette = parse_cmp(path)
            self.assertEqual(palette.name, "mission")
            self.assertTrue(palette.has_alpha)
            self.assertEqual(palette.color(5), (200, 100, 50, 255))

            with self.assertLogs(level="WARNING"):
                self.assertIsNone(parse_cmp(Path(tmp) / "absent.cmp"))


if __name__ == "__main__":
    unittest.main()
