"""
palette.py
==========

Decoder for ``.cmp`` colormaps: a fixed 256-entry RGB palette used by 8-bit
``.mat`` textures.

Layout (little-endian):
  - signature ``b"CMP "``
  - version (u32), has-alpha flag (u32)
  - 52 reserved bytes
  - 256 RGB triples
Light-level and transparency tables that may follow are not read.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

CMP_SIGNATURE = b"CMP "
CMP_RESERVED_SIZE = 52
CMP_HEADER_SIZE = 4 + 4 + 4 + CMP_RESERVED_SIZE
PALETTE_ENTRIES = 256
PALETTE_SIZE = PALETTE_ENTRIES * 3


@dataclass(frozen=True)
class Palette:
    name: str
    version: int
    has_alpha: bool
    # (256, 4) uint8 RGBA, alpha always 255. Read-only.
    colors: np.ndarray

    def color(self, index: int) -> Tuple[int, int, int, int]:
        r, g, b, a = self.colors[index]
        return int(r), int(g), int(b), int(a)


def parse_cmp_bytes(data: bytes, name: str = "") -> Optional[Palette]:
    """Decode a colormap payload. Returns ``None`` on a bad signature or short read."""
    if len(data) < 4 or data[:4] != CMP_SIGNATURE:
        logging.debug("Not a CMP palette: %s (signature %r)", name or "<bytes>", data[:4])
        return None

    if len(data) < CMP_HEADER_SIZE + PALETTE_SIZE:
        logging.debug(
            "CMP palette truncated: %s (need %d bytes, have %d)",
            name or "<bytes>",
            CMP_HEADER_SIZE + PALETTE_SIZE,
            len(data),
        )
        return None

    version, has_alpha = struct.unpack_from("<II", data, 4)

    rgb = np.frombuffer(data, dtype=np.uint8, count=PALETTE_SIZE, offset=CMP_HEADER_SIZE)
    colors = np.full((PALETTE_ENTRIES, 4), 255, dtype=np.uint8)
    colors[:, :3] = rgb.reshape(PALETTE_ENTRIES, 3)
    colors.flags.writeable = False

    return Palette(name=name, version=version, has_alpha=bool(has_alpha), colors=colors)


def parse_cmp(file_path: Path) -> Optional[Palette]:
    """Read and decode a ``.cmp`` file. Unreadable files yield ``None``."""
    try:
        data = file_path.read_bytes()
    except OSError as exc:
        logging.warning("Cannot read palette %s: %s", file_path, exc)
        return None
    return parse_cmp_bytes(data, name=file_path.stem)
