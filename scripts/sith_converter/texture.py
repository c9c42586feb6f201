"""
texture.py
==========

Decoder for ``.mat`` material containers.

Layout (little-endian), as read here:

    signature          4 bytes  b"MAT "
    version            f32
    record type        i32      2 = texture, anything else = solid colour
    record count       i32
    texture count      i32
    colour format      14 x i32 (index 1 = bits per pixel, 8 or 16)
    records            record count x (40 bytes for texture mats, 24 otherwise)
    textures           texture count x:
        mip header     6 x i32  (width, height, transparency flag, 2 reserved, mip levels)
        level 0        width * height * bpp / 8 bytes
        levels 1..n-1  (width >> n) * (height >> n) * bpp / 8 bytes, floored to 1x1

Only the first texture (cel) is materialised; later cels are consumed.
Pixels are stored top row first in the file and are flipped so that row 0
of :attr:`MatTexture.pixels` is the bottom row.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np
from PIL import Image

from .errors import SithParseError
from .palette import Palette

MAT_SIGNATURE = b"MAT "
MAT_TYPE_TEXTURE = 2
MAT_COLOR_FORMAT_INTS = 14
MAT_HEADER_SIZE = 4 + 4 + 4 + 4 + 4 + MAT_COLOR_FORMAT_INTS * 4
MAT_TEXTURE_RECORD_SIZE = 40
MAT_COLOR_RECORD_SIZE = 24
MIP_HEADER_SIZE = 6 * 4

SUPPORTED_BPP = (8, 16)


@dataclass(frozen=True)
class MatTexture:
    name: str
    width: int
    height: int
    # (height, width, 4) uint8 RGBA, row 0 = bottom. Read-only.
    pixels: np.ndarray
    transparent: bool

    @property
    def size(self):
        return self.width, self.height

    def pixel(self, x: int, y: int):
        """Return the RGBA tuple at column *x*, row *y* (row 0 = bottom)."""
        r, g, b, a = self.pixels[y, x]
        return int(r), int(g), int(b), int(a)

    def to_image(self):
        """Return a Pillow RGBA image in top-origin row order."""
        return Image.fromarray(np.ascontiguousarray(np.flipud(self.pixels)))


def _mip_level_size(width: int, height: int, bpp: int, level: int) -> int:
    w = max(1, width >> level)
    h = max(1, height >> level)
    return (w * h * bpp) // 8


def decode_pixels(
    data: bytes,
    width: int,
    height: int,
    bpp: int,
    transparent: bool,
    palette: Optional[Palette],
) -> np.ndarray:
    """Decode raw top-origin pixel bytes to a bottom-origin (height, width, 4) RGBA array."""
    count = width * height

    if bpp == 8:
        indices = np.frombuffer(data, dtype=np.uint8, count=count)
        if palette is not None:
            pixels = palette.colors[indices]
        else:
            pixels = np.empty((count, 4), dtype=np.uint8)
            pixels[:, 0] = indices
            pixels[:, 1] = indices
            pixels[:, 2] = indices
            pixels[:, 3] = 255
        if transparent:
            pixels[indices == 0] = (0, 0, 0, 0)
    elif bpp == 16:
        values = np.frombuffer(data, dtype="<u2", count=count)
        pixels = np.empty((count, 4), dtype=np.uint8)
        pixels[:, 0] = ((values & 0xF800) >> 11) << 3
        pixels[:, 1] = ((values & 0x07E0) >> 5) << 2
        pixels[:, 2] = (values & 0x001F) << 3
        pixels[:, 3] = 255
        if transparent:
            pixels[values == 0] = (0, 0, 0, 0)
    else:
        raise SithParseError(f"Unsupported bits per pixel: {bpp}")

    flipped = np.flipud(pixels.reshape(height, width, 4)).copy()
    flipped.flags.writeable = False
    return flipped


def parse_mat_bytes(
    data: bytes,
    palette: Optional[Palette] = None,
    name: str = "",
) -> List[MatTexture]:
    """Decode a ``.mat`` payload.

    Returns an empty list for a bad signature or a non-texture material.
    Raises :class:`SithParseError` when the payload ends before the first
    texture is complete.
    """
    textures: List[MatTexture] = []

    if len(data) < 4 or data[:4] != MAT_SIGNATURE:
        logging.debug("Not a MAT file: %s (signature %r)", name or "<bytes>", data[:4])
        return textures

    if len(data) < MAT_HEADER_SIZE:
        raise SithParseError(
            f"MAT header truncated ({len(data)} < {MAT_HEADER_SIZE} bytes)"
        )

    pos = 4
    version = struct.unpack_from("<f", data, pos)[0]; pos += 4
    record_type = struct.unpack_from("<i", data, pos)[0]; pos += 4
    record_count = struct.unpack_from("<i", data, pos)[0]; pos += 4
    texture_count = struct.unpack_from("<i", data, pos)[0]; pos += 4
    color_format = struct.unpack_from(f"<{MAT_COLOR_FORMAT_INTS}i", data, pos)
    pos += MAT_COLOR_FORMAT_INTS * 4
    bpp = color_format[1]

    logging.debug(
        "MAT %s: version=%.2f type=%d records=%d textures=%d bpp=%d",
        name or "<bytes>", version, record_type, record_count, texture_count, bpp,
    )

    record_size = (
        MAT_TEXTURE_RECORD_SIZE if record_type == MAT_TYPE_TEXTURE else MAT_COLOR_RECORD_SIZE
    )
    pos += max(0, record_count) * record_size

    if record_type != MAT_TYPE_TEXTURE:
        return textures

    if bpp not in SUPPORTED_BPP:
        raise SithParseError(f"Unsupported bits per pixel: {bpp}")

    for cel in range(max(0, texture_count)):
        try:
            if pos + MIP_HEADER_SIZE > len(data):
                raise SithParseError(f"Texture {cel} header truncated at offset {pos}")
            width, height, transparent_flag, _pad1, _pad2, mip_levels = struct.unpack_from(
                "<6i", data, pos
            )
            pos += MIP_HEADER_SIZE

            if width <= 0 or height <= 0:
                raise SithParseError(f"Texture {cel} has invalid size {width}x{height}")

            needed = (width * height * bpp) // 8
            if pos + needed > len(data):
                raise SithParseError(
                    f"Texture {cel} pixels truncated (need {needed} bytes at offset {pos}, "
                    f"have {len(data) - pos})"
                )
            raw = data[pos:pos + needed]
            pos += needed
        except SithParseError:
            if textures:
                logging.warning(
                    "Trailing cel %d of %s is truncated; keeping the first texture",
                    cel,
                    name or "<bytes>",
                )
                break
            raise

        if not textures:
            textures.append(MatTexture(
                name=name,
                width=width,
                height=height,
                pixels=decode_pixels(
                    raw, width, height, bpp, transparent_flag != 0, palette
                ),
                transparent=transparent_flag != 0,
            ))

        for level in range(1, mip_levels):
            pos += _mip_level_size(width, height, bpp, level)
            if pos > len(data):
                logging.warning(
                    "Mip chain of cel %d in %s runs past the end of the data (%d levels declared)",
                    cel,
                    name or "<bytes>",
                    mip_levels,
                )
                return textures

    return textures


def parse_mat(file_path: Path, palette: Optional[Palette] = None) -> List[MatTexture]:
    """Read and decode a ``.mat``/``.jmat`` file."""
    try:
        data = file_path.read_bytes()
    except OSError as exc:
        raise SithParseError(f"Cannot read material: {exc}", path=file_path) from exc

    try:
        return parse_mat_bytes(data, palette=palette, name=file_path.stem)
    except SithParseError as exc:
        raise exc.with_context(file_path) from exc
