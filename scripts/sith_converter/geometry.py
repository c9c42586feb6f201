"""
geometry.py
===========

Turns material-tagged polygon rings (level surfaces, model faces) into
unrolled triangle buffers grouped by material.

Source vertices are shared between polygons but UVs are per corner, so every
corner becomes its own output vertex. Rings are fan-triangulated around
corner 0 and emitted as ``(0, i + 1, i)``: after the Y/Z swap the source's
counter-clockwise front faces become clockwise, the target's front-face
convention.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .coords import pixel_to_uv, sith_to_target_position
from .errors import SithParseError

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]

FALLBACK_MATERIAL = -1
DEFAULT_TEXTURE_SIZE = 64
MIN_RING_CORNERS = 3


@dataclass(frozen=True)
class Submesh:
    material_index: int
    indices: Tuple[int, ...]

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @property
    def is_fallback(self) -> bool:
        return self.material_index == FALLBACK_MATERIAL


@dataclass
class MeshBuffers:
    name: str = ""
    positions: List[Vec3] = field(default_factory=list)
    uvs: List[Vec2] = field(default_factory=list)
    submeshes: List[Submesh] = field(default_factory=list)

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return sum(submesh.triangle_count for submesh in self.submeshes)

    def submesh_for(self, material_index: int) -> Optional[Submesh]:
        for submesh in self.submeshes:
            if submesh.material_index == material_index:
                return submesh
        return None


def fan_triangles(corner_count: int) -> List[Tuple[int, int, int]]:
    """Ring-local triangle corners for a convex ring of *corner_count* corners."""
    return [(0, i + 1, i) for i in range(1, corner_count - 1)]


def bucket_for(material_index: int, material_count: int) -> int:
    if 0 <= material_index < material_count:
        return material_index
    return FALLBACK_MATERIAL


def build_mesh(
    polygons: Iterable,
    vertices: Sequence[Vec3],
    uvs: Sequence[Vec2],
    material_count: int,
    texture_sizes: Optional[Mapping[int, Tuple[int, int]]] = None,
    flip_v: bool = False,
    default_texture_size: int = DEFAULT_TEXTURE_SIZE,
    name: str = "",
) -> MeshBuffers:
    """Unroll and triangulate *polygons* into a :class:`MeshBuffers`.

    Each polygon needs ``material_index``, ``vertex_indices`` and
    ``uv_indices``. Rings with fewer than three corners are skipped. Polygons
    whose material index is outside ``[0, material_count)`` go to the
    :data:`FALLBACK_MATERIAL` submesh. ``texture_sizes`` maps resolved
    material indices to ``(width, height)``; anything else is normalised by
    ``default_texture_size``.
    """
    sizes = texture_sizes or {}
    default_size = (default_texture_size, default_texture_size)

    mesh = MeshBuffers(name=name)
    buckets: Dict[int, List[int]] = {}
    skipped = 0
    fallback_polygons = 0
    bad_uv_corners = 0

    for ring_number, polygon in enumerate(polygons):
        vertex_indices = polygon.vertex_indices
        uv_indices = polygon.uv_indices
        corner_count = len(vertex_indices)
        if corner_count < MIN_RING_CORNERS:
            skipped += 1
            continue

        bucket = bucket_for(polygon.material_index, material_count)
        if bucket == FALLBACK_MATERIAL:
            fallback_polygons += 1
        width, height = sizes.get(bucket, default_size)

        base = len(mesh.positions)
        for corner in range(corner_count):
            vi = vertex_indices[corner]
            if vi < 0 or vi >= len(vertices):
                raise SithParseError(
                    f"polygon {ring_number} corner {corner} references vertex {vi} "
                    f"(pool has {len(vertices)})"
                )
            ti = uv_indices[corner] if corner < len(uv_indices) else 0

            mesh.positions.append(sith_to_target_position(vertices[vi]))
            if 0 <= ti < len(uvs):
                mesh.uvs.append(pixel_to_uv(uvs[ti], width, height, flip_v))
            else:
                bad_uv_corners += 1
                mesh.uvs.append((0.0, 0.0))

        indices = buckets.setdefault(bucket, [])
        for a, b, c in fan_triangles(corner_count):
            indices.extend((base + a, base + b, base + c))

    mesh.submeshes = [
        Submesh(material_index=index, indices=tuple(buckets[index]))
        for index in sorted(buckets)
    ]

    if skipped:
        logging.debug("%s: skipped %d polygons with fewer than 3 corners", name, skipped)
    if fallback_polygons:
        logging.warning(
            "%s: %d polygons reference a material outside [0, %d); using fallback submesh",
            name,
            fallback_polygons,
            material_count,
        )
    if bad_uv_corners:
        logging.debug("%s: %d corners reference a missing UV, using (0, 0)", name, bad_uv_corners)

    return mesh
