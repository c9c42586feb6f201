"""
importer.py
===========

Import pipeline: parse a primary asset, find and decode its palette and
materials, and reconstruct target-space geometry.

The result is what a host (scene builder, engine importer, viewer) needs:
the parsed model, one :class:`ResolvedMaterial` per material slot, and
submesh-partitioned buffers. Material problems never abort an import; a
slot without a decoded texture is reported as ``missing`` and keeps the
default texture size. Level slot 0 is the sky/clip material: it is never
decoded and is reported as ``clip`` rather than ``missing``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from . import locator
from .coords import (
    Quat,
    Vec3,
    sith_to_target_position,
    sith_to_target_rotation,
)
from .errors import SithParseError
from .geometry import DEFAULT_TEXTURE_SIZE, MeshBuffers, build_mesh
from .level import LevelModel, parse_jkl
from .model import ThreeDOModel, parse_3do
from .palette import Palette, parse_cmp
from .texture import MatTexture, parse_mat

LEVEL_SUFFIX = ".jkl"
MODEL_SUFFIX = ".3do"
LEVEL_CLIP_MATERIAL = 0


@dataclass(frozen=True)
class ImportSettings:
    # Extra 1 - v per asset kind; decoded textures are already stored bottom row first.
    level_flip_v: bool = False
    model_flip_v: bool = False
    default_texture_size: int = DEFAULT_TEXTURE_SIZE
    search_root: Optional[Path] = None
    root_marker: str = locator.DEFAULT_ROOT_MARKER
    palette_name: str = locator.DEFAULT_PALETTE_NAME
    material_alias_suffix: str = locator.DEFAULT_MATERIAL_ALIAS_SUFFIX
    # Level slot drawn as the sky/clip surface instead of a texture; None disables.
    level_clip_material: Optional[int] = LEVEL_CLIP_MATERIAL


@dataclass(frozen=True)
class ResolvedMaterial:
    index: int
    name: str
    path: Optional[Path]
    texture: Optional[MatTexture]
    width: int
    height: int
    clip: bool = False

    @property
    def missing(self) -> bool:
        return self.texture is None and not self.clip

    @property
    def transparent(self) -> bool:
        if self.clip:
            return True
        return self.texture is not None and self.texture.transparent


@dataclass(frozen=True)
class SceneNode:
    index: int
    name: str
    parent: Optional[int]  # None = model root
    position: Vec3
    rotation: Quat
    pivot: Vec3
    mesh: Optional[MeshBuffers]


@dataclass
class LevelImport:
    model: LevelModel
    palette: Optional[Palette]
    materials: List[ResolvedMaterial] = field(default_factory=list)
    mesh: MeshBuffers = field(default_factory=MeshBuffers)


@dataclass
class ModelImport:
    model: ThreeDOModel
    palette: Optional[Palette]
    materials: List[ResolvedMaterial] = field(default_factory=list)
    nodes: List[SceneNode] = field(default_factory=list)


def load_palette(asset_path: Path, settings: ImportSettings) -> Optional[Palette]:
    palette_path = locator.find_palette(
        asset_path,
        search_root=settings.search_root,
        root_marker=settings.root_marker,
        palette_name=settings.palette_name,
    )
    if palette_path is None:
        logging.warning("No palette found for %s; 8-bit textures decode as grayscale", asset_path)
        return None

    palette = parse_cmp(palette_path)
    if palette is None:
        logging.warning("Unusable palette %s for %s; 8-bit textures decode as grayscale",
                        palette_path, asset_path)
    else:
        logging.debug("Using palette %s for %s", palette_path, asset_path)
    return palette


def resolve_material(
    asset_path: Path,
    index: int,
    name: str,
    palette: Optional[Palette],
    settings: ImportSettings,
) -> ResolvedMaterial:
    """Locate and decode one material slot; failures yield a ``missing`` material."""
    size = settings.default_texture_size
    alias = locator.material_alias(name, settings.material_alias_suffix)
    path = locator.find_file(asset_path, name, alias)
    if path is None:
        logging.warning("Material %d (%s) not found for %s", index, name, asset_path)
        return ResolvedMaterial(index, name, None, None, size, size)

    try:
        textures = parse_mat(path, palette)
    except SithParseError as exc:
        logging.warning("Material %d (%s) could not be decoded: %s", index, name, exc)
        return ResolvedMaterial(index, name, path, None, size, size)

    if not textures:
        logging.debug("Material %d (%s) has no texture cels: %s", index, name, path)
        return ResolvedMaterial(index, name, path, None, size, size)

    texture = textures[0]
    return ResolvedMaterial(index, name, path, texture, texture.width, texture.height)


def resolve_materials(
    asset_path: Path,
    names: Sequence[str],
    palette: Optional[Palette],
    settings: ImportSettings,
) -> List[ResolvedMaterial]:
    return [
        resolve_material(asset_path, index, name, palette, settings)
        for index, name in enumerate(names)
    ]


def clip_material(index: int, name: str, settings: ImportSettings) -> ResolvedMaterial:
    """Sky/clip slot of a level: never decoded, drawn as a faint transparent surface."""
    size = settings.default_texture_size
    logging.debug("Material %d (%s) is the clip material; not decoded", index, name)
    return ResolvedMaterial(index, name, None, None, size, size, clip=True)


def texture_sizes(materials: Sequence[ResolvedMaterial]) -> Dict[int, Tuple[int, int]]:
    """Sizes of the slots that decoded to a texture."""
    return {
        material.index: (material.width, material.height)
        for material in materials
        if material.texture is not None
    }


def import_level(asset_path: Path, settings: Optional[ImportSettings] = None) -> LevelImport:
    """Import a ``.jkl`` level. Raises :class:`SithParseError` if the level is unreadable."""
    settings = settings or ImportSettings()
    model = parse_jkl(asset_path)
    logging.debug(
        "Parsed %s: %d vertices, %d UVs, %d materials, %d surfaces, %d things",
        asset_path,
        len(model.vertices),
        len(model.texture_vertices),
        len(model.materials),
        len(model.surfaces),
        len(model.things),
    )

    palette = load_palette(asset_path, settings)
    materials = [
        clip_material(index, material.name, settings)
        if index == settings.level_clip_material
        else resolve_material(asset_path, index, material.name, palette, settings)
        for index, material in enumerate(model.materials)
    ]

    try:
        mesh = build_mesh(
            model.surfaces,
            model.vertices,
            model.texture_vertices,
            material_count=len(materials),
            texture_sizes=texture_sizes(materials),
            flip_v=settings.level_flip_v,
            default_texture_size=settings.default_texture_size,
            name=model.name,
        )
    except SithParseError as exc:
        raise exc.with_context(asset_path) from exc

    return LevelImport(model=model, palette=palette, materials=materials, mesh=mesh)


def import_model(asset_path: Path, settings: Optional[ImportSettings] = None) -> ModelImport:
    """Import a ``.3do`` model. Raises :class:`SithParseError` if the model is unreadable."""
    settings = settings or ImportSettings()
    model = parse_3do(asset_path)
    logging.debug(
        "Parsed %s: %d materials, %d meshes, %d nodes",
        asset_path,
        len(model.materials),
        len(model.meshes),
        len(model.nodes),
    )

    palette = load_palette(asset_path, settings)
    materials = resolve_materials(asset_path, model.materials, palette, settings)
    sizes = texture_sizes(materials)

    nodes: List[SceneNode] = []
    for position, node in enumerate(model.nodes):
        mesh_def = model.node_mesh(node)
        mesh = None
        if mesh_def is not None:
            try:
                mesh = build_mesh(
                    mesh_def.faces,
                    mesh_def.vertices,
                    mesh_def.uvs,
                    material_count=len(materials),
                    texture_sizes=sizes,
                    flip_v=settings.model_flip_v,
                    default_texture_size=settings.default_texture_size,
                    name=f"{mesh_def.name}_{position}",
                )
            except SithParseError as exc:
                raise exc.with_context(asset_path) from exc

        nodes.append(SceneNode(
            index=node.index,
            name=node.name,
            parent=model.parent_of(node),
            position=sith_to_target_position(node.position),
            rotation=sith_to_target_rotation(node.rotation),
            pivot=sith_to_target_position(node.pivot),
            mesh=mesh,
        ))

    return ModelImport(model=model, palette=palette, materials=materials, nodes=nodes)


def import_asset(asset_path: Path, settings: Optional[ImportSettings] = None):
    """Dispatch on file suffix to :func:`import_level` or :func:`import_model`."""
    suffix = asset_path.suffix.lower()
    if suffix == LEVEL_SUFFIX:
        return import_level(asset_path, settings)
    if suffix == MODEL_SUFFIX:
        return import_model(asset_path, settings)
    raise SithParseError(f"Unsupported asset type {asset_path.suffix!r}", path=asset_path)
