"""
export.py
=========

Writes an import result to disk: one PNG per decoded material and one JSON
document with the target-space geometry, which an engine-side loader turns
into native meshes.

JSON layout::

    {
      "source": "level.jkl",
      "kind": "level" | "model",
      "materials": [{"index", "name", "texture", "width", "height",
                     "missing", "clip", "transparent"}],
      "mesh": {...}                          (levels)
      "nodes": [{"index", "name", "parent", "position", "rotation",
                 "pivot", "mesh"}]           (models)
    }

with each mesh as ``{"name", "positions", "uvs", "submeshes":
[{"material", "indices"}]}``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .geometry import MeshBuffers
from .importer import LevelImport, ModelImport, ResolvedMaterial
from .texture import MatTexture

TEXTURE_DIR = "textures"


def write_texture_png(texture: MatTexture, output_path: Path) -> Path:
    """Save *texture* as an RGBA PNG (top row first, as PNG stores it)."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    texture.to_image().save(output_path, format="PNG")
    logging.debug("Wrote texture %s (%dx%d)", output_path, texture.width, texture.height)
    return output_path


def texture_file_name(material: ResolvedMaterial) -> str:
    stem = Path(material.name.replace("\\", "/")).stem.lower()
    return f"{stem}.png"


def write_material_textures(
    materials: List[ResolvedMaterial],
    output_dir: Path,
) -> Dict[int, str]:
    """Write every decoded material as PNG; return material index -> relative URI."""
    uris: Dict[int, str] = {}
    for material in materials:
        if material.texture is None:
            continue
        rel = f"{TEXTURE_DIR}/{texture_file_name(material)}"
        write_texture_png(material.texture, output_dir / rel)
        uris[material.index] = rel
    return uris


def _round(values, digits: int = 6) -> List[float]:
    return [round(float(value), digits) for value in values]


def mesh_to_dict(mesh: MeshBuffers) -> Dict[str, object]:
    return {
        "name": mesh.name,
        "positions": [_round(p) for p in mesh.positions],
        "uvs": [_round(uv) for uv in mesh.uvs],
        "submeshes": [
            {"material": submesh.material_index, "indices": list(submesh.indices)}
            for submesh in mesh.submeshes
        ],
    }


def materials_to_list(
    materials: List[ResolvedMaterial],
    texture_uris: Dict[int, str],
) -> List[Dict[str, object]]:
    return [
        {
            "index": material.index,
            "name": material.name,
            "texture": texture_uris.get(material.index),
            "width": material.width,
            "height": material.height,
            "missing": material.missing,
            "clip": material.clip,
            "transparent": material.transparent,
        }
        for material in materials
    ]


def import_to_dict(
    result: Union[LevelImport, ModelImport],
    source_name: str,
    texture_uris: Optional[Dict[int, str]] = None,
) -> Dict[str, object]:
    uris = texture_uris or {}
    document: Dict[str, object] = {
        "source": source_name,
        "materials": materials_to_list(result.materials, uris),
    }
    if isinstance(result, LevelImport):
        document["kind"] = "level"
        document["mesh"] = mesh_to_dict(result.mesh)
    else:
        document["kind"] = "model"
        document["nodes"] = [
            {
                "index": node.index,
                "name": node.name,
                "parent": node.parent,
                "position": _round(node.position),
                "rotation": _round(node.rotation),
                "pivot": _round(node.pivot),
                "mesh": mesh_to_dict(node.mesh) if node.mesh is not None else None,
            }
            for node in result.nodes
        ]
    return document


def write_mesh_json(
    result: Union[LevelImport, ModelImport],
    output_path: Path,
    source_name: str,
    texture_uris: Optional[Dict[int, str]] = None,
) -> Path:
    document = import_to_dict(result, source_name, texture_uris)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(document, indent=2))
    logging.debug("Wrote geometry %s", output_path)
    return output_path
