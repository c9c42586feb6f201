"""Importer for Jedi Knight (Sith engine) levels, models, textures and palettes."""

from .errors import SithParseError
from .geometry import FALLBACK_MATERIAL, MeshBuffers, Submesh, build_mesh
from .importer import (
    ImportSettings,
    LevelImport,
    ModelImport,
    ResolvedMaterial,
    SceneNode,
    import_asset,
    import_level,
    import_model,
)
from .level import LevelModel, parse_jkl, parse_jkl_text
from .model import ThreeDOModel, parse_3do, parse_3do_text
from .palette import Palette, parse_cmp, parse_cmp_bytes
from .texture import MatTexture, parse_mat, parse_mat_bytes

__all__ = [
    "FALLBACK_MATERIAL",
    "ImportSettings",
    "LevelImport",
    "LevelModel",
    "MatTexture",
    "MeshBuffers",
    "ModelImport",
    "Palette",
    "ResolvedMaterial",
    "SceneNode",
    "SithParseError",
    "Submesh",
    "ThreeDOModel",
    "build_mesh",
    "import_asset",
    "import_level",
    "import_model",
    "parse_3do",
    "parse_3do_text",
    "parse_cmp",
    "parse_cmp_bytes",
    "parse_jkl",
    "parse_jkl_text",
    "parse_mat",
    "parse_mat_bytes",
]
