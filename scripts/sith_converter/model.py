"""
model.py
========

Parser for ``.3do`` hierarchical model files.

Top-level keywords dispatch to the three sections a model carries::

    3DO 2.1
    MATERIALS 2                      (SECTION: MODELRESOURCE)
         0:  gen4.mat
    RADIUS / INSERT OFFSET / GEOSETS (SECTION: GEOMETRYDEF)
      GEOSET 0 / MESHES n / MESH i / NAME x / VERTICES / TEXTURE VERTICES /
      VERTEX NORMALS / FACES / FACE NORMALS
    HIERARCHY NODES n                (SECTION: HIERARCHYDEF)

Inside a mesh the blocks are read in whatever order they appear; the face
normal block closes the mesh. Normals are consumed and discarded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import SithParseError
from .tokenizer import Tokenizer

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]


@dataclass(frozen=True)
class Face:
    material_index: int
    vertex_indices: Tuple[int, ...]
    uv_indices: Tuple[int, ...]
    face_type: int = 0
    geometry_mode: int = 0
    lighting_mode: int = 0
    texture_mode: int = 0
    extra_light: float = 0.0


@dataclass
class Mesh:
    name: str
    index: int = 0
    geoset: int = 0
    radius: float = 0.0
    geometry_mode: int = 0
    lighting_mode: int = 0
    texture_mode: int = 0
    vertices: List[Vec3] = field(default_factory=list)
    intensities: List[float] = field(default_factory=list)
    uvs: List[Vec2] = field(default_factory=list)
    faces: List[Face] = field(default_factory=list)


@dataclass(frozen=True)
class Node:
    index: int
    name: str
    mesh_index: int
    parent_index: int
    position: Vec3
    rotation: Vec3  # pitch, yaw, roll in degrees
    pivot: Vec3
    flags: int = 0
    node_type: int = 0
    child_index: int = -1
    sibling_index: int = -1
    child_count: int = 0


@dataclass
class ThreeDOModel:
    name: str
    version: float = 0.0
    radius: float = 0.0
    insert_offset: Vec3 = (0.0, 0.0, 0.0)
    materials: List[str] = field(default_factory=list)
    meshes: List[Mesh] = field(default_factory=list)
    nodes: List[Node] = field(default_factory=list)

    def geoset(self, number: int) -> List[Mesh]:
        return [mesh for mesh in self.meshes if mesh.geoset == number]

    def node_mesh(self, node: Node) -> Optional[Mesh]:
        """Mesh a node draws; node mesh indices address geoset 0 only."""
        meshes = self.geoset(0)
        if 0 <= node.mesh_index < len(meshes):
            return meshes[node.mesh_index]
        return None

    def parent_of(self, node: Node) -> Optional[int]:
        """Parent position in :attr:`nodes`, or ``None`` when attached to the model root."""
        parent = node.parent_index
        if parent == node.index or parent < 0 or parent >= len(self.nodes):
            return None
        return parent

    def roots(self) -> List[Node]:
        return [node for node in self.nodes if self.parent_of(node) is None]

    def children(self, index: int) -> List[Node]:
        return [
            node for node in self.nodes
            if node.index != index and self.parent_of(node) == index
        ]


class ThreeDOParser:
    def __init__(self, content: str, name: str = "") -> None:
        self._tokens = Tokenizer(content)
        self._model = ThreeDOModel(name=name)
        self._geoset = 0

    def parse(self) -> ThreeDOModel:
        tokens = self._tokens
        while True:
            token = tokens.next_token()
            if token is None:
                break

            keyword = token.upper()
            if keyword == "3DO":
                self._model.version = tokens.next_float()
            elif keyword == "MATERIALS":
                self._parse_materials()
            elif keyword == "RADIUS":
                self._model.radius = tokens.next_float()
            elif keyword == "INSERT":
                self._expect("OFFSET")
                self._model.insert_offset = tokens.next_vector3()
            elif keyword == "GEOSETS":
                self._parse_geosets()
            elif keyword == "HIERARCHY":
                self._expect("NODES")
                self._parse_hierarchy()

        return self._model

    # -- helpers ------------------------------------------------------------

    def _fail(self, message: str) -> SithParseError:
        return SithParseError(message, line=self._tokens.line_number)

    def _next(self, what: str) -> str:
        token = self._tokens.next_token()
        if token is None:
            raise self._fail(f"unexpected end of input while reading {what}")
        return token

    def _expect(self, keyword: str) -> None:
        token = self._next(keyword)
        if token.upper() != keyword:
            raise self._fail(f"expected {keyword}, found {token!r}")

    def _read_index(self) -> int:
        index = self._tokens.next_int()
        self._tokens.skip_if(":")
        return index

    # -- sections -----------------------------------------------------------

    def _parse_materials(self) -> None:
        count = self._tokens.next_int()
        for _ in range(count):
            self._read_index()
            self._model.materials.append(self._next("a material name"))

    def _parse_geosets(self) -> None:
        count = self._tokens.next_int()
        for _ in range(count):
            self._expect("GEOSET")
            self._geoset = self._tokens.next_int()
            self._expect("MESHES")
            mesh_count = self._tokens.next_int()
            for _ in range(mesh_count):
                self._parse_mesh()

    def _parse_mesh(self) -> None:
        tokens = self._tokens
        self._expect("MESH")
        index = tokens.next_int()
        self._expect("NAME")
        mesh = Mesh(name=self._next("a mesh name"), index=index, geoset=self._geoset)

        while True:
            keyword = self._next(f"mesh {mesh.name!r}").upper()

            if keyword == "VERTICES":
                self._parse_vertices(mesh)
            elif keyword == "TEXTURE":
                self._expect("VERTICES")
                count = tokens.next_int()
                for _ in range(count):
                    self._read_index()
                    mesh.uvs.append(tokens.next_vector2())
            elif keyword == "VERTEX":
                self._expect("NORMALS")
                for _ in range(len(mesh.vertices)):
                    self._read_index()
                    tokens.next_vector3()
            elif keyword == "FACES":
                self._parse_faces(mesh)
            elif keyword == "FACE":
                self._expect("NORMALS")
                for _ in range(len(mesh.faces)):
                    self._read_index()
                    tokens.next_vector3()
                break
            elif keyword == "RADIUS":
                mesh.radius = tokens.next_float()
            elif keyword == "GEOMETRYMODE":
                mesh.geometry_mode = tokens.next_int()
            elif keyword == "LIGHTINGMODE":
                mesh.lighting_mode = tokens.next_int()
            elif keyword == "TEXTUREMODE":
                mesh.texture_mode = tokens.next_int()

        self._model.meshes.append(mesh)

    def _parse_vertices(self, mesh: Mesh) -> None:
        tokens = self._tokens
        count = tokens.next_int()
        for _ in range(count):
            self._read_index()
            mesh.vertices.append(tokens.next_vector3())
            mesh.intensities.append(tokens.next_float())

    def _parse_faces(self, mesh: Mesh) -> None:
        tokens = self._tokens
        count = tokens.next_int()
        for _ in range(count):
            self._read_index()
            material_index = tokens.next_int()
            face_type = tokens.next_int()
            geometry_mode = tokens.next_int()
            lighting_mode = tokens.next_int()
            texture_mode = tokens.next_int()
            extra_light = tokens.next_float()
            corner_count = tokens.next_int()

            vertex_indices: List[int] = []
            uv_indices: List[int] = []
            for _ in range(corner_count):
                vertex_indices.append(tokens.next_int())
                if tokens.skip_if(","):
                    uv_indices.append(tokens.next_int())
                else:
                    uv_indices.append(0)

            mesh.faces.append(Face(
                material_index=material_index,
                vertex_indices=tuple(vertex_indices),
                uv_indices=tuple(uv_indices),
                face_type=face_type,
                geometry_mode=geometry_mode,
                lighting_mode=lighting_mode,
                texture_mode=texture_mode,
                extra_light=extra_light,
            ))

    def _parse_hierarchy(self) -> None:
        tokens = self._tokens
        count = tokens.next_int()
        for _ in range(count):
            index = self._read_index()
            flags = tokens.next_int()
            node_type = tokens.next_int()
            mesh_index = tokens.next_int()
            parent_index = tokens.next_int()
            child_index = tokens.next_int()
            sibling_index = tokens.next_int()
            child_count = tokens.next_int()
            position = tokens.next_vector3()
            rotation = tokens.next_vector3()
            pivot = tokens.next_vector3()
            name = self._next("a node name")

            self._model.nodes.append(Node(
                index=index,
                name=name,
                mesh_index=mesh_index,
                parent_index=parent_index,
                position=position,
                rotation=rotation,
                pivot=pivot,
                flags=flags,
                node_type=node_type,
                child_index=child_index,
                sibling_index=sibling_index,
                child_count=child_count,
            ))


def parse_3do_text(content: str, name: str = "") -> ThreeDOModel:
    return ThreeDOParser(content, name=name).parse()


def parse_3do(file_path: Path) -> ThreeDOModel:
    """Parse a ``.3do`` file. Raises :class:`SithParseError` with file context."""
    try:
        content = file_path.read_text(encoding="latin-1")
    except OSError as exc:
        raise SithParseError(f"Cannot read model: {exc}", path=file_path) from exc

    try:
        return ThreeDOParser(content, name=file_path.stem).parse()
    except SithParseError as exc:
        raise exc.with_context(file_path) from exc
