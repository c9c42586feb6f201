"""
level.py
========

Parser for ``.jkl`` level files.

A JKL file is a sequence of ``SECTION: NAME`` blocks. Inside them, the
sections this parser reads are introduced by multi-word headers followed by
a record count::

    World vertices 4
    #num:     x:        y:        z:
       0:  0.100000  0.200000  0.300000

    World surfaces 1
    #num: mat: surfflags: faceflags: geo: light: tex: adjoin: extralight: nverts: vertices: intensities:
       0:   2  0x4  0x4  4  3  3  -1  0.000000  4  0,0 1,1 2,2 3,3  0.5 0.5 0.5 0.5

Everything else is skipped. Coordinates are kept in engine space and UVs in
texture pixels; conversion happens during geometry reconstruction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .errors import SithParseError
from .tokenizer import Tokenizer

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]

END_MARKER = "end"
SECTION_MARKER = "section"
WORLD_MARKER = "world"
NO_TEMPLATE = "none"
SURFACE_IGNORED_FIELDS = 7  # surfflags faceflags geo light tex adjoin extralight


@dataclass(frozen=True)
class LevelMaterial:
    name: str
    x_tile: float
    y_tile: float


@dataclass(frozen=True)
class Surface:
    material_index: int
    vertex_indices: Tuple[int, ...]
    texture_vertex_indices: Tuple[int, ...]

    # Polygon ring interface shared with model faces.
    @property
    def uv_indices(self) -> Tuple[int, ...]:
        return self.texture_vertex_indices


@dataclass(frozen=True)
class Template:
    name: str
    based_on: str
    params: Dict[str, str]

    @property
    def model_3d(self) -> Optional[str]:
        return self.params.get("model3d")


@dataclass(frozen=True)
class Thing:
    index: int
    template_name: str
    name: str
    position: Vec3
    rotation: Vec3  # pitch, yaw, roll in degrees
    sector_index: int
    extras: str


@dataclass
class LevelModel:
    name: str
    vertices: List[Vec3] = field(default_factory=list)
    texture_vertices: List[Vec2] = field(default_factory=list)
    materials: List[LevelMaterial] = field(default_factory=list)
    surfaces: List[Surface] = field(default_factory=list)
    templates: Dict[str, Template] = field(default_factory=dict)
    things: List[Thing] = field(default_factory=list)

    def template(self, name: str) -> Optional[Template]:
        return self.templates.get(name.lower())

    def template_param(self, template_name: str, key: str) -> Optional[str]:
        """Look *key* up on a template, following its ``basedOn`` chain."""
        key = key.lower()
        seen = set()
        current = self.template(template_name)
        while current is not None and current.name.lower() not in seen:
            if key in current.params:
                return current.params[key]
            seen.add(current.name.lower())
            if current.based_on.lower() == NO_TEMPLATE:
                break
            current = self.template(current.based_on)
        return None

    def thing_template(self, thing: Thing) -> Optional[Template]:
        return self.template(thing.template_name)


def parse_template_params(text: str) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for pair in text.split():
        key, sep, value = pair.partition("=")
        if not sep:
            continue
        params[key.lower()] = value
    return params


class LevelParser:
    def __init__(self, content: str, name: str = "") -> None:
        self._tokens = Tokenizer(content)
        self._model = LevelModel(name=name)

    def parse(self) -> LevelModel:
        tokens = self._tokens
        while True:
            token = tokens.next_token()
            if token is None:
                break

            if token.lower() != WORLD_MARKER:
                continue

            sub = (tokens.next_token() or "").lower()
            if sub == "vertices":
                self._parse_vertices()
            elif sub == "texture":
                if (tokens.next_token() or "").lower() == "vertices":
                    self._parse_texture_vertices()
            elif sub == "materials":
                self._parse_materials()
            elif sub == "surfaces":
                self._parse_surfaces()
            elif sub == "templates":
                self._parse_templates()
            elif sub == "things":
                self._parse_things()

        return self._model

    def _read_index(self) -> int:
        index = self._tokens.next_int()
        self._tokens.skip_if(":")
        return index

    def _next_name(self, what: str) -> str:
        token = self._tokens.next_token()
        if token == ":":
            token = self._tokens.next_token()
        if token is None:
            raise SithParseError(
                f"unexpected end of input while reading {what}",
                line=self._tokens.line_number,
            )
        return token

    def _is_section_end(self, token: Optional[str]) -> bool:
        return token is None or token.lower() in (END_MARKER, SECTION_MARKER, WORLD_MARKER)

    def _parse_vertices(self) -> None:
        count = self._tokens.next_int()
        for _ in range(count):
            self._read_index()
            self._model.vertices.append(self._tokens.next_vector3())

    def _parse_texture_vertices(self) -> None:
        count = self._tokens.next_int()
        for _ in range(count):
            self._read_index()
            self._model.texture_vertices.append(self._tokens.next_vector2())

    def _parse_materials(self) -> None:
        tokens = self._tokens
        count = tokens.next_int()
        for _ in range(count):
            peeked = tokens.peek_token()
            if peeked is not None and peeked.lower() == END_MARKER:
                break
            self._read_index()
            file_name = self._next_name("a material file name")
            x_tile = tokens.next_float()
            y_tile = tokens.next_float()
            self._model.materials.append(LevelMaterial(file_name, x_tile, y_tile))

    def _parse_surfaces(self) -> None:
        tokens = self._tokens
        count = tokens.next_int()
        for _ in range(count):
            self._read_index()
            material_index = tokens.next_int()
            for _ in range(SURFACE_IGNORED_FIELDS):
                if tokens.next_token() is None:
                    raise SithParseError(
                        "unexpected end of input in surface record",
                        line=tokens.line_number,
                    )
            corner_count = tokens.next_int()

            vertex_indices: List[int] = []
            uv_indices: List[int] = []
            for _ in range(corner_count):
                vertex_indices.append(tokens.next_int())
                if tokens.skip_if(","):
                    uv_indices.append(tokens.next_int())
                else:
                    uv_indices.append(0)

            # Per-corner intensities.
            for _ in range(corner_count):
                tokens.next_float()

            self._model.surfaces.append(Surface(
                material_index=material_index,
                vertex_indices=tuple(vertex_indices),
                texture_vertex_indices=tuple(uv_indices),
            ))

    def _parse_templates(self) -> None:
        tokens = self._tokens
        count = tokens.next_int()
        for _ in range(count):
            peeked = tokens.peek_token()
            if self._is_section_end(peeked):
                break
            name = self._next_name("a template name")
            based_on = self._next_name("a template base")
            params = parse_template_params(tokens.rest_of_line())
            self._model.templates[name.lower()] = Template(name, based_on, params)

    def _parse_things(self) -> None:
        # The declared count is not reliable; stop at "end" or the next section.
        tokens = self._tokens
        declared = tokens.next_int()
        parsed = 0
        while parsed < declared:
            if self._is_section_end(tokens.peek_token()):
                break
            index = self._read_index()
            template_name = self._next_name("a thing template")
            name = self._next_name("a thing name")
            position = tokens.next_vector3()
            rotation = tokens.next_vector3()
            sector_index = tokens.next_int()
            extras = tokens.rest_of_line()
            self._model.things.append(Thing(
                index=index,
                template_name=template_name,
                name=name,
                position=position,
                rotation=rotation,
                sector_index=sector_index,
                extras=extras,
            ))
            parsed += 1

        if parsed != declared:
            logging.debug(
                "Things section declared %d records, parsed %d", declared, parsed
            )


def parse_jkl_text(content: str, name: str = "") -> LevelModel:
    return LevelParser(content, name=name).parse()


def parse_jkl(file_path: Path) -> LevelModel:
    """Parse a ``.jkl`` file. Raises :class:`SithParseError` with file context."""
    try:
        content = file_path.read_text(encoding="latin-1")
    except OSError as exc:
        raise SithParseError(f"Cannot read level: {exc}", path=file_path) from exc

    parser = LevelParser(content, name=file_path.stem)
    try:
        return parser.parse()
    except SithParseError as exc:
        raise exc.with_context(file_path) from exc
