"""
locator.py
==========

Companion-file lookup following the Jedi Knight extraction layout::

    episode/
      mission/            (root marker: mission.cmp lives somewhere below)
        jkl/  level.jkl
        3do/  model.3do
          mat/  texture.mat
        mat/  texture.mat
        misc/cmp/ mission.cmp

Materials are searched in a fixed list of directories next to the asset.
Palettes are searched by walking up from the asset. Both searches return
``None`` when nothing matches.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

MATERIAL_DIR = "mat"
MODEL_DIR = "3do"
PALETTE_DIR = "cmp"
PALETTE_SUFFIX = ".cmp"
DEFAULT_ROOT_MARKER = "mission"
DEFAULT_PALETTE_NAME = "mission.cmp"
DEFAULT_MATERIAL_ALIAS_SUFFIX = ".jmat"


def find_case_insensitive_child_dir(root: Path, child_name: str) -> Optional[Path]:
    direct = root / child_name
    if direct.is_dir():
        return direct

    needle = child_name.lower()
    try:
        for child in sorted(root.iterdir()):
            if child.is_dir() and child.name.lower() == needle:
                return child
    except OSError:
        return None
    return None


def _resolve_case_insensitive_dir(path: Path) -> Optional[Path]:
    """Resolve *path* allowing its last components to differ in case."""
    if path.is_dir():
        return path
    parent = path.parent
    if parent == path:
        return None
    resolved_parent = _resolve_case_insensitive_dir(parent)
    if resolved_parent is None:
        return None
    return find_case_insensitive_child_dir(resolved_parent, path.name)


def _sorted_files(directory: Path) -> List[Path]:
    try:
        return sorted(
            (child for child in directory.iterdir() if child.is_file()),
            key=lambda child: child.name.lower(),
        )
    except OSError:
        return []


def material_alias(name: str, suffix: str = DEFAULT_MATERIAL_ALIAS_SUFFIX) -> str:
    """Return the renamed form of a material file name (``foo.mat`` -> ``foo.jmat``)."""
    return str(Path(name.replace("\\", "/")).with_suffix(suffix).name)


def candidate_directories(asset_path: Path) -> List[Path]:
    """Directories searched for companion files, in search order."""
    base_dir = asset_path.parent
    candidates = [
        base_dir,
        base_dir / MATERIAL_DIR,
        base_dir / MODEL_DIR / MATERIAL_DIR,
    ]
    parent_dir = base_dir.parent
    if parent_dir != base_dir:
        candidates.append(parent_dir / MATERIAL_DIR)
        candidates.append(parent_dir / MODEL_DIR / MATERIAL_DIR)
    return candidates


def find_in_directories(
    directories: Iterable[Path],
    names: Iterable[Optional[str]],
) -> Optional[Path]:
    needles = [name.lower() for name in names if name]
    if not needles:
        return None

    for directory in directories:
        resolved = _resolve_case_insensitive_dir(directory)
        if resolved is None:
            continue
        by_name = {}
        for child in _sorted_files(resolved):
            by_name.setdefault(child.name.lower(), child)
        for needle in needles:
            if needle in by_name:
                return by_name[needle]
    return None


def find_file(
    asset_path: Path,
    primary_name: Optional[str],
    alias_name: Optional[str] = None,
) -> Optional[Path]:
    """Find a companion file named *primary_name* or *alias_name* near *asset_path*.

    Directory order decides first; within one directory the primary name
    wins over the alias.
    """
    names = []
    for name in (primary_name, alias_name):
        if name:
            names.append(Path(name.replace("\\", "/")).name)
    found = find_in_directories(candidate_directories(asset_path), names)
    if found is None:
        logging.debug(
            "Companion file not found for %s: %s", asset_path, " / ".join(names)
        )
    return found


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def _find_named_below(root: Path, file_name: str) -> Optional[Path]:
    needle = file_name.lower()
    matches = sorted(
        (path for path in root.rglob("*") if path.is_file() and path.name.lower() == needle),
        key=lambda path: path.as_posix().lower(),
    )
    return matches[0] if matches else None


def _first_with_suffix(directory: Path, suffix: str) -> Optional[Path]:
    for child in _sorted_files(directory):
        if child.suffix.lower() == suffix:
            return child
    return None


def find_palette(
    asset_path: Path,
    search_root: Optional[Path] = None,
    root_marker: str = DEFAULT_ROOT_MARKER,
    palette_name: str = DEFAULT_PALETTE_NAME,
) -> Optional[Path]:
    """Find the colormap to use for *asset_path*.

    Walks from the asset's directory upwards. At each level a ``cmp``
    subdirectory is checked for any ``.cmp`` file, and a directory named
    *root_marker* is searched recursively for *palette_name*. The walk never
    leaves *search_root* (when given). Falls back to a ``.cmp`` file beside
    the asset.
    """
    start = asset_path.resolve().parent
    boundary = search_root.resolve() if search_root is not None else None
    marker = root_marker.lower()

    current = start
    while True:
        cmp_dir = find_case_insensitive_child_dir(current, PALETTE_DIR)
        if cmp_dir is not None:
            found = _first_with_suffix(cmp_dir, PALETTE_SUFFIX)
            if found is not None:
                return found

        if current.name.lower() == marker:
            found = _find_named_below(current, palette_name)
            if found is not None:
                return found

        parent = current.parent
        if parent == current:
            break
        if boundary is not None and not _is_within(parent, boundary):
            break
        current = parent

    found = _first_with_suffix(start, PALETTE_SUFFIX)
    if found is None:
        logging.debug("No palette found for %s", asset_path)
    return found
