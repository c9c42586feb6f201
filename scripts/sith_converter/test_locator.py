#!/usr/bin/env python3
import sys
import tempfile
import unittest
from pathlib import Path

SCRIPTS_DIR = Path(__file__).resolve().parent.parent
if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))

from sith_converter.locator import (
    candidate_directories,
    find_case_insensitive_child_dir,
    find_file,
    find_palette,
    material_alias,
)


def _touch(path: Path, data: bytes = b"") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


class CandidateDirectoryTests(unittest.TestCase):
    def test_search_order(self) -> None:
        self.assertEqual(
            candidate_directories(Path("mission/3do/foo.3do")),
            [
                Path("mission/3do"),
                Path("mission/3do/mat"),
                Path("mission/3do/3do/mat"),
                Path("mission/mat"),
                Path("mission/3do/mat"),
            ],
        )

    def test_material_alias(self) -> None:
        self.assertEqual(material_alias("wall.mat"), "wall.jmat")
        self.assertEqual(material_alias("mat\\Wall.MAT"), "Wall.jmat")
        self.assertEqual(material_alias("wall.mat", ".png"), "wall.png")


class FindFileTests(unittest.TestCase):
    def test_first_directory_in_order_wins(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            asset = _touch(root / "mission" / "jkl" / "level.jkl")
            _touch(root / "mission" / "mat" / "wall.mat")
            nearer = _touch(root / "mission" / "jkl" / "mat" / "wall.mat")
            self.assertEqual(find_file(asset, "wall.mat", "wall.jmat"), nearer)

    def test_parent_material_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            asset = _touch(root / "mission" / "jkl" / "level.jkl")
            target = _touch(root / "mission" / "3do" / "mat" / "gear.mat")
            self.assertEqual(find_file(asset, "gear.mat"), target)

    def test_case_insensitive_names_and_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            asset = _touch(root / "mission" / "3do" / "crate.3do")
            target = _touch(root / "mission" / "MAT" / "Crate.MAT")
            self.assertEqual(find_file(asset, "crate.mat"), target)

    def test_alias_name(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            asset = _touch(root / "level.jkl")
            target = _touch(root / "mat" / "wall.jmat")
            self.assertEqual(find_file(asset, "wall.mat", "wall.jmat"), target)

    def test_primary_name_beats_alias_in_same_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            asset = _touch(root / "level.jkl")
            _touch(root / "mat" / "wall.jmat")
            primary = _touch(root / "mat" / "wall.mat")
            self.assertEqual(find_file(asset, "wall.mat", "wall.jmat"), primary)

    def test_not_found(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            asset = _touch(Path(tmp) / "level.jkl")
            self.assertIsNone(find_file(asset, "wall.mat", "wall.jmat"))
            self.assertIsNone(find_file(asset, None))

    def test_case_insensitive_child_dir(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "Cmp").mkdir()
            self.assertEqual(find_case_insensitive_child_dir(root, "cmp"), root / "Cmp")
            self.assertIsNone(find_case_insensitive_child_dir(root, "mat"))


class FindPaletteTests(unittest.TestCase):
    def test_mission_marker_searches_recursively(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            asset = _touch(root / "episode" / "mission" / "jkl" / "01.jkl")
            palette = _touch(root / "episode" / "mission" / "misc" / "Mission.CMP")
            self.assertEqual(find_palette(asset), palette.resolve())

    def test_cmp_directory_on_the_way_up(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            asset = _touch(root / "game" / "3do" / "crate.3do")
            palette = _touch(root / "game" / "cmp" / "dflt.cmp")
            self.assertEqual(find_palette(asset), palette.resolve())

    def test_search_root_bounds_the_walk(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _touch(root / "cmp" / "outside.cmp")
            asset = _touch(root / "extracted" / "3do" / "crate.3do")
            self.assertIsNone(find_palette(asset, search_root=root / "extracted"))
            self.assertIsNotNone(find_palette(asset))

    def test_falls_back_to_sibling_cmp(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            asset = _touch(root / "work" / "crate.3do")
            palette = _touch(root / "work" / "uni.cmp")
            self.assertEqual(find_palette(asset, search_root=root), palette.resolve())

    def test_nothing_found(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            asset = _touch(root / "work" / "crate.3do")
            self.assertIsNone(find_palette(asset, search_root=root))


if __name__ == "__main__":
    unittest.main()
