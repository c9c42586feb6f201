"""
cli.py
======

Batch converter for Jedi Knight ``.jkl`` levels and ``.3do`` models.

Each asset found under the input root becomes a JSON geometry document
(target-space positions, normalised UVs, per-material submeshes and, for
models, the node hierarchy) plus PNG files for its decoded materials.

Usage:
    python3 -m sith_converter \\
        --input-root extracted/episode \\
        --output-root converted \\
        --force --verbose \\
        --report converted/report.json
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field, fields as dataclass_fields
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .errors import SithParseError
from .export import write_material_textures, write_mesh_json
from .geometry import DEFAULT_TEXTURE_SIZE
from .importer import LEVEL_SUFFIX, MODEL_SUFFIX, ImportSettings, import_asset

ASSET_SUFFIXES = (LEVEL_SUFFIX, MODEL_SUFFIX)
OUTPUT_SUFFIX = ".json"
PROGRESS_EVERY = 100


@dataclass
class ConversionStats:
    total_found: int = 0
    converted: int = 0
    skipped_existing: int = 0
    skipped_corrupt: int = 0
    textures_written: int = 0
    missing_materials: int = 0
    failed: int = 0
    failures: List[Dict] = field(default_factory=list)


def merge_stats(target: ConversionStats, source: ConversionStats) -> None:
    """Merge *source* into *target* by summing int fields and extending list fields."""
    for f in dataclass_fields(ConversionStats):
        src_val = getattr(source, f.name)
        if isinstance(src_val, int):
            setattr(target, f.name, getattr(target, f.name) + src_val)
        elif isinstance(src_val, list):
            getattr(target, f.name).extend(src_val)


def output_path_for(source: Path, input_root: Path, output_root: Path) -> Path:
    rel = source.relative_to(input_root)
    return output_root / rel.with_suffix(OUTPUT_SUFFIX)


def convert_single_asset(
    source: Path,
    output_path: Path,
    settings: ImportSettings,
    force: bool,
    stats: ConversionStats,
) -> None:
    """Convert one level or model into a JSON document and its texture PNGs."""
    stats.total_found += 1

    if not force and output_path.exists():
        stats.skipped_existing += 1
        logging.debug("Skipping existing: %s", output_path)
        return

    try:
        result = import_asset(source, settings)
    except SithParseError as exc:
        stats.skipped_corrupt += 1
        stats.failures.append({"source": str(source), "error": str(exc), "type": "parse"})
        logging.warning("Parse error for %s: %s", source, exc)
        return
    except Exception as exc:
        stats.failed += 1
        stats.failures.append({"source": str(source), "error": str(exc), "type": "unexpected"})
        logging.error("Unexpected error importing %s: %s", source, exc)
        return

    missing = sum(1 for material in result.materials if material.missing)
    stats.missing_materials += missing

    try:
        texture_uris = write_material_textures(result.materials, output_path.parent)
        write_mesh_json(result, output_path, source.name, texture_uris)
    except (OSError, ValueError) as exc:
        stats.failed += 1
        stats.failures.append({"source": str(source), "error": str(exc), "type": "write"})
        logging.error("Write error for %s: %s", output_path, exc)
        return

    stats.textures_written += len(texture_uris)
    stats.converted += 1
    logging.debug(
        "Converted %s -> %s (%d textures, %d missing materials)",
        source, output_path, len(texture_uris), missing,
    )


def _asset_convert_worker(
    source: Path,
    output_path: Path,
    settings: ImportSettings,
    force: bool,
) -> ConversionStats:
    """Worker function for parallel conversion. Returns local stats."""
    stats = ConversionStats()
    try:
        convert_single_asset(source, output_path, settings, force, stats)
    except Exception as exc:  # noqa: BLE001
        stats.failed += 1
        stats.failures.append({"source": str(source), "error": str(exc), "type": "worker"})
        logging.error("Worker error for %s: %s", source, exc)
    return stats


def discover_asset_files(root: Path) -> List[Path]:
    """Discover all .jkl and .3do files under root, case-insensitive."""
    result = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for fname in filenames:
            if fname.lower().endswith(ASSET_SUFFIXES):
                result.append(Path(dirpath) / fname)
    result.sort()
    return result


def _log_progress(done: int, total: int, stats: ConversionStats, start_time: float) -> None:
    logging.info(
        "Progress: %d/%d (%.1f%%) converted=%d skipped=%d failed=%d [%.1fs]",
        done, total, 100.0 * done / total,
        stats.converted,
        stats.skipped_existing + stats.skipped_corrupt,
        stats.failed,
        time.time() - start_time,
    )


def convert_all(
    input_root: Path,
    output_root: Path,
    settings: ImportSettings,
    force: bool = False,
    dry_run: bool = False,
    report_path: Optional[Path] = None,
    workers: int = 1,
) -> ConversionStats:
    """Convert all levels and models found under input_root."""
    stats = ConversionStats()

    asset_files = discover_asset_files(input_root)
    total = len(asset_files)
    logging.info("Found %d assets under %s (workers=%d)", total, input_root, workers)

    jobs: List[Tuple[Path, Path]] = [
        (source, output_path_for(source, input_root, output_root)) for source in asset_files
    ]

    if dry_run:
        for source, out_path in jobs:
            logging.info("[DRY-RUN] Would convert %s -> %s", source, out_path)
        stats.total_found = total
        return stats

    start_time = time.time()

    if workers <= 1:
        for idx, (source, out_path) in enumerate(jobs):
            convert_single_asset(source, out_path, settings, force, stats)
            if (idx + 1) % PROGRESS_EVERY == 0 or (idx + 1) == total:
                _log_progress(idx + 1, total, stats, start_time)
    else:
        completed = 0
        chunksize = max(1, total // (workers * 4))
        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures_iter = executor.map(
                _asset_convert_worker,
                [src for src, _ in jobs],
                [dst for _, dst in jobs],
                [settings] * total,
                [force] * total,
                chunksize=chunksize,
            )
            for worker_stats in futures_iter:
                merge_stats(stats, worker_stats)
                completed += 1
                if completed % PROGRESS_EVERY == 0 or completed == total:
                    _log_progress(completed, total, stats, start_time)

    logging.info(
        "Conversion complete in %.1fs: %d converted, %d skipped (existing=%d, corrupt=%d), "
        "%d failed, %d textures written, %d missing materials",
        time.time() - start_time,
        stats.converted,
        stats.skipped_existing + stats.skipped_corrupt,
        stats.skipped_existing,
        stats.skipped_corrupt,
        stats.failed,
        stats.textures_written,
        stats.missing_materials,
    )

    if report_path:
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report = {
            "total_found": stats.total_found,
            "converted": stats.converted,
            "skipped_existing": stats.skipped_existing,
            "skipped_corrupt": stats.skipped_corrupt,
            "textures_written": stats.textures_written,
            "missing_materials": stats.missing_materials,
            "failed": stats.failed,
            "failures": stats.failures,
            "settings": {
                "level_flip_v": settings.level_flip_v,
                "model_flip_v": settings.model_flip_v,
                "default_texture_size": settings.default_texture_size,
                "search_root": str(settings.search_root) if settings.search_root else None,
            },
        }
        report_path.write_text(json.dumps(report, indent=2))
        logging.info("Report written to %s", report_path)

    return stats


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert Jedi Knight JKL levels and 3DO models to JSON geometry and PNG textures."
    )
    parser.add_argument(
        "--input-root", type=Path, required=True,
        help="Root directory containing extracted .jkl/.3do/.mat/.cmp files",
    )
    parser.add_argument(
        "--output-root", type=Path, required=True,
        help="Output directory for converted geometry and textures",
    )
    parser.add_argument("--force", action="store_true", help="Force reconversion")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be done")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--report", type=Path, default=None,
        help="Path for JSON conversion report",
    )
    parser.add_argument(
        "--workers", type=int, default=os.cpu_count() or 4,
        help="Number of parallel worker processes (default: number of CPUs).",
    )
    parser.add_argument(
        "--flip-v-level", action="store_true",
        help="Flip the V texture coordinate (1 - v) for level geometry",
    )
    parser.add_argument(
        "--flip-v-model", action="store_true",
        help="Flip the V texture coordinate (1 - v) for model geometry",
    )
    parser.add_argument(
        "--default-texture-size", type=int, default=DEFAULT_TEXTURE_SIZE,
        help=f"UV normalisation size for materials without a texture (default: {DEFAULT_TEXTURE_SIZE})",
    )
    parser.add_argument(
        "--search-root", type=Path, default=None,
        help="Upper bound for the palette search (default: the input root)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(message)s",
        datefmt="%H:%M:%S",
    )

    if not args.input_root.is_dir():
        logging.error("Input root directory not found: %s", args.input_root)
        return 1

    if args.default_texture_size <= 0:
        logging.error("Invalid --default-texture-size: %d", args.default_texture_size)
        return 1

    settings = ImportSettings(
        level_flip_v=args.flip_v_level,
        model_flip_v=args.flip_v_model,
        default_texture_size=args.default_texture_size,
        search_root=args.search_root or args.input_root,
    )

    stats = convert_all(
        input_root=args.input_root,
        output_root=args.output_root,
        settings=settings,
        force=args.force,
        dry_run=args.dry_run,
        report_path=args.report,
        workers=max(1, args.workers),
    )

    if stats.failed > 0:
        logging.warning("%d files failed conversion", stats.failed)

    return 0


if __name__ == "__main__":
    sys.exit(main())
