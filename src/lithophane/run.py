#!/usr/bin/env python3
"""
Lithophane - command line runner

Convert one or more images into lithophane STL files.

Usage:
    lithophane photo.jpg -o outputs
    lithophane a.png b.png -o outputs --config settings.json --shape cylinder
    lithophane photo.jpg -o outputs --border frame --border-depth 4 --stand
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from .common.config import (
    BorderType, LithophaneConfig, MountingSettings, ShapeType,
)
from .common.errors import LithophaneError
from .common.io import save_mesh, save_preview
from .common.mesh_ops import compute_mesh_stats
from .pipeline import process_image_file
from .stand import generate_stand_stl, required_slot_thickness

logger = logging.getLogger(__name__)


def build_config(args: argparse.Namespace) -> LithophaneConfig:
    """Start from --config (or defaults) and apply explicit CLI overrides."""
    config = LithophaneConfig.from_json(args.config) if args.config else LithophaneConfig()

    overrides: Dict[str, Any] = {}
    simple = {
        "layers": "layer_count",
        "min_height": "min_height",
        "max_height": "max_height",
        "width": "width_mm",
        "pixel_size": "pixel_size_mm",
        "base": "base_mm",
        "smoothing": "smoothing",
        "contrast": "contrast",
        "brightness": "brightness",
        "gamma": "gamma",
    }
    for arg_name, field_name in simple.items():
        value = getattr(args, arg_name)
        if value is not None:
            overrides[field_name] = value

    if args.invert:
        overrides["invert"] = True
    if args.background_threshold is not None:
        overrides["background_removal"] = True
        overrides["background_threshold"] = args.background_threshold
    if args.hide_layers:
        layer_count = overrides.get("layer_count", config.layer_count)
        hidden = set(args.hide_layers)
        overrides["layer_visibility"] = tuple(i not in hidden for i in range(layer_count))

    border = config.border
    if args.border is not None:
        border = replace(border, type=BorderType(args.border))
    if args.border_width is not None:
        border = replace(border, width_mm=args.border_width)
    if args.border_depth is not None:
        border = replace(border, depth_mm=args.border_depth)
    overrides["border"] = border

    shape = config.shape
    if args.shape is not None:
        shape = replace(shape, type=ShapeType(args.shape))
    if args.angle is not None:
        shape = replace(shape, angle_degrees=args.angle)
    overrides["shape"] = shape

    if args.mount_diameter is not None:
        overrides["mounting"] = MountingSettings(
            enabled=True,
            diameter_mm=args.mount_diameter,
            offset_mm=args.mount_offset if args.mount_offset is not None else config.mounting.offset_mm
        )

    return config.with_overrides(**overrides).validate()


def run_all(
    images: List[Path],
    config: LithophaneConfig,
    output_dir: Path,
    preview: bool = True
) -> dict:
    """
    Convert every image, recording failures instead of stopping.

    Returns:
        Summary dictionary
    """
    summary = {
        "timestamp": datetime.now().isoformat(),
        "config": config.to_dict(),
        "images": [],
        "errors": []
    }

    for image_path in images:
        stem = image_path.stem
        logger.info(f"\n{'='*60}")
        logger.info(f"Processing: {image_path}")
        logger.info(f"{'='*60}")

        try:
            result = process_image_file(image_path, config, 512 if preview else None)
            stl_path = output_dir / f"{stem}.stl"
            save_mesh(result.stl_bytes, stl_path, result.metadata)
            if result.preview is not None:
                save_preview(result.preview, output_dir / f"{stem}_preview.png")
        except (LithophaneError, OSError) as e:
            logger.error(f"Failed {image_path}: {e}")
            summary["errors"].append({
                "image": str(image_path),
                "error_type": type(e).__name__,
                "error": str(e)
            })
            continue

        summary["images"].append({
            "image": str(image_path),
            "stl": str(stl_path),
            "stats": compute_mesh_stats(result.mesh)
        })

    return summary


def main(argv: List[str] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Lithophane - convert images into 3D-printable STL"
    )
    parser.add_argument("images", nargs="+", type=Path, help="Input image files")
    parser.add_argument("--output", "-o", type=Path, default=Path("outputs"),
                        help="Output directory")
    parser.add_argument("--config", "-c", type=Path, help="JSON configuration file")

    parser.add_argument("--layers", "-l", type=int, help="Number of height layers")
    parser.add_argument("--min-height", type=float, help="Thinnest relief above base (mm)")
    parser.add_argument("--max-height", type=float, help="Thickest relief above base (mm)")
    parser.add_argument("--width", "-w", type=float, help="Print width (mm)")
    parser.add_argument("--pixel-size", type=float, help="Grid resolution (mm per cell)")
    parser.add_argument("--base", type=float, help="Solid base thickness (mm)")
    parser.add_argument("--invert", action="store_true", help="Bright areas become thick")
    parser.add_argument("--smoothing", type=float, help="Blur factor 0-1")
    parser.add_argument("--contrast", type=float)
    parser.add_argument("--brightness", type=float)
    parser.add_argument("--gamma", type=float)
    parser.add_argument("--background-threshold", type=float,
                        help="Remove pixels brighter than this luminance (0-255)")
    parser.add_argument("--hide-layers", type=int, nargs="+",
                        help="Layer indices to cut away (0 = thinnest)")

    parser.add_argument("--shape", choices=[s.value for s in ShapeType])
    parser.add_argument("--angle", type=float, help="Arc angle in degrees")
    parser.add_argument("--border", choices=[b.value for b in BorderType])
    parser.add_argument("--border-width", type=float, help="Border width (mm)")
    parser.add_argument("--border-depth", type=float, help="Border height above base (mm)")
    parser.add_argument("--mount-diameter", type=float, help="Add a hanging hole (mm)")
    parser.add_argument("--mount-offset", type=float, help="Hole centre below top edge (mm)")

    parser.add_argument("--stand", action="store_true", help="Also write a matching stand.stl")
    parser.add_argument("--no-preview", action="store_true", help="Skip preview PNGs")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    args = parser.parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        config = build_config(args)
    except (LithophaneError, OSError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    logger.info(f"Processing {len(args.images)} images")
    logger.info(f"Shape: {config.shape.type.value}, border: {config.border.type.value}")
    logger.info(f"Output: {args.output}")

    summary = run_all(args.images, config, args.output, preview=not args.no_preview)

    if args.stand:
        thickness = required_slot_thickness(config)
        try:
            save_mesh(generate_stand_stl(thickness), args.output / "stand.stl")
        except (LithophaneError, OSError) as e:
            logger.error(f"Stand failed: {e}")
            summary["errors"].append({"image": None, "error_type": type(e).__name__, "error": str(e)})

    # Save summary
    summary_path = args.output / "run_summary.json"
    summary_path.parent.mkdir(parents=True, exist_ok=True)
    with open(summary_path, 'w') as f:
        json.dump(summary, f, indent=2)

    logger.info(f"\nSummary saved to: {summary_path}")

    n_success = len(summary["images"])
    n_errors = len(summary["errors"])

    logger.info(f"\n{'='*60}")
    logger.info(f"COMPLETE: {n_success} successful, {n_errors} errors")
    logger.info(f"{'='*60}")

    return 1 if n_errors else 0


if __name__ == "__main__":
    sys.exit(main())
