"""
cli.py
======

Command-line front end: converts a JSON model file (or the built-in sample
triangle) to a self-contained ``.glb`` or embedded ``.gltf``.

Usage:
    meshgltf --model scene.json --output-dir out/
    meshgltf --vc -e                 # sample triangle, vertex colors, .gltf
    meshgltf --model scene.json --atlas-size 64 --check --verbose
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable, Optional, Tuple

from meshgltf.config import DEFAULT_ATLAS_SIZE, ConversionOptions
from meshgltf.container import BUFFER_MIME, decode_data_uri, read_glb
from meshgltf.convert import write_model
from meshgltf.errors import ConversionError
from meshgltf.geometry import Model, load_model, sample_model


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="meshgltf",
        description="Convert a triangle-mesh model to a self-contained glTF 2.0 asset.",
    )
    parser.add_argument(
        "--model", type=Path, default=None,
        help="JSON model file (default: built-in red sample triangle)",
    )
    parser.add_argument(
        "--vc", dest="vertex_colors", action="store_true",
        help="Use per-vertex colors (COLOR_0) instead of a texture atlas",
    )
    parser.add_argument(
        "-e", "--embedded", action="store_true",
        help="Create an embedded .gltf rather than a binary .glb",
    )
    parser.add_argument(
        "--atlas-size", type=int, default=DEFAULT_ATLAS_SIZE,
        help=f"Texture atlas edge in pixels; one pixel per mesh (default: {DEFAULT_ATLAS_SIZE})",
    )
    parser.add_argument(
        "--no-merge", action="store_true",
        help="Keep one primitive per source mesh instead of merging them",
    )
    parser.add_argument(
        "--output-dir", type=Path, default=Path("."),
        help="Directory for the output file (default: current directory)",
    )
    parser.add_argument("--name", default=None, help="Output name (default: model name)")
    parser.add_argument(
        "--check", action="store_true",
        help="Re-read the written file and validate its structure",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser.parse_args(None if argv is None else list(argv))


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("PIL").setLevel(logging.INFO)


def check_output(path: Path) -> Tuple[bool, str]:
    """Validate a written .glb/.gltf: container framing and buffer length."""
    data = path.read_bytes()
    if path.suffix.lower() == ".glb":
        try:
            payload, bin_chunk = read_glb(data)
        except ValueError as exc:
            return False, f"invalid GLB: {exc}"
        available = len(bin_chunk)
    else:
        try:
            payload = json.loads(data.decode("utf-8"))
            uri = payload["buffers"][0]["uri"]
            available = len(decode_data_uri(uri, BUFFER_MIME))
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            return False, f"invalid glTF: {exc}"

    buffers = payload.get("buffers") or [{}]
    declared = buffers[0].get("byteLength", 0)
    if declared > available:
        return False, f"buffer declares {declared} bytes, only {available} present"

    for index, view in enumerate(payload.get("bufferViews", [])):
        end = view.get("byteOffset", 0) + view.get("byteLength", 0)
        if end > declared:
            return False, f"bufferView {index} ends at {end}, past buffer length {declared}"

    return True, "ok"


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    try:
        options = ConversionOptions(
            vertex_colors=args.vertex_colors,
            embedded=args.embedded,
            atlas_size=args.atlas_size,
            merge_meshes=not args.no_merge,
        )
    except ValueError as exc:
        logging.error("Invalid options: %s", exc)
        return 1

    try:
        model: Model = load_model(args.model) if args.model else sample_model()
    except OSError as exc:
        logging.error("Cannot read %s: %s", args.model, exc)
        return 1
    except ConversionError as exc:
        logging.error("Invalid model %s: %s", args.model, exc)
        return 1

    if args.name:
        model.name = args.name

    logging.info(
        "Color mode: %s; output: %s",
        "vertex colors" if options.vertex_colors else f"{options.atlas_size}x{options.atlas_size} texture atlas",
        "embedded .gltf" if options.embedded else "binary .glb",
    )

    try:
        output_path = write_model(model, args.output_dir, options)
    except ConversionError as exc:
        logging.error("Conversion of '%s' failed: %s", model.name, exc)
        return 1
    except OSError as exc:
        logging.error("Cannot write output for '%s': %s", model.name, exc)
        return 1

    if args.check:
        ok, reason = check_output(output_path)
        if not ok:
            logging.error("Check failed for %s: %s", output_path, reason)
            return 1
        logging.info("Check passed for %s", output_path)

    return 0
