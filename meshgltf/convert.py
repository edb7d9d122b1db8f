from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from meshgltf.assembler import assemble_document
from meshgltf.config import ConversionOptions
from meshgltf.consolidate import consolidate_model
from meshgltf.container import build_embedded_gltf, build_glb
from meshgltf.geometry import Model, validate_model


def convert_model(model: Model, options: Optional[ConversionOptions] = None) -> bytes:
    """Convert ``model`` to ``.glb`` bytes, or ``.gltf`` UTF-8 text when ``options.embedded``."""
    if options is None:
        options = ConversionOptions()

    validate_model(model)
    consolidated = consolidate_model(model, options)
    assembled = assemble_document(consolidated, options, name=model.name)

    if options.embedded:
        payload = build_embedded_gltf(assembled.document, assembled.buffer)
    else:
        payload = build_glb(assembled.document, assembled.buffer)

    logging.debug(
        "Converted '%s' (%d meshes, %d vertices, %d triangles) -> %d bytes %s",
        model.name,
        len(model.meshes),
        model.vertex_count,
        model.triangle_count,
        len(payload),
        options.extension,
    )
    return payload


def write_model(
    model: Model,
    output_dir: Path,
    options: Optional[ConversionOptions] = None,
) -> Path:
    if options is None:
        options = ConversionOptions()

    payload = convert_model(model, options)
    output_path = output_dir / f"{model.name}{options.extension}"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(payload)
    logging.info("Wrote %s (%d bytes)", output_path, len(payload))
    return output_path
