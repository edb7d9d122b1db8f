"""
consolidate.py
==============

Merges the source meshes of a model into one vertex/index stream and moves
their colors out of the materials, either into per-vertex colors or into a
small texture atlas with one pixel per source mesh.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from io import BytesIO
from typing import List, Tuple

import numpy as np
from PIL import Image

from meshgltf.colors import remap_color, to_byte
from meshgltf.config import ConversionOptions
from meshgltf.errors import AtlasCapacityExceeded, EncodingFailed
from meshgltf.geometry import Material, Model, SourceMesh, Triangle, Vertex


@dataclass
class ConsolidatedModel:
    meshes: List[SourceMesh]
    atlas_png: bytes = b""

    @property
    def has_atlas(self) -> bool:
        return bool(self.atlas_png)


def atlas_slot(mesh_index: int, atlas_size: int) -> Tuple[int, int]:
    return mesh_index % atlas_size, mesh_index // atlas_size


def atlas_uv(x: int, y: int, atlas_size: int) -> Tuple[float, float]:
    """UV of the center of atlas pixel (x, y)."""
    return x / atlas_size + 0.5 / atlas_size, y / atlas_size + 0.5 / atlas_size


def encode_png(raster: np.ndarray) -> bytes:
    try:
        img = Image.fromarray(raster)
        out = BytesIO()
        img.save(out, format="PNG")
    except (OSError, ValueError, TypeError) as exc:
        raise EncodingFailed(f"cannot encode texture atlas as PNG: {exc}") from exc
    return out.getvalue()


def _placeholder_material(specular_power: float, opacity: float) -> Material:
    # Colors now live in the vertices or the atlas; the material stays white.
    return Material(diffuse=(1.0, 1.0, 1.0), specular_power=specular_power, opacity=opacity)


def _vertex_colored(vertices: List[Vertex]) -> List[Vertex]:
    out: List[Vertex] = []
    for v in vertices:
        r, g, b, a = v.color
        out.append(replace(v, color=(remap_color(r), remap_color(g), remap_color(b), a)))
    return out


def _atlas_mapped(vertices: List[Vertex], uv: Tuple[float, float]) -> List[Vertex]:
    return [replace(v, uv=uv) for v in vertices]


def _paint_atlas_pixel(raster: np.ndarray, x: int, y: int, material: Material) -> None:
    r, g, b = material.diffuse
    raster[y, x] = (
        to_byte(remap_color(r)),
        to_byte(remap_color(g)),
        to_byte(remap_color(b)),
        to_byte(material.opacity),
    )


def _merge(meshes: List[SourceMesh]) -> SourceMesh:
    vertices: List[Vertex] = []
    triangles: List[Triangle] = []
    for mesh in meshes:
        vert_offset = len(vertices)
        vertices.extend(mesh.vertices)
        triangles.extend(
            Triangle(tuple(i + vert_offset for i in tri.indices))  # type: ignore[arg-type]
            for tri in mesh.triangles
        )

    if meshes:
        opacity = min(mesh.material.opacity for mesh in meshes)
        specular_power = sum(mesh.material.specular_power for mesh in meshes) / len(meshes)
    else:
        opacity, specular_power = 1.0, 0.0

    return SourceMesh(
        vertices=vertices,
        triangles=triangles,
        material=_placeholder_material(specular_power, opacity),
    )


def consolidate_model(model: Model, options: ConversionOptions) -> ConsolidatedModel:
    """Apply the color strategy of ``options`` and merge the meshes.

    Raises AtlasCapacityExceeded in atlas mode when the model has more
    meshes than the atlas has pixels.
    """
    use_atlas = not options.vertex_colors
    if use_atlas and len(model.meshes) > options.atlas_capacity:
        raise AtlasCapacityExceeded(len(model.meshes), options.atlas_capacity)

    size = options.atlas_size
    raster = np.zeros((size, size, 4), dtype=np.uint8) if use_atlas else None

    recolored: List[SourceMesh] = []
    for mesh_index, mesh in enumerate(model.meshes):
        if raster is not None:
            x, y = atlas_slot(mesh_index, size)
            _paint_atlas_pixel(raster, x, y, mesh.material)
            vertices = _atlas_mapped(mesh.vertices, atlas_uv(x, y, size))
        else:
            vertices = _vertex_colored(mesh.vertices)

        recolored.append(
            SourceMesh(
                vertices=vertices,
                triangles=list(mesh.triangles),
                material=_placeholder_material(mesh.material.specular_power, mesh.material.opacity),
                name=mesh.name,
            )
        )

    if options.merge_meshes:
        meshes = [_merge(recolored)]
        meshes[0].name = model.name
    else:
        meshes = [mesh for mesh in recolored if mesh.triangles]
        if len(meshes) < len(recolored):
            logging.debug(
                "Model '%s': dropped %d meshes without triangles",
                model.name,
                len(recolored) - len(meshes),
            )

    atlas_png = encode_png(raster) if raster is not None else b""
    logging.debug(
        "Consolidated '%s': %d source meshes -> %d meshes, %d vertices, %d triangles, atlas %d bytes",
        model.name,
        len(model.meshes),
        len(meshes),
        sum(len(m.vertices) for m in meshes),
        sum(len(m.triangles) for m in meshes),
        len(atlas_png),
    )
    return ConsolidatedModel(meshes=meshes, atlas_png=atlas_png)
