"""
assembler.py
============

Builds the cross-referenced glTF document for a consolidated model:
accessors -> buffer views -> buffer, primitives -> accessors and materials,
node -> mesh, scene -> node.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from meshgltf import schema
from meshgltf.config import ConversionOptions
from meshgltf.consolidate import ConsolidatedModel
from meshgltf.errors import EncodingFailed
from meshgltf.geometry import SourceMesh
from meshgltf.materials import MaterialTable, derive_pbr_material
from meshgltf.packing import BufferPacker

GENERATOR = "meshgltf"
PNG_MIME = "image/png"


@dataclass(frozen=True)
class AssembledDocument:
    document: schema.Document
    buffer: bytes


def data_uri(payload: bytes, mime_type: str) -> str:
    try:
        encoded = base64.b64encode(payload).decode("ascii")
    except TypeError as exc:
        raise EncodingFailed(f"cannot base64-encode {mime_type} payload: {exc}") from exc
    return f"data:{mime_type};base64,{encoded}"


def _pack_primitive(
    mesh: SourceMesh,
    packer: BufferPacker,
    materials: MaterialTable,
    options: ConversionOptions,
    texture_index: Optional[int],
) -> schema.MeshPrimitive:
    indices = packer.pack_indices(mesh.triangles)
    attributes: Dict[str, int] = {
        "POSITION": packer.pack_vectors([v.position for v in mesh.vertices], 3),
        "NORMAL": packer.pack_vectors([v.normal for v in mesh.vertices], 3),
    }
    if options.vertex_colors:
        attributes["COLOR_0"] = packer.pack_vectors([v.color for v in mesh.vertices], 4)
    else:
        attributes["TEXCOORD_0"] = packer.pack_vectors([v.uv for v in mesh.vertices], 2)

    pbr = derive_pbr_material(mesh.material, options, base_color_texture=texture_index)
    return schema.MeshPrimitive(
        attributes=attributes,
        indices=indices,
        material=materials.index_of(pbr),
    )


def assemble_document(
    consolidated: ConsolidatedModel,
    options: ConversionOptions,
    name: Optional[str] = None,
) -> AssembledDocument:
    packer = BufferPacker()
    materials = MaterialTable()

    images: List[schema.Image] = []
    samplers: List[schema.Sampler] = []
    textures: List[schema.Texture] = []
    texture_index: Optional[int] = None
    if not options.vertex_colors:
        images.append(schema.Image(uri=data_uri(consolidated.atlas_png, PNG_MIME)))
        # One flat color per pixel: never blend neighbouring pixels.
        samplers.append(
            schema.Sampler(
                mag_filter=schema.NEAREST,
                min_filter=schema.NEAREST,
                wrap_s=schema.CLAMP_TO_EDGE,
                wrap_t=schema.CLAMP_TO_EDGE,
            )
        )
        textures.append(schema.Texture(source=len(images) - 1, sampler=len(samplers) - 1))
        texture_index = len(textures) - 1

    primitives = [
        _pack_primitive(mesh, packer, materials, options, texture_index)
        for mesh in consolidated.meshes
    ]

    document = schema.Document(
        asset=schema.Asset(version="2.0", generator=GENERATOR),
        scene=0,
        scenes=[schema.Scene(nodes=[0])],
        nodes=[schema.Node(mesh=0, name=name)],
        meshes=[schema.Mesh(primitives=primitives, name=name)],
        buffers=[schema.Buffer(byte_length=packer.byte_length)],
        buffer_views=list(packer.buffer_views),
        accessors=list(packer.accessors),
        materials=materials.to_schema(),
        textures=textures,
        images=images,
        samplers=samplers,
    )
    logging.debug(
        "Assembled '%s': %d primitives, %d accessors, %d materials, buffer %d bytes",
        name,
        len(primitives),
        len(document.accessors),
        len(document.materials),
        packer.byte_length,
    )
    return AssembledDocument(document=document, buffer=packer.to_bytes())
