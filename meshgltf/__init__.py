"""
meshgltf
========

Converts in-memory triangle-mesh models into self-contained glTF 2.0 assets:
a binary ``.glb`` container or an embedded ``.gltf`` text document.

    from meshgltf import ConversionOptions, convert_model, sample_model

    glb = convert_model(sample_model(), ConversionOptions(vertex_colors=True))
"""

from meshgltf.config import ConversionOptions
from meshgltf.convert import convert_model, write_model
from meshgltf.errors import (
    AlignmentFault,
    AtlasCapacityExceeded,
    ConversionError,
    EncodingFailed,
    InvalidMesh,
)
from meshgltf.geometry import Material, Model, SourceMesh, Triangle, Vertex, load_model, sample_model

__all__ = [
    "AlignmentFault",
    "AtlasCapacityExceeded",
    "ConversionError",
    "ConversionOptions",
    "EncodingFailed",
    "InvalidMesh",
    "Material",
    "Model",
    "SourceMesh",
    "Triangle",
    "Vertex",
    "convert_model",
    "load_model",
    "sample_model",
    "write_model",
]
