"""
schema.py
=========

The subset of glTF 2.0 objects this package emits, as plain dataclasses.

See https://registry.khronos.org/glTF/specs/2.0/glTF-2.0.html for the meaning
of each field. ``to_json`` renders an object as a JSON-ready dict: keys are the
glTF camelCase names in field order, ``None`` and empty containers are left
out, numeric zeros are kept.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Dict, List, Optional

# Accessor component types
UNSIGNED_INT = 5125
FLOAT = 5126

# Buffer view targets
ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963

# Sampler filters / wrap modes
NEAREST = 9728
CLAMP_TO_EDGE = 33071

ALPHA_OPAQUE = "OPAQUE"
ALPHA_BLEND = "BLEND"

ACCESSOR_TYPE_BY_WIDTH = {1: "SCALAR", 2: "VEC2", 3: "VEC3", 4: "VEC4"}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _render(value: Any) -> Any:
    if is_dataclass(value):
        return to_json(value)
    if isinstance(value, list):
        return [_render(item) for item in value]
    if isinstance(value, dict):
        return {key: _render(item) for key, item in value.items()}
    return value


def to_json(obj: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None:
            continue
        if isinstance(value, (list, dict)) and not value:
            continue
        out[f.metadata.get("json", _camel(f.name))] = _render(value)
    return out


@dataclass(frozen=True)
class Asset:
    version: str = "2.0"
    generator: Optional[str] = None


@dataclass(frozen=True)
class Buffer:
    byte_length: int
    uri: Optional[str] = None


@dataclass(frozen=True)
class BufferView:
    buffer: int
    byte_offset: int
    byte_length: int
    byte_stride: Optional[int] = None
    target: Optional[int] = None


@dataclass(frozen=True)
class Accessor:
    buffer_view: int
    component_type: int
    count: int
    type: str
    byte_offset: int = 0
    min: List[float] = field(default_factory=list)
    max: List[float] = field(default_factory=list)


@dataclass(frozen=True)
class TextureInfo:
    index: int
    tex_coord: Optional[int] = None


@dataclass(frozen=True)
class PbrMetallicRoughness:
    base_color_factor: List[float]
    metallic_factor: float
    roughness_factor: float
    base_color_texture: Optional[TextureInfo] = None


@dataclass(frozen=True)
class Material:
    pbr_metallic_roughness: PbrMetallicRoughness
    alpha_mode: Optional[str] = None
    double_sided: Optional[bool] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class Image:
    uri: Optional[str] = None
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class Sampler:
    mag_filter: Optional[int] = None
    min_filter: Optional[int] = None
    wrap_s: Optional[int] = None
    wrap_t: Optional[int] = None


@dataclass(frozen=True)
class Texture:
    source: int
    sampler: Optional[int] = None


@dataclass(frozen=True)
class MeshPrimitive:
    attributes: Dict[str, int]
    indices: int
    material: Optional[int] = None


@dataclass(frozen=True)
class Mesh:
    primitives: List[MeshPrimitive]
    name: Optional[str] = None


@dataclass(frozen=True)
class Node:
    mesh: Optional[int] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class Scene:
    nodes: List[int]
    name: Optional[str] = None


@dataclass(frozen=True)
class Document:
    asset: Asset
    scene: int
    scenes: List[Scene]
    nodes: List[Node]
    meshes: List[Mesh]
    buffers: List[Buffer]
    buffer_views: List[BufferView]
    accessors: List[Accessor]
    materials: List[Material] = field(default_factory=list)
    textures: List[Texture] = field(default_factory=list)
    images: List[Image] = field(default_factory=list)
    samplers: List[Sampler] = field(default_factory=list)
