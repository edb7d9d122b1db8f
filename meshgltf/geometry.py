"""
geometry.py
===========

Input mesh representation: vertices, triangles and one shading material per
source mesh. A ``Model`` is an ordered list of source meshes that the
pipeline consolidates into a single glTF mesh.

Models are usually constructed programmatically. ``load_model`` also reads
the JSON layout below so the command line can convert files:

    {
        "name": "sample",
        "meshes": [
            {
                "name": "triangle",
                "vertices": [{"position": [0, 0, 0], "normal": [0, 0, 1],
                              "color": [1, 0, 0, 1], "uv": [0, 0]}],
                "triangles": [[0, 1, 2]],
                "material": {"diffuse": [1, 0, 0], "opacity": 1.0}
            }
        ]
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from meshgltf.errors import InvalidMesh

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]
Vec4 = Tuple[float, float, float, float]

# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Vertex:
    position: Vec3 = (0.0, 0.0, 0.0)
    normal: Vec3 = (0.0, 0.0, 0.0)
    color: Vec4 = (0.0, 0.0, 0.0, 0.0)  # RGBA 0-1
    uv: Vec2 = (0.0, 0.0)


@dataclass(frozen=True)
class Triangle:
    indices: Tuple[int, int, int]


@dataclass(frozen=True)
class Material:
    ambient: Vec3 = (0.0, 0.0, 0.0)
    diffuse: Vec3 = (0.0, 0.0, 0.0)
    specular: Vec3 = (0.0, 0.0, 0.0)
    emissive: Vec3 = (0.0, 0.0, 0.0)
    specular_power: float = 0.0  # conventionally 0-128
    opacity: float = 1.0


@dataclass
class SourceMesh:
    vertices: List[Vertex] = field(default_factory=list)
    triangles: List[Triangle] = field(default_factory=list)
    material: Material = field(default_factory=Material)
    name: Optional[str] = None


@dataclass
class Model:
    meshes: List[SourceMesh] = field(default_factory=list)
    name: str = "model"

    @property
    def vertex_count(self) -> int:
        return sum(len(mesh.vertices) for mesh in self.meshes)

    @property
    def triangle_count(self) -> int:
        return sum(len(mesh.triangles) for mesh in self.meshes)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_mesh(mesh: SourceMesh, mesh_index: int = 0) -> None:
    """Raise InvalidMesh if any triangle references a vertex the mesh lacks."""
    num_vertices = len(mesh.vertices)
    for tri_index, tri in enumerate(mesh.triangles):
        if len(tri.indices) != 3:
            raise InvalidMesh(
                f"mesh {mesh_index} triangle {tri_index} has {len(tri.indices)} indices"
            )
        for vi in tri.indices:
            if vi < 0 or vi >= num_vertices:
                raise InvalidMesh(
                    f"mesh {mesh_index} triangle {tri_index} references vertex {vi} "
                    f"(mesh has {num_vertices} vertices)"
                )


def validate_model(model: Model) -> None:
    for mesh_index, mesh in enumerate(model.meshes):
        validate_mesh(mesh, mesh_index)
    if model.triangle_count == 0:
        raise InvalidMesh(f"model '{model.name}' has no triangles")


# ---------------------------------------------------------------------------
# JSON model files
# ---------------------------------------------------------------------------


def _floats(raw: Any, width: int, what: str) -> Tuple[float, ...]:
    if raw is None:
        return (0.0,) * width
    if not isinstance(raw, (list, tuple)) or len(raw) != width:
        raise InvalidMesh(f"{what} must be a list of {width} numbers, got {raw!r}")
    try:
        return tuple(float(value) for value in raw)
    except (TypeError, ValueError) as exc:
        raise InvalidMesh(f"{what} must be numeric: {raw!r}") from exc


def _vertex_from_json(raw: Dict[str, Any]) -> Vertex:
    if not isinstance(raw, dict):
        raise InvalidMesh(f"vertex entry is not an object: {raw!r}")
    return Vertex(
        position=_floats(raw.get("position"), 3, "vertex position"),  # type: ignore[arg-type]
        normal=_floats(raw.get("normal"), 3, "vertex normal"),  # type: ignore[arg-type]
        color=_floats(raw.get("color"), 4, "vertex color"),  # type: ignore[arg-type]
        uv=_floats(raw.get("uv"), 2, "vertex uv"),  # type: ignore[arg-type]
    )


def _material_from_json(raw: Optional[Dict[str, Any]]) -> Material:
    if raw is None:
        return Material()
    if not isinstance(raw, dict):
        raise InvalidMesh(f"material is not an object: {raw!r}")
    kwargs: Dict[str, Any] = {}
    for name in ("ambient", "diffuse", "specular", "emissive"):
        if name in raw:
            kwargs[name] = _floats(raw[name], 3, f"material {name}")
    for name in ("specular_power", "opacity"):
        if name in raw:
            try:
                kwargs[name] = float(raw[name])
            except (TypeError, ValueError) as exc:
                raise InvalidMesh(f"material {name} must be numeric: {raw[name]!r}") from exc
    return Material(**kwargs)


def _triangle_from_json(raw: Sequence[Any]) -> Triangle:
    if not isinstance(raw, (list, tuple)) or len(raw) != 3:
        raise InvalidMesh(f"triangle must be a list of 3 indices, got {raw!r}")
    try:
        indices = tuple(int(value) for value in raw)
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidMesh(f"triangle indices must be integers: {raw!r}") from exc
    if any(isinstance(value, bool) or index != value for index, value in zip(indices, raw)):
        raise InvalidMesh(f"triangle indices must be integers: {raw!r}")
    i0, i1, i2 = indices
    return Triangle((i0, i1, i2))


def model_from_json(payload: Dict[str, Any], default_name: str = "model") -> Model:
    if not isinstance(payload, dict):
        raise InvalidMesh("model JSON root is not an object")
    raw_meshes = payload.get("meshes")
    if not isinstance(raw_meshes, list):
        raise InvalidMesh("model JSON has no 'meshes' list")

    meshes: List[SourceMesh] = []
    for raw_mesh in raw_meshes:
        if not isinstance(raw_mesh, dict):
            raise InvalidMesh("mesh entry is not an object")
        raw_vertices = raw_mesh.get("vertices", [])
        raw_triangles = raw_mesh.get("triangles", [])
        if not isinstance(raw_vertices, list) or not isinstance(raw_triangles, list):
            raise InvalidMesh("mesh 'vertices' and 'triangles' must be lists")
        meshes.append(
            SourceMesh(
                vertices=[_vertex_from_json(v) for v in raw_vertices],
                triangles=[_triangle_from_json(t) for t in raw_triangles],
                material=_material_from_json(raw_mesh.get("material")),
                name=raw_mesh.get("name"),
            )
        )
    return Model(meshes=meshes, name=str(payload.get("name") or default_name))


def load_model(path: Path) -> Model:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidMesh(f"invalid model JSON in {path}: {exc}") from exc
    return model_from_json(payload, default_name=path.stem)


def sample_model() -> Model:
    """One red triangle facing +Z, with matching vertex colors."""
    red = Material(diffuse=(1.0, 0.0, 0.0), opacity=1.0)
    normal = (0.0, 0.0, 1.0)
    color = (1.0, 0.0, 0.0, 1.0)
    vertices = [
        Vertex(position=(0.0, 0.0, 0.0), normal=normal, color=color),
        Vertex(position=(1.0, 0.0, 0.0), normal=normal, color=color),
        Vertex(position=(0.0, 1.0, 0.0), normal=normal, color=color),
    ]
    return Model(
        meshes=[SourceMesh(vertices=vertices, triangles=[Triangle((0, 1, 2))], material=red)],
        name="sample",
    )
