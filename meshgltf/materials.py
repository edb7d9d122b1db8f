"""
materials.py
============

Derives metallic-roughness PBR materials from the classic
ambient/diffuse/specular source materials and keeps the output material list
free of duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from meshgltf import schema
from meshgltf.config import ConversionOptions
from meshgltf.geometry import Material

MAX_SPECULAR_POWER = 128.0


@dataclass(frozen=True)
class PbrMaterial:
    base_color_factor: Tuple[float, float, float, float]
    metallic_factor: float = 0.0
    roughness_factor: float = 1.0
    double_sided: bool = True
    alpha_mode: Optional[str] = None  # None = opaque
    base_color_texture: Optional[int] = None

    def dedup_key(self) -> tuple:
        return (
            self.base_color_factor,
            self.metallic_factor,
            self.roughness_factor,
            self.alpha_mode,
            self.double_sided,
        )

    def to_schema(self) -> schema.Material:
        texture = None
        if self.base_color_texture is not None:
            texture = schema.TextureInfo(index=self.base_color_texture)
        return schema.Material(
            pbr_metallic_roughness=schema.PbrMetallicRoughness(
                base_color_factor=list(self.base_color_factor),
                metallic_factor=self.metallic_factor,
                roughness_factor=self.roughness_factor,
                base_color_texture=texture,
            ),
            alpha_mode=self.alpha_mode,
            double_sided=self.double_sided,
        )


def roughness_from_specular_power(specular_power: float) -> float:
    roughness = 1.0 - specular_power / MAX_SPECULAR_POWER
    return min(1.0, max(0.0, roughness))


def derive_pbr_material(
    material: Material,
    options: ConversionOptions,
    base_color_texture: Optional[int] = None,
) -> PbrMaterial:
    r, g, b = material.diffuse
    # The atlas pixel already carries the opacity, vertex colors do not.
    alpha = material.opacity if options.vertex_colors else 1.0
    return PbrMaterial(
        base_color_factor=(r, g, b, alpha),
        metallic_factor=0.0,
        roughness_factor=roughness_from_specular_power(material.specular_power),
        double_sided=True,
        alpha_mode=schema.ALPHA_BLEND if material.opacity < 1.0 else None,
        base_color_texture=base_color_texture,
    )


class MaterialTable:
    """Output material list; equal materials share one index."""

    def __init__(self) -> None:
        self.entries: List[PbrMaterial] = []

    def __len__(self) -> int:
        return len(self.entries)

    def index_of(self, material: PbrMaterial) -> int:
        key = material.dedup_key()
        for index, existing in enumerate(self.entries):
            if existing.dedup_key() == key:
                return index
        self.entries.append(material)
        return len(self.entries) - 1

    def to_schema(self) -> List[schema.Material]:
        return [entry.to_schema() for entry in self.entries]
