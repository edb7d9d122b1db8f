from __future__ import annotations

from dataclasses import dataclass

DEFAULT_ATLAS_SIZE = 32


@dataclass(frozen=True)
class ConversionOptions:
    # True: per-vertex COLOR_0. False: shared texture atlas sampled via TEXCOORD_0.
    vertex_colors: bool = False
    # True: self-contained .gltf text. False: binary .glb container.
    embedded: bool = False
    atlas_size: int = DEFAULT_ATLAS_SIZE
    merge_meshes: bool = True

    def __post_init__(self) -> None:
        if self.atlas_size < 1:
            raise ValueError(f"atlas_size must be positive, got {self.atlas_size}")

    @property
    def atlas_capacity(self) -> int:
        return self.atlas_size * self.atlas_size

    @property
    def extension(self) -> str:
        return ".gltf" if self.embedded else ".glb"
