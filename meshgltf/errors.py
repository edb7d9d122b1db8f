"""Exceptions raised while converting a model to glTF."""

from __future__ import annotations


class ConversionError(Exception):
    pass


class InvalidMesh(ConversionError):
    pass


class AtlasCapacityExceeded(ConversionError):
    def __init__(self, mesh_count: int, capacity: int) -> None:
        super().__init__(
            f"{mesh_count} meshes do not fit in a texture atlas with {capacity} slots"
        )
        self.mesh_count = mesh_count
        self.capacity = capacity


class AlignmentFault(ConversionError):
    pass


class EncodingFailed(ConversionError):
    pass
