"""
packing.py
==========

Packs typed arrays into the single binary buffer of a glTF document.

Every packed array gets its own buffer view and accessor. Floats are
little-endian float32, indices little-endian uint32. Accessor bounds are
computed on the float32 values actually written, so a reader sees
``min <= value <= max`` for every stored component.
"""

from __future__ import annotations

import logging
import struct
from typing import List, Optional, Sequence, Tuple

from meshgltf.errors import AlignmentFault, InvalidMesh
from meshgltf.geometry import Triangle
from meshgltf.schema import (
    ACCESSOR_TYPE_BY_WIDTH,
    ARRAY_BUFFER,
    ELEMENT_ARRAY_BUFFER,
    FLOAT,
    UNSIGNED_INT,
    Accessor,
    BufferView,
)

COMPONENT_SIZE = 4


def compute_bounds(values: Sequence[float], width: int) -> Tuple[List[float], List[float]]:
    """Per-component min/max of a flat array of ``width``-wide elements.

    Seeded from the first element, so any magnitude is bounded correctly.
    """
    if width < 1 or not values or len(values) % width:
        raise InvalidMesh(f"cannot compute bounds of {len(values)} values in groups of {width}")

    lo = list(values[:width])
    hi = list(values[:width])
    for start in range(width, len(values), width):
        for c in range(width):
            v = values[start + c]
            if v < lo[c]:
                lo[c] = v
            if v > hi[c]:
                hi[c] = v
    return lo, hi


class BufferPacker:
    def __init__(self, buffer_index: int = 0) -> None:
        self.buffer_index = buffer_index
        self.buffer_views: List[BufferView] = []
        self.accessors: List[Accessor] = []
        self._data = bytearray()

    @property
    def byte_length(self) -> int:
        return len(self._data)

    def to_bytes(self) -> bytes:
        return bytes(self._data)

    def _append(
        self,
        payload: bytes,
        byte_stride: Optional[int],
        target: Optional[int],
    ) -> int:
        byte_offset = len(self._data)
        if (byte_offset + len(payload)) % COMPONENT_SIZE:
            raise AlignmentFault(
                f"appending {len(payload)} bytes at offset {byte_offset} "
                f"would leave the buffer unaligned"
            )
        self._data.extend(payload)

        self.buffer_views.append(
            BufferView(
                buffer=self.buffer_index,
                byte_offset=byte_offset,
                byte_length=len(payload),
                byte_stride=byte_stride,
                target=target,
            )
        )
        return len(self.buffer_views) - 1

    def _add_accessor(self, accessor: Accessor) -> int:
        self.accessors.append(accessor)
        return len(self.accessors) - 1

    def pack_vectors(
        self,
        vectors: Sequence[Sequence[float]],
        width: int,
        target: Optional[int] = ARRAY_BUFFER,
    ) -> int:
        """Append 2-, 3- or 4-component float vectors; return the accessor index."""
        if width not in (2, 3, 4):
            raise ValueError(f"unsupported vector width: {width}")
        if not vectors:
            raise InvalidMesh("cannot pack an empty vertex attribute")

        flat: List[float] = []
        for vec in vectors:
            if len(vec) != width:
                raise InvalidMesh(f"expected {width} components, got {len(vec)}")
            flat.extend(vec)

        try:
            payload = struct.pack(f"<{len(flat)}f", *flat)
        except (OverflowError, struct.error) as exc:
            raise InvalidMesh(f"vertex attribute not representable as float32: {exc}") from exc
        stored = struct.unpack(f"<{len(flat)}f", payload)
        lo, hi = compute_bounds(stored, width)

        view = self._append(payload, byte_stride=COMPONENT_SIZE * width, target=target)
        index = self._add_accessor(
            Accessor(
                buffer_view=view,
                component_type=FLOAT,
                count=len(vectors),
                type=ACCESSOR_TYPE_BY_WIDTH[width],
                min=lo,
                max=hi,
            )
        )
        logging.debug(
            "Packed %d %s at byte %d (accessor %d)",
            len(vectors),
            ACCESSOR_TYPE_BY_WIDTH[width],
            self.buffer_views[view].byte_offset,
            index,
        )
        return index

    def pack_indices(self, triangles: Sequence[Triangle]) -> int:
        """Append triangle indices as a flat uint32 stream; return the accessor index."""
        flat = [i for tri in triangles for i in tri.indices]
        if not flat:
            raise InvalidMesh("cannot pack an empty index stream")

        try:
            payload = struct.pack(f"<{len(flat)}I", *flat)
        except struct.error as exc:
            raise InvalidMesh(f"triangle index out of uint32 range: {exc}") from exc
        lo, hi = compute_bounds(flat, 1)

        view = self._append(payload, byte_stride=None, target=ELEMENT_ARRAY_BUFFER)
        index = self._add_accessor(
            Accessor(
                buffer_view=view,
                component_type=UNSIGNED_INT,
                count=len(flat),
                type="SCALAR",
                min=[lo[0]],
                max=[hi[0]],
            )
        )
        logging.debug(
            "Packed %d indices at byte %d (accessor %d)",
            len(flat),
            self.buffer_views[view].byte_offset,
            index,
        )
        return index
