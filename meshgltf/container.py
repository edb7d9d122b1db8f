"""
container.py
============

Renders an assembled document as a binary ``.glb`` container or as an
embedded ``.gltf`` text document, and reads ``.glb`` containers back.

GLB layout (all integers little-endian):

    magic "glTF" | version 2 | total length
    JSON chunk length | "JSON" | JSON text padded with spaces to 4 bytes
    BIN chunk length  | "BIN\\0" | buffer padded with zeros to 4 bytes
"""

from __future__ import annotations

import base64
import json
import struct
from dataclasses import replace
from typing import Any, Dict, Optional, Tuple

from meshgltf.assembler import data_uri
from meshgltf.errors import EncodingFailed
from meshgltf.schema import Document, to_json

GLTF_MAGIC = 0x46546C67
GLTF_VERSION = 2
JSON_CHUNK_TYPE = 0x4E4F534A
BIN_CHUNK_TYPE = 0x004E4942
HEADER_SIZE = 12
CHUNK_HEADER_SIZE = 8

BUFFER_MIME = "application/gltf-buffer"


def align4(value: int) -> int:
    return (value + 3) & ~3


def encode_json(document: Document, indent: Optional[int] = None) -> bytes:
    separators = (",", ":") if indent is None else (",", ": ")
    try:
        text = json.dumps(
            to_json(document), indent=indent, separators=separators, allow_nan=False
        )
    except (TypeError, ValueError) as exc:
        raise EncodingFailed(f"cannot encode glTF document as JSON: {exc}") from exc
    return text.encode("utf-8")


def build_glb(document: Document, buffer: bytes) -> bytes:
    json_bytes = encode_json(document)
    json_pad = align4(len(json_bytes)) - len(json_bytes)
    if json_pad:
        json_bytes += b" " * json_pad

    bin_pad = align4(len(buffer)) - len(buffer)
    if bin_pad:
        buffer += b"\x00" * bin_pad

    total_length = HEADER_SIZE + CHUNK_HEADER_SIZE + len(json_bytes) + CHUNK_HEADER_SIZE + len(buffer)

    out = bytearray()
    out += struct.pack("<III", GLTF_MAGIC, GLTF_VERSION, total_length)
    out += struct.pack("<II", len(json_bytes), JSON_CHUNK_TYPE)
    out += json_bytes
    out += struct.pack("<II", len(buffer), BIN_CHUNK_TYPE)
    out += buffer
    return bytes(out)


def build_embedded_gltf(document: Document, buffer: bytes) -> bytes:
    embedded_buffer = replace(
        document.buffers[0],
        byte_length=len(buffer),
        uri=data_uri(buffer, BUFFER_MIME),
    )
    embedded = replace(document, buffers=[embedded_buffer, *document.buffers[1:]])
    return encode_json(embedded, indent=4)


def _read_chunk(data: bytes, offset: int, expected_type: int, label: str) -> Tuple[bytes, int]:
    if offset + CHUNK_HEADER_SIZE > len(data):
        raise ValueError(f"GLB ends before the {label} chunk header")
    chunk_len, chunk_type = struct.unpack_from("<II", data, offset)
    if chunk_type != expected_type:
        raise ValueError(f"expected {label} chunk at byte {offset}, found type 0x{chunk_type:08X}")
    if chunk_len % 4:
        raise ValueError(f"{label} chunk length {chunk_len} is not 4-byte aligned")
    start = offset + CHUNK_HEADER_SIZE
    end = start + chunk_len
    if end > len(data):
        raise ValueError(f"{label} chunk exceeds file size")
    return data[start:end], end


def read_glb(data: bytes) -> Tuple[Dict[str, Any], bytes]:
    """Split a GLB written by ``build_glb`` into its JSON payload and BIN chunk.

    Exactly one JSON chunk followed by one BIN chunk is accepted.
    """
    if len(data) < HEADER_SIZE:
        raise ValueError("GLB too small")

    magic, version, total_length = struct.unpack_from("<III", data, 0)
    if magic != GLTF_MAGIC:
        raise ValueError("Invalid GLB magic")
    if version != GLTF_VERSION:
        raise ValueError(f"Unsupported GLB version: {version}")
    if total_length != len(data):
        raise ValueError(f"GLB declares {total_length} bytes but has {len(data)}")

    json_chunk, offset = _read_chunk(data, HEADER_SIZE, JSON_CHUNK_TYPE, "JSON")
    bin_chunk, offset = _read_chunk(data, offset, BIN_CHUNK_TYPE, "BIN")
    if offset != len(data):
        raise ValueError(f"{len(data) - offset} trailing bytes after the BIN chunk")

    payload = json.loads(json_chunk.decode("utf-8").rstrip(" "))
    if not isinstance(payload, dict):
        raise ValueError("GLB JSON root is not an object")
    return payload, bin_chunk


def decode_data_uri(uri: str, mime_type: str) -> bytes:
    """Inverse of ``assembler.data_uri`` for a known MIME type."""
    prefix = f"data:{mime_type};base64,"
    if not uri.startswith(prefix):
        raise ValueError(f"not a base64 {mime_type} data URI")
    return base64.b64decode(uri[len(prefix):], validate=True)
