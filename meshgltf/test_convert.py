#!/usr/bin/env python3
import json
import struct
import tempfile
import unittest
from io import BytesIO
from pathlib import Path

import numpy as np
from PIL import Image

from meshgltf.assembler import PNG_MIME, assemble_document
from meshgltf.config import ConversionOptions
from meshgltf.consolidate import consolidate_model
from meshgltf.container import (
    BIN_CHUNK_TYPE,
    BUFFER_MIME,
    CHUNK_HEADER_SIZE,
    GLTF_MAGIC,
    HEADER_SIZE,
    JSON_CHUNK_TYPE,
    build_embedded_gltf,
    build_glb,
    decode_data_uri,
    read_glb,
)
from meshgltf.convert import convert_model, write_model
from meshgltf.errors import AtlasCapacityExceeded, EncodingFailed, InvalidMesh
from meshgltf.geometry import Material, Model, SourceMesh, Triangle, Vertex, sample_model
from meshgltf.schema import to_json


def _quad_mesh(diffuse, opacity: float = 1.0, specular_power: float = 0.0, scale: float = 1.0) -> SourceMesh:
    normal = (0.0, 1.0, 0.0)
    corners = [(0.0, 0.0, 0.0), (scale, 0.0, 0.0), (scale, 0.0, scale), (0.0, 0.0, scale)]
    return SourceMesh(
        vertices=[Vertex(position=p, normal=normal, color=(*diffuse, 1.0)) for p in corners],
        triangles=[Triangle((0, 1, 2)), Triangle((0, 2, 3))],
        material=Material(diffuse=diffuse, opacity=opacity, specular_power=specular_power),
    )


def _two_mesh_model() -> Model:
    return Model(
        meshes=[_quad_mesh((1.0, 0.0, 0.0)), _quad_mesh((0.0, 0.0, 1.0), scale=2.0)],
        name="pair",
    )


def _accessor_values(payload: dict, bin_chunk: bytes, accessor_index: int) -> list:
    accessor = payload["accessors"][accessor_index]
    view = payload["bufferViews"][accessor["bufferView"]]
    width = {"SCALAR": 1, "VEC2": 2, "VEC3": 3, "VEC4": 4}[accessor["type"]]
    code = "I" if accessor["componentType"] == 5125 else "f"
    count = accessor["count"] * width
    return list(struct.unpack_from(f"<{count}{code}", bin_chunk, view["byteOffset"]))


class SampleTriangleTests(unittest.TestCase):
    """One red triangle in vertex-color mode."""

    def setUp(self) -> None:
        glb = convert_model(sample_model(), ConversionOptions(vertex_colors=True))
        self.payload, self.bin_chunk = read_glb(glb)

    def test_accessor_layout(self) -> None:
        accessors = self.payload["accessors"]
        self.assertEqual(
            [(a["type"], a["count"]) for a in accessors],
            [("SCALAR", 3), ("VEC3", 3), ("VEC3", 3), ("VEC4", 3)],
        )
        self.assertEqual(accessors[0]["componentType"], 5125)
        self.assertEqual((accessors[0]["min"], accessors[0]["max"]), ([0], [2]))
        self.assertTrue(all(a["componentType"] == 5126 for a in accessors[1:]))
        self.assertEqual(accessors[1]["min"], [0.0, 0.0, 0.0])
        self.assertEqual(accessors[1]["max"], [1.0, 1.0, 0.0])

    def test_scene_graph(self) -> None:
        payload = self.payload
        self.assertEqual(payload["asset"]["version"], "2.0")
        self.assertEqual(payload["scene"], 0)
        self.assertEqual(payload["scenes"], [{"nodes": [0]}])
        self.assertEqual(payload["nodes"], [{"mesh": 0, "name": "sample"}])
        self.assertEqual(len(payload["meshes"]), 1)
        self.assertEqual(len(payload["materials"]), 1)
        self.assertEqual(len(payload["buffers"]), 1)
        self.assertNotIn("uri", payload["buffers"][0])
        for key in ("images", "textures", "samplers"):
            self.assertNotIn(key, payload)

        primitive = payload["meshes"][0]["primitives"][0]
        self.assertEqual(primitive["indices"], 0)
        self.assertEqual(primitive["attributes"], {"POSITION": 1, "NORMAL": 2, "COLOR_0": 3})
        self.assertEqual(primitive["material"], 0)

    def test_colors_are_remapped(self) -> None:
        colors = _accessor_values(self.payload, self.bin_chunk, 3)
        for vertex in range(3):
            r, g, b, a = colors[vertex * 4:vertex * 4 + 4]
            self.assertAlmostEqual(r, 0.85, places=6)
            self.assertAlmostEqual(g, 0.04, places=6)
            self.assertAlmostEqual(b, 0.04, places=6)
            self.assertEqual(a, 1.0)

    def test_material(self) -> None:
        material = self.payload["materials"][0]
        self.assertEqual(material["pbrMetallicRoughness"]["baseColorFactor"], [1.0, 1.0, 1.0, 1.0])
        self.assertEqual(material["pbrMetallicRoughness"]["metallicFactor"], 0.0)
        self.assertEqual(material["pbrMetallicRoughness"]["roughnessFactor"], 1.0)
        self.assertTrue(material["doubleSided"])
        self.assertNotIn("alphaMode", material)

    def test_buffer_layout(self) -> None:
        views = self.payload["bufferViews"]
        self.assertEqual([v["byteOffset"] for v in views], [0, 12, 48, 84])
        self.assertEqual([v.get("byteStride") for v in views], [None, 12, 12, 16])
        self.assertEqual(self.payload["buffers"][0]["byteLength"], 132)
        self.assertEqual(len(self.bin_chunk), 132)
        self.assertEqual(_accessor_values(self.payload, self.bin_chunk, 0), [0, 1, 2])


class TextureAtlasDocumentTests(unittest.TestCase):
    def setUp(self) -> None:
        glb = convert_model(_two_mesh_model(), ConversionOptions())
        self.payload, self.bin_chunk = read_glb(glb)

    def test_texture_chain(self) -> None:
        payload = self.payload
        primitive = payload["meshes"][0]["primitives"][0]
        self.assertEqual(set(primitive["attributes"]), {"POSITION", "NORMAL", "TEXCOORD_0"})

        material = payload["materials"][primitive["material"]]
        texture = payload["textures"][material["pbrMetallicRoughness"]["baseColorTexture"]["index"]]
        sampler = payload["samplers"][texture["sampler"]]
        self.assertEqual((sampler["magFilter"], sampler["minFilter"]), (9728, 9728))

        data = decode_data_uri(payload["images"][texture["source"]]["uri"], PNG_MIME)
        with Image.open(BytesIO(data)) as img:
            pixels = np.array(img.convert("RGBA"))
        self.assertEqual(int(pixels.any(axis=2).sum()), 2)
        self.assertEqual(tuple(pixels[0, 0]), (217, 10, 10, 255))
        self.assertEqual(tuple(pixels[0, 1]), (10, 10, 217, 255))

    def test_uvs_address_pixel_centers(self) -> None:
        primitive = self.payload["meshes"][0]["primitives"][0]
        uvs = _accessor_values(self.payload, self.bin_chunk, primitive["attributes"]["TEXCOORD_0"])
        pairs = [tuple(uvs[i:i + 2]) for i in range(0, len(uvs), 2)]
        self.assertEqual(pairs[:4], [(0.015625, 0.015625)] * 4)
        self.assertEqual(pairs[4:], [(0.046875, 0.015625)] * 4)

    def test_counts_match_inputs(self) -> None:
        model = _two_mesh_model()
        primitive = self.payload["meshes"][0]["primitives"][0]
        accessors = self.payload["accessors"]
        self.assertEqual(accessors[primitive["indices"]]["count"], 3 * model.triangle_count)
        self.assertEqual(accessors[primitive["attributes"]["POSITION"]]["count"], model.vertex_count)
        indices = _accessor_values(self.payload, self.bin_chunk, primitive["indices"])
        self.assertEqual(indices[6:], [4, 5, 6, 4, 6, 7])


class ContainerTests(unittest.TestCase):
    def _assembled(self, options: ConversionOptions):
        model = _two_mesh_model()
        return assemble_document(consolidate_model(model, options), options, name=model.name)

    def test_glb_framing(self) -> None:
        assembled = self._assembled(ConversionOptions())
        glb = build_glb(assembled.document, assembled.buffer)

        magic, version, total_length = struct.unpack_from("<III", glb, 0)
        self.assertEqual((magic, version, total_length), (GLTF_MAGIC, 2, len(glb)))
        self.assertEqual(glb[:4], b"glTF")

        json_length, json_type = struct.unpack_from("<II", glb, 12)
        self.assertEqual(json_type, JSON_CHUNK_TYPE)
        self.assertEqual(glb[16:20], b"JSON")
        self.assertEqual(json_length % 4, 0)

        bin_offset = 20 + json_length
        bin_length, bin_type = struct.unpack_from("<II", glb, bin_offset)
        self.assertEqual(bin_type, BIN_CHUNK_TYPE)
        self.assertEqual(glb[bin_offset + 4:bin_offset + 8], b"BIN\x00")
        self.assertEqual(bin_length % 4, 0)
        self.assertEqual(bin_offset + 8 + bin_length, len(glb))

    def test_glb_round_trip(self) -> None:
        assembled = self._assembled(ConversionOptions())
        payload, bin_chunk = read_glb(build_glb(assembled.document, assembled.buffer))
        self.assertEqual(payload, to_json(assembled.document))
        self.assertEqual(bin_chunk, assembled.buffer)

    def test_json_chunk_padded_with_spaces(self) -> None:
        assembled = self._assembled(ConversionOptions(vertex_colors=True))
        glb = build_glb(assembled.document, assembled.buffer)
        json_length = struct.unpack_from("<I", glb, 12)[0]
        chunk = glb[20:20 + json_length]
        self.assertEqual(chunk.rstrip(b" "), json.dumps(
            to_json(assembled.document), separators=(",", ":")).encode("utf-8"))

    def test_unaligned_buffer_is_null_padded(self) -> None:
        assembled = self._assembled(ConversionOptions(vertex_colors=True))
        glb = build_glb(assembled.document, assembled.buffer + b"\x01\x02")
        _, bin_chunk = read_glb(glb)
        self.assertEqual(len(bin_chunk) % 4, 0)
        self.assertEqual(bin_chunk[-2:], b"\x00\x00")

    def test_embedded_gltf(self) -> None:
        assembled = self._assembled(ConversionOptions(embedded=True))
        text = build_embedded_gltf(assembled.document, assembled.buffer).decode("utf-8")

        self.assertTrue(text.startswith('{\n    "asset": {'))
        payload = json.loads(text)
        buffer = payload["buffers"][0]
        self.assertTrue(buffer["uri"].startswith("data:application/gltf-buffer;base64,"))
        data = decode_data_uri(buffer["uri"], BUFFER_MIME)
        self.assertEqual(data, assembled.buffer)
        self.assertEqual(buffer["byteLength"], len(data))
        self.assertTrue(payload["images"][0]["uri"].startswith("data:image/png;base64,"))
        # The assembled document itself is left untouched.
        self.assertIsNone(assembled.document.buffers[0].uri)

    def test_read_glb_rejects_bad_input(self) -> None:
        assembled = self._assembled(ConversionOptions())
        glb = build_glb(assembled.document, assembled.buffer)
        with self.assertRaises(ValueError):
            read_glb(b"glTF")
        with self.assertRaises(ValueError):
            read_glb(b"XXXX" + glb[4:])
        with self.assertRaises(ValueError):
            read_glb(glb[:-4])

    def test_read_glb_requires_json_then_bin(self) -> None:
        assembled = self._assembled(ConversionOptions())
        glb = build_glb(assembled.document, assembled.buffer)
        json_length = struct.unpack_from("<I", glb, HEADER_SIZE)[0]
        json_end = HEADER_SIZE + CHUNK_HEADER_SIZE + json_length
        json_part = glb[HEADER_SIZE:json_end]
        bin_part = glb[json_end:]

        def framed(body: bytes) -> bytes:
            return struct.pack("<III", GLTF_MAGIC, 2, HEADER_SIZE + len(body)) + body

        self.assertEqual(read_glb(framed(json_part + bin_part))[1], assembled.buffer)

        extra = struct.pack("<II", 4, 0x12345678) + b"\x00" * 4
        cases = {
            "swapped": bin_part + json_part,
            "json only": json_part,
            "unknown chunk between": json_part + extra + bin_part,
            "trailing chunk": json_part + bin_part + extra,
            "bin chunk not bin": json_part + struct.pack("<II", 4, 0x00000000) + b"\x00" * 4,
        }
        for label, body in cases.items():
            with self.subTest(label):
                with self.assertRaises(ValueError):
                    read_glb(framed(body))

    def test_decode_data_uri_checks_mime_and_base64(self) -> None:
        self.assertEqual(decode_data_uri("data:image/png;base64,AAEC", PNG_MIME), b"\x00\x01\x02")
        with self.assertRaises(ValueError):
            decode_data_uri("data:image/png;base64,AAEC", BUFFER_MIME)
        with self.assertRaises(ValueError):
            decode_data_uri("data:image/png,AAEC", PNG_MIME)
        with self.assertRaises(ValueError):
            decode_data_uri("data:image/png;base64,not base64!", PNG_MIME)


class PipelineTests(unittest.TestCase):
    def test_conversion_is_deterministic(self) -> None:
        for options in (
            ConversionOptions(),
            ConversionOptions(vertex_colors=True),
            ConversionOptions(embedded=True),
            ConversionOptions(vertex_colors=True, embedded=True, merge_meshes=False),
        ):
            with self.subTest(options=options):
                self.assertEqual(
                    convert_model(_two_mesh_model(), options),
                    convert_model(_two_mesh_model(), options),
                )

    def test_buffer_views_aligned_and_in_bounds(self) -> None:
        for options in (ConversionOptions(), ConversionOptions(vertex_colors=True, merge_meshes=False)):
            with self.subTest(options=options):
                payload, _ = read_glb(convert_model(_two_mesh_model(), options))
                length = payload["buffers"][0]["byteLength"]
                regions = []
                for view in payload["bufferViews"]:
                    self.assertEqual(view["byteOffset"] % 4, 0)
                    self.assertLessEqual(view["byteOffset"] + view["byteLength"], length)
                    regions.append((view["byteOffset"], view["byteOffset"] + view["byteLength"]))
                regions.sort()
                for (_, end), (start, _) in zip(regions, regions[1:]):
                    self.assertLessEqual(end, start)

    def test_identical_materials_deduplicated_across_primitives(self) -> None:
        model = Model(
            meshes=[
                _quad_mesh((0.5, 0.5, 0.5), opacity=1.0, specular_power=64.0),
                _quad_mesh((0.5, 0.5, 0.5), opacity=1.0, specular_power=64.0, scale=3.0),
            ]
        )
        options = ConversionOptions(vertex_colors=True, merge_meshes=False)
        payload, _ = read_glb(convert_model(model, options))

        primitives = payload["meshes"][0]["primitives"]
        self.assertEqual(len(primitives), 2)
        self.assertEqual(len(payload["materials"]), 1)
        self.assertEqual([p["material"] for p in primitives], [0, 0])
        self.assertEqual(payload["materials"][0]["pbrMetallicRoughness"]["roughnessFactor"], 0.5)

    def test_distinct_materials_kept_apart(self) -> None:
        model = Model(
            meshes=[
                _quad_mesh((0.5, 0.5, 0.5), specular_power=64.0),
                _quad_mesh((0.5, 0.5, 0.5), opacity=0.5, specular_power=64.0),
                _quad_mesh((0.5, 0.5, 0.5), specular_power=0.0),
            ]
        )
        options = ConversionOptions(merge_meshes=False)
        payload, _ = read_glb(convert_model(model, options))

        self.assertEqual([p["material"] for p in payload["meshes"][0]["primitives"]], [0, 1, 2])
        self.assertEqual(payload["materials"][1]["alphaMode"], "BLEND")
        self.assertEqual(len(payload["textures"]), 1)

    def test_large_coordinates_bounded(self) -> None:
        model = Model(meshes=[_quad_mesh((1.0, 1.0, 1.0), scale=-250.0)])
        payload, _ = read_glb(convert_model(model, ConversionOptions(vertex_colors=True)))
        position = payload["accessors"][1]
        self.assertEqual(position["min"], [-250.0, 0.0, -250.0])
        self.assertEqual(position["max"], [0.0, 0.0, 0.0])

    def test_invalid_index_rejected(self) -> None:
        mesh = _quad_mesh((1.0, 0.0, 0.0))
        mesh.triangles.append(Triangle((0, 1, 4)))
        with self.assertRaises(InvalidMesh):
            convert_model(Model(meshes=[mesh]))

    def test_model_without_triangles_rejected(self) -> None:
        with self.assertRaises(InvalidMesh):
            convert_model(Model(meshes=[]))
        with self.assertRaises(InvalidMesh):
            convert_model(Model(meshes=[SourceMesh(vertices=[Vertex()])]))

    def test_atlas_capacity_enforced(self) -> None:
        model = Model(meshes=[_quad_mesh((1.0, 0.0, 0.0)) for _ in range(10)])
        with self.assertRaises(AtlasCapacityExceeded):
            convert_model(model, ConversionOptions(atlas_size=3))
        convert_model(model, ConversionOptions(atlas_size=4))

    def test_nan_positions_fail_encoding(self) -> None:
        mesh = _quad_mesh((1.0, 0.0, 0.0))
        mesh.vertices[0] = Vertex(position=(float("nan"), 0.0, 0.0))
        with self.assertRaises(EncodingFailed):
            convert_model(Model(meshes=[mesh]), ConversionOptions(vertex_colors=True))

    def test_write_model(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            glb_path = write_model(sample_model(), Path(temp_dir))
            gltf_path = write_model(sample_model(), Path(temp_dir) / "nested", ConversionOptions(embedded=True))

            self.assertEqual(glb_path.name, "sample.glb")
            self.assertEqual(gltf_path.name, "sample.gltf")
            self.assertEqual(glb_path.read_bytes()[:4], b"glTF")
            self.assertIn("buffers", json.loads(gltf_path.read_text(encoding="utf-8")))


if __name__ == "__main__":
    unittest.main()
