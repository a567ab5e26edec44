"""
meshforge - XPS parser tests

Covers the reference document, every truncation point, header checks,
influence policies and the legacy (v1 / v2.12) layouts.

Run with pytest, or via the runner: python tests.py --module reader
"""

import logging
import math
import sys
from pathlib import Path

import pytest

# Path setup
TESTS_DIR = Path(__file__).parent
SUITE_DIR = TESTS_DIR.parent.parent
SRC_DIR = SUITE_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from meshforge.formats.xps import (
    CountOverflow, FormatVersion, Header, InfluenceOverflow, InvalidBoneParentIndex,
    InvalidInfluence, InvalidMagicOrVersion, InvalidTriangleIndex, InvalidUVLayer,
    MeshFlags, ParseOptions, StringEncodingError, TrailingData, UnexpectedEndOfInput,
    UnsupportedFeatureFlag, WeightSumViolation, XPSImportError, XPSReader, parse,
)
from meshforge.formats.xps import reader as xps_reader
from meshforge.utils.math3d import Quaternion, Vector3

from xps_fixtures import (
    floats, header_bytes, i32, influences_bytes, legacy_v1_bytes, legacy_v2_bytes,
    plain_vertex, pstr, reference_bytes, reference_model, single_vertex_document, u16, u32,
)


VARIABLE = int(MeshFlags.default_render_state() | MeshFlags.VARIABLE_INFLUENCES)
FIXED = int(MeshFlags.default_render_state())


def influence_weights(model):
    vertex = model.meshes[0].vertices[0]
    return [(i.bone_index, i.weight) for i in vertex.influences]


# ═══════════════════════════════════════════════════════════════════════════════
# REFERENCE DOCUMENT
# ═══════════════════════════════════════════════════════════════════════════════

def test_parse_reference_document():
    assert parse(reference_bytes()) == reference_model()


def test_header_metadata_unreversed():
    model = parse(reference_bytes())
    assert model.version == FormatVersion(3, 15)
    assert model.header.author == "modder"
    assert model.header.device == "PC-01"
    assert model.header.settings == b"\x01\x00\x00\x00\x02\x00\x00\x00"


def test_parse_accepts_bytearray():
    assert parse(bytearray(reference_bytes())) == reference_model()


def test_strict_mode_accepts_clean_document():
    assert parse(reference_bytes(), ParseOptions(strict=True)) == reference_model()


def test_absent_color_uses_default():
    model = parse(reference_bytes())
    assert model.meshes[1].vertices[0].color == (255, 255, 255, 255)
    assert model.meshes[0].vertices[2].color == (10, 20, 30, 40)


def test_zero_weight_padding_dropped():
    model = parse(reference_bytes())
    assert len(model.meshes[0].vertices[0].influences) == 1
    assert len(model.meshes[0].vertices[1].influences) == 2


# ═══════════════════════════════════════════════════════════════════════════════
# TRUNCATION
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("builder", [reference_bytes, legacy_v1_bytes, legacy_v2_bytes])
def test_every_truncation_is_end_of_input(builder):
    data = builder()
    for length in range(len(data)):
        with pytest.raises(UnexpectedEndOfInput) as info:
            parse(data[:length])
        assert info.value.offset is not None
        assert info.value.offset <= length


def test_truncation_reports_field():
    data = reference_bytes()
    with pytest.raises(UnexpectedEndOfInput) as info:
        parse(data[:-1])
    assert info.value.field == "meshes[1].triangles[1]"
    assert isinstance(info.value, XPSImportError)


def test_empty_input():
    with pytest.raises(UnexpectedEndOfInput) as info:
        parse(b"")
    assert info.value.field == "header.magic"
    assert info.value.offset == 0


# ═══════════════════════════════════════════════════════════════════════════════
# HEADER
# ═══════════════════════════════════════════════════════════════════════════════

def test_bad_magic():
    data = u32(12345) + reference_bytes()[4:]
    with pytest.raises(InvalidMagicOrVersion) as info:
        parse(data)
    assert info.value.offset == 0
    assert info.value.field == "header.magic"


def test_bad_magic_string():
    data = reference_bytes()
    data = data[:8] + pstr("XNAaraX") + data[16:]
    with pytest.raises(InvalidMagicOrVersion) as info:
        parse(data)
    assert info.value.field == "header.magic_string"


@pytest.mark.parametrize("major", [0, 4, 9])
def test_unsupported_version(major):
    data = reference_bytes()
    data = data[:4] + u16(major) + data[6:]
    with pytest.raises(InvalidMagicOrVersion) as info:
        parse(data)
    assert info.value.offset == 4
    assert info.value.field == "header.version"


def test_count_over_limit():
    with pytest.raises(CountOverflow) as info:
        parse(reference_bytes(), ParseOptions(max_bones=2))
    assert info.value.field == "bone_count"
    assert info.value.offset == len(header_bytes())


def test_settings_over_limit():
    with pytest.raises(CountOverflow) as info:
        parse(reference_bytes(), ParseOptions(max_settings_words=1))
    assert info.value.field == "header.settings_length"


def test_invalid_utf8_name():
    data = header_bytes() + u32(1) + b"\x02\xff\xfe" + i32(-1)
    with pytest.raises(StringEncodingError) as info:
        parse(data)
    assert info.value.field == "bones[0].name"
    assert info.value.offset == len(header_bytes()) + 4


# ═══════════════════════════════════════════════════════════════════════════════
# REFERENCES
# ═══════════════════════════════════════════════════════════════════════════════

def test_forward_parent_reference():
    data = header_bytes() + u32(2)
    data += pstr("a") + i32(1) + floats(0, 0, 0) + floats(0, 0, 0, 1)
    data += pstr("b") + i32(-1) + floats(0, 0, 0) + floats(0, 0, 0, 1)
    data += u32(0)
    with pytest.raises(InvalidBoneParentIndex) as info:
        parse(data)
    assert info.value.field == "bones[0].parent_index"
    assert info.value.offset == len(header_bytes()) + 4 + 2


def test_triangle_index_out_of_range():
    vertex = plain_vertex(influences_bytes([(0, 1.0)]))
    data = single_vertex_document(FIXED, vertex, triangles=u32(1) + u16(0, 0, 1))
    with pytest.raises(InvalidTriangleIndex) as info:
        parse(data)
    assert info.value.field == "meshes[0].triangles[0]"


def test_unknown_mesh_flag():
    vertex = plain_vertex(influences_bytes([(0, 1.0)]))
    with pytest.raises(UnsupportedFeatureFlag) as info:
        parse(single_vertex_document(FIXED | 0x0040, vertex))
    assert info.value.field == "meshes[0].flags"


def test_texture_uv_layer_outside_flags():
    data = header_bytes() + u32(1) + pstr("root") + i32(-1) + floats(0, 0, 0) + floats(0, 0, 0, 1)
    data += u32(1) + pstr("m") + u16(FIXED) + u32(1) + pstr("lightmap.png") + u32(1)
    data += u32(0) + u32(0)
    with pytest.raises(InvalidUVLayer) as info:
        parse(data)
    assert info.value.field == "meshes[0].textures[0].uv_layer"


def test_influence_bone_out_of_range():
    vertex = plain_vertex(influences_bytes([(7, 1.0)]))
    with pytest.raises(InvalidInfluence):
        parse(single_vertex_document(FIXED, vertex))


def test_negative_weight():
    vertex = plain_vertex(influences_bytes([(0, 1.5), (1, -0.5)]))
    with pytest.raises(InvalidInfluence):
        parse(single_vertex_document(FIXED, vertex))


# ═══════════════════════════════════════════════════════════════════════════════
# INFLUENCE POLICY
# ═══════════════════════════════════════════════════════════════════════════════

FIVE_INFLUENCES = plain_vertex(
    bytes([5]) + u16(0, 1, 2, 3, 4) + floats(0.1, 0.1, 0.2, 0.3, 0.3))


def test_five_influences_lenient_keeps_top_four():
    model = parse(single_vertex_document(VARIABLE, FIVE_INFLUENCES))
    influences = model.meshes[0].vertices[0].influences
    assert [i.bone_index for i in influences] == [0, 2, 3, 4]
    weights = [i.weight for i in influences]
    assert weights == pytest.approx([0.1 / 0.9, 0.2 / 0.9, 0.3 / 0.9, 0.3 / 0.9], rel=1e-5)
    assert sum(weights) == pytest.approx(1.0, abs=1e-5)


def test_five_influences_strict_rejected():
    with pytest.raises(InfluenceOverflow) as info:
        parse(single_vertex_document(VARIABLE, FIVE_INFLUENCES), ParseOptions(strict=True))
    assert info.value.field == "meshes[0].vertices[0].influences"


def test_variable_influences_within_limit():
    vertex = plain_vertex(bytes([2]) + u16(3, 1) + floats(0.75, 0.25))
    model = parse(single_vertex_document(VARIABLE, vertex), ParseOptions(strict=True))
    assert influence_weights(model) == [(3, 0.75), (1, 0.25)]


def test_weight_sum_lenient_renormalizes():
    vertex = plain_vertex(influences_bytes([(0, 0.5), (1, 0.25)]))
    model = parse(single_vertex_document(FIXED, vertex))
    assert influence_weights(model) == [(0, pytest.approx(2 / 3)), (1, pytest.approx(1 / 3))]


def test_renormalized_weight_below_float32_dropped():
    vertex = plain_vertex(influences_bytes([(0, 2.0), (1, 1e-45)]))
    model = parse(single_vertex_document(FIXED, vertex))
    assert influence_weights(model) == [(0, 1.0)]
    assert model.is_valid()


def test_weight_sum_strict_rejected():
    vertex = plain_vertex(influences_bytes([(0, 0.5), (1, 0.25)]))
    with pytest.raises(WeightSumViolation):
        parse(single_vertex_document(FIXED, vertex), ParseOptions(strict=True))


def test_weight_sum_within_tolerance_untouched():
    vertex = plain_vertex(influences_bytes([(0, 0.5), (1, 0.5), (2, 0.0005)]))
    model = parse(single_vertex_document(FIXED, vertex), ParseOptions(strict=True))
    assert [w for _, w in influence_weights(model)][:2] == [0.5, 0.5]


def test_vertex_without_influences():
    vertex = plain_vertex(influences_bytes([]))
    model = parse(single_vertex_document(FIXED, vertex), ParseOptions(strict=True))
    assert model.meshes[0].vertices[0].influences == []


# ═══════════════════════════════════════════════════════════════════════════════
# LAYOUT VARIANTS
# ═══════════════════════════════════════════════════════════════════════════════

def test_legacy_v1_document():
    model = parse(legacy_v1_bytes())
    assert model.version == FormatVersion(1, 0)
    assert model.header == Header()
    bone = model.bones[0]
    assert bone.name == "root"
    assert bone.translation == Vector3(1.0, 2.0, 3.0)
    assert bone.rotation.is_close(Quaternion.from_euler(0.0, 0.0, math.pi / 2), 1e-6)
    assert model.meshes[0].textures[0].path == "tex.png"


def test_legacy_v2_euler_rotation():
    model = parse(legacy_v2_bytes())
    assert model.header.author == "modder"
    assert model.bones[1].rotation.is_close(Quaternion.from_euler(0.5, 0.0, 0.0), 1e-6)


def test_wide_triangle_indices(monkeypatch):
    monkeypatch.setattr(xps_reader, "WIDE_INDEX_THRESHOLD", 0)
    vertex = plain_vertex(influences_bytes([(0, 1.0)]))
    data = single_vertex_document(FIXED, vertex, triangles=u32(1) + u32(0, 0, 0))
    model = parse(data)
    assert model.meshes[0].triangles == [(0, 0, 0)]


# ═══════════════════════════════════════════════════════════════════════════════
# TRAILING DATA AND FILE ACCESS
# ═══════════════════════════════════════════════════════════════════════════════

def test_trailing_data_allowed_by_default():
    assert parse(reference_bytes() + b"\0\0") == reference_model()


def test_trailing_data_rejected_when_disabled():
    data = reference_bytes()
    with pytest.raises(TrailingData) as info:
        parse(data + b"\0\0", ParseOptions(allow_trailing_data=False))
    assert info.value.offset == len(data)


def test_reader_read_file(tmp_path, caplog):
    path = tmp_path / "model.mesh"
    path.write_bytes(reference_bytes())
    with caplog.at_level(logging.DEBUG, logger="meshforge.formats.xps.reader"):
        model = XPSReader().read_file(str(path))
    assert model == reference_model()
    assert "3 bones, 2 meshes" in caplog.text


def test_reader_missing_file(tmp_path):
    with pytest.raises(OSError):
        XPSReader().read_file(str(tmp_path / "missing.mesh"))
