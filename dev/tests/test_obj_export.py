"""
meshforge - OBJ export tests

Run with pytest, or via the runner: python tests.py --module obj
"""

import sys
from pathlib import Path

# Path setup
TESTS_DIR = Path(__file__).parent
SUITE_DIR = TESTS_DIR.parent.parent
SRC_DIR = SUITE_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from meshforge.formats.xps import export_obj
from meshforge.formats.xps.obj_export import build_obj, material_name

from xps_fixtures import reference_model


def test_material_names():
    model = reference_model()
    assert material_name(model.meshes[0], 0) == "00_body"
    model.meshes[1].name = "long hair"
    assert material_name(model.meshes[1], 1) == "01_long_hair"


def test_obj_lines():
    lines, mtl_lines = build_obj(reference_model(), "character")
    assert "mtllib character.mtl" in lines
    assert "# Author: modder" in lines
    assert sum(1 for line in lines if line.startswith("v ")) == 6
    assert sum(1 for line in lines if line.startswith("vn ")) == 6
    # V is flipped
    assert "vt 0.000000 1.000000" in lines
    # Face numbering continues across meshes
    assert "f 1/1/1 2/2/2 3/3/3" in lines
    assert "f 4/4/4 5/5/5 6/6/6" in lines
    assert "f 6/6/6 5/5/5 4/4/4" in lines
    assert "map_Kd body_d.png" in mtl_lines
    assert "map_Kd body_lm.png" not in mtl_lines


def test_obj_without_normals():
    lines, _ = build_obj(reference_model(), "character", include_normals=False)
    assert not any(line.startswith("vn ") for line in lines)
    assert "f 1/1 2/2 3/3" in lines


def test_export_obj_writes_both_files(tmp_path):
    path = tmp_path / "character.obj"
    export_obj(reference_model(), str(path))
    assert "g 01_hair" in path.read_text()
    mtl = (tmp_path / "character.mtl").read_text()
    assert "newmtl 00_body" in mtl
    assert "map_Kd hair.png" in mtl


def test_export_obj_writes_utf8(tmp_path):
    model = reference_model()
    model.meshes[0].name = "Körper"
    model.meshes[0].textures[0].path = "körper_d.png"
    path = tmp_path / "character.obj"
    export_obj(model, str(path))
    assert "g 00_Körper" in path.read_bytes().decode("utf-8")
    mtl = (tmp_path / "character.mtl").read_bytes().decode("utf-8")
    assert "map_Kd körper_d.png" in mtl
