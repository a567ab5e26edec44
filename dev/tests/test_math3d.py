"""
meshforge - math helper tests

Run with pytest, or via the runner: python tests.py --module math3d
"""

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

from meshforge.utils.math3d import (
    BoundingBox, Matrix4, Quaternion, Vector2, Vector3, Vector4,
)


# ═══════════════════════════════════════════════════════════════════════════════
# VECTORS
# ═══════════════════════════════════════════════════════════════════════════════

def test_vector2_arithmetic():
    assert Vector2(1, 2) + Vector2(3, 4) == Vector2(4, 6)
    assert Vector2(3, 4) - Vector2(1, 1) == Vector2(2, 3)
    assert (Vector2(1, 2) * 2).as_tuple() == (2, 4)


def test_vector3_products():
    x, y = Vector3(1, 0, 0), Vector3(0, 1, 0)
    assert x.dot(y) == 0
    assert x.cross(y) == Vector3(0, 0, 1)
    assert -x == Vector3(-1, 0, 0)


def test_vector3_normalize():
    v = Vector3(3, 0, 4).normalize()
    assert v.length() == pytest.approx(1.0)
    assert v.is_close(Vector3(0.6, 0, 0.8))
    assert Vector3().normalize() == Vector3()


def test_vector3_min_max():
    a, b = Vector3(1, 5, -2), Vector3(3, 0, -1)
    assert a.min(b) == Vector3(1, 0, -2)
    assert a.max(b) == Vector3(3, 5, -1)


def test_vector4_normalize():
    v = Vector4(1, 1, 1, 1).normalize()
    assert v.as_tuple() == pytest.approx((0.5, 0.5, 0.5, 0.5))
    assert Vector4().normalize() == Vector4()


# ═══════════════════════════════════════════════════════════════════════════════
# QUATERNIONS
# ═══════════════════════════════════════════════════════════════════════════════

def test_identity_rotation():
    q = Quaternion()
    assert q.rotate(Vector3(1, 2, 3)).is_close(Vector3(1, 2, 3))
    assert q.to_euler() == (0.0, 0.0, 0.0)


def test_rotate_quarter_turn_about_z():
    q = Quaternion.from_euler(0.0, 0.0, math.pi / 2)
    assert q.rotate(Vector3(1, 0, 0)).is_close(Vector3(0, 1, 0))


@pytest.mark.parametrize("angles", [
    (0.3, 0.0, 0.0),
    (0.0, -0.7, 0.0),
    (0.0, 0.0, 1.2),
    (0.4, -0.5, 2.0),
    (-1.0, 1.2, -2.5),
])
def test_euler_round_trip(angles):
    q = Quaternion.from_euler(*angles)
    assert q.length() == pytest.approx(1.0)
    assert q.to_euler() == pytest.approx(angles)
    assert Quaternion.from_euler(*q.to_euler()).is_close(q)


def test_euler_order_applies_x_first():
    q = Quaternion.from_euler(0.3, 0.6, 0.9)
    composed = (Quaternion.from_euler(0, 0, 0.9) *
                Quaternion.from_euler(0, 0.6, 0) *
                Quaternion.from_euler(0.3, 0, 0))
    assert q.is_close(composed)


def test_is_close_ignores_sign():
    q = Quaternion(0.5, 0.5, 0.5, 0.5)
    assert q.is_close(Quaternion(-0.5, -0.5, -0.5, -0.5))
    assert not q.is_close(Quaternion())


def test_normalize_degenerate():
    assert Quaternion(0, 0, 0, 0).normalize() == Quaternion(1, 0, 0, 0)
    assert Quaternion(2, 0, 0, 0).normalize() == Quaternion(1, 0, 0, 0)


# ═══════════════════════════════════════════════════════════════════════════════
# MATRICES
# ═══════════════════════════════════════════════════════════════════════════════

def test_from_transform_places_translation():
    m = Matrix4.from_transform(Vector3(1, 2, 3), Quaternion())
    assert m.translation == Vector3(1, 2, 3)
    assert m.transform_point(Vector3(1, 1, 1)).is_close(Vector3(2, 3, 4))


def test_matrix_matches_quaternion_rotation():
    q = Quaternion.from_euler(0.4, -0.2, 1.1)
    p = Vector3(0.5, -1.0, 2.0)
    assert q.to_matrix().transform_point(p).is_close(q.rotate(p))


def test_matrix_composition_order():
    parent = Matrix4.from_transform(Vector3(0, 1, 0), Quaternion.from_euler(0, 0, math.pi / 2))
    child = Matrix4.from_transform(Vector3(1, 0, 0), Quaternion())
    world = parent * child
    # Child offset is rotated into +Y, then lifted by the parent
    assert world.translation.is_close(Vector3(0, 2, 0))


def test_inverse_rigid():
    m = Matrix4.from_transform(Vector3(1, -2, 3), Quaternion.from_euler(0.3, 0.2, -0.9))
    p = Vector3(4, 5, 6)
    assert m.inverse_rigid().transform_point(m.transform_point(p)).is_close(p)
    identity = (m * m.inverse_rigid()).m
    assert identity == pytest.approx(Matrix4.identity().m, abs=1e-9)


# ═══════════════════════════════════════════════════════════════════════════════
# BOUNDS
# ═══════════════════════════════════════════════════════════════════════════════

def test_bounding_box_from_points():
    box = BoundingBox.from_points([Vector3(1, 2, 3), Vector3(-1, 0, 5), Vector3(0, 4, 4)])
    assert box.minimum == Vector3(-1, 0, 3)
    assert box.maximum == Vector3(1, 4, 5)
    assert box.size == Vector3(2, 4, 2)
    assert box.center == Vector3(0, 2, 4)


def test_empty_bounding_box():
    box = BoundingBox.from_points([])
    assert box.is_empty
    assert box.size == Vector3()
    box.merge(BoundingBox())
    assert box.is_empty


def test_bounding_box_merge():
    box = BoundingBox.from_points([Vector3(0, 0, 0)])
    box.merge(BoundingBox.from_points([Vector3(2, -1, 1)]))
    assert box.minimum == Vector3(0, -1, 0)
    assert box.maximum == Vector3(2, 0, 1)
