"""
Vector, quaternion and matrix helpers for bone transforms and bounds.

Matrices are 4x4, stored column-major as flat lists of 16 floats (the glTF
convention), so ``m[12:15]`` is the translation column.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple


@dataclass
class Vector2:
    """2D vector (texture coordinate)."""
    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: 'Vector2') -> 'Vector2':
        return Vector2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: 'Vector2') -> 'Vector2':
        return Vector2(self.x - other.x, self.y - other.y)

    def __mul__(self, scalar: float) -> 'Vector2':
        return Vector2(self.x * scalar, self.y * scalar)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass
class Vector3:
    """3D vector/position."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __add__(self, other: 'Vector3') -> 'Vector3':
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: 'Vector3') -> 'Vector3':
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> 'Vector3':
        return Vector3(self.x * scalar, self.y * scalar, self.z * scalar)

    def __neg__(self) -> 'Vector3':
        return Vector3(-self.x, -self.y, -self.z)

    def dot(self, other: 'Vector3') -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: 'Vector3') -> 'Vector3':
        return Vector3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def length(self) -> float:
        return math.sqrt(self.x**2 + self.y**2 + self.z**2)

    def normalize(self) -> 'Vector3':
        """Return unit-length copy (zero vector stays zero)."""
        mag = self.length()
        if mag < 1e-12:
            return Vector3()
        return self * (1.0 / mag)

    def min(self, other: 'Vector3') -> 'Vector3':
        return Vector3(min(self.x, other.x), min(self.y, other.y), min(self.z, other.z))

    def max(self, other: 'Vector3') -> 'Vector3':
        return Vector3(max(self.x, other.x), max(self.y, other.y), max(self.z, other.z))

    def is_close(self, other: 'Vector3', tolerance: float = 1e-5) -> bool:
        return (abs(self.x - other.x) <= tolerance and
                abs(self.y - other.y) <= tolerance and
                abs(self.z - other.z) <= tolerance)

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass
class Vector4:
    """4D vector."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 0.0

    def __add__(self, other: 'Vector4') -> 'Vector4':
        return Vector4(self.x + other.x, self.y + other.y, self.z + other.z, self.w + other.w)

    def __mul__(self, scalar: float) -> 'Vector4':
        return Vector4(self.x * scalar, self.y * scalar, self.z * scalar, self.w * scalar)

    def dot(self, other: 'Vector4') -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z + self.w * other.w

    def length(self) -> float:
        return math.sqrt(self.dot(self))

    def normalize(self) -> 'Vector4':
        mag = self.length()
        if mag < 1e-12:
            return Vector4()
        return self * (1.0 / mag)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.z, self.w)


@dataclass
class Quaternion:
    """Rotation quaternion (W, X, Y, Z)."""
    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def from_euler(cls, x: float, y: float, z: float) -> 'Quaternion':
        """Build from XYZ Euler angles in radians (X applied first)."""
        cr, sr = math.cos(x * 0.5), math.sin(x * 0.5)
        cp, sp = math.cos(y * 0.5), math.sin(y * 0.5)
        cy, sy = math.cos(z * 0.5), math.sin(z * 0.5)
        return cls(
            cr * cp * cy + sr * sp * sy,
            sr * cp * cy - cr * sp * sy,
            cr * sp * cy + sr * cp * sy,
            cr * cp * sy - sr * sp * cy,
        )

    def __mul__(self, other: 'Quaternion') -> 'Quaternion':
        """Hamilton product: ``a * b`` applies b first, then a."""
        return Quaternion(
            self.w * other.w - self.x * other.x - self.y * other.y - self.z * other.z,
            self.w * other.x + self.x * other.w + self.y * other.z - self.z * other.y,
            self.w * other.y - self.x * other.z + self.y * other.w + self.z * other.x,
            self.w * other.z + self.x * other.y - self.y * other.x + self.z * other.w,
        )

    def length(self) -> float:
        return math.sqrt(self.w**2 + self.x**2 + self.y**2 + self.z**2)

    def normalize(self) -> 'Quaternion':
        """Return normalized quaternion."""
        mag = self.length()
        if mag < 0.0001:
            return Quaternion(1, 0, 0, 0)
        return Quaternion(self.w/mag, self.x/mag, self.y/mag, self.z/mag)

    def conjugate(self) -> 'Quaternion':
        return Quaternion(self.w, -self.x, -self.y, -self.z)

    def rotate(self, v: Vector3) -> Vector3:
        """Rotate a vector by this (unit) quaternion."""
        p = self * Quaternion(0.0, v.x, v.y, v.z) * self.conjugate()
        return Vector3(p.x, p.y, p.z)

    def to_euler(self) -> Tuple[float, float, float]:
        """Convert to XYZ Euler angles (radians), inverse of from_euler."""
        # Roll (x-axis rotation)
        sinr_cosp = 2 * (self.w * self.x + self.y * self.z)
        cosr_cosp = 1 - 2 * (self.x * self.x + self.y * self.y)
        roll = math.atan2(sinr_cosp, cosr_cosp)

        # Pitch (y-axis rotation)
        sinp = 2 * (self.w * self.y - self.z * self.x)
        if abs(sinp) >= 1:
            pitch = math.copysign(math.pi / 2, sinp)
        else:
            pitch = math.asin(sinp)

        # Yaw (z-axis rotation)
        siny_cosp = 2 * (self.w * self.z + self.x * self.y)
        cosy_cosp = 1 - 2 * (self.y * self.y + self.z * self.z)
        yaw = math.atan2(siny_cosp, cosy_cosp)

        return (roll, pitch, yaw)

    def to_matrix(self) -> 'Matrix4':
        """Rotation matrix for this quaternion."""
        return Matrix4.from_transform(Vector3(), self)

    def is_close(self, other: 'Quaternion', tolerance: float = 1e-5) -> bool:
        """Compare rotations; q and -q describe the same rotation."""
        same = max(abs(self.w - other.w), abs(self.x - other.x),
                   abs(self.y - other.y), abs(self.z - other.z))
        flipped = max(abs(self.w + other.w), abs(self.x + other.x),
                      abs(self.y + other.y), abs(self.z + other.z))
        return min(same, flipped) <= tolerance


@dataclass
class Matrix4:
    """4x4 transform, column-major."""
    m: List[float] = field(default_factory=lambda: [
        1.0, 0.0, 0.0, 0.0,
        0.0, 1.0, 0.0, 0.0,
        0.0, 0.0, 1.0, 0.0,
        0.0, 0.0, 0.0, 1.0,
    ])

    @classmethod
    def identity(cls) -> 'Matrix4':
        return cls()

    @classmethod
    def from_transform(cls, translation: Vector3, rotation: Quaternion) -> 'Matrix4':
        """Rotation followed by translation."""
        q = rotation.normalize()

        xx = q.x * q.x
        yy = q.y * q.y
        zz = q.z * q.z
        xy = q.x * q.y
        xz = q.x * q.z
        yz = q.y * q.z
        wx = q.w * q.x
        wy = q.w * q.y
        wz = q.w * q.z

        return cls([
            1 - 2 * (yy + zz), 2 * (xy + wz), 2 * (xz - wy), 0.0,
            2 * (xy - wz), 1 - 2 * (xx + zz), 2 * (yz + wx), 0.0,
            2 * (xz + wy), 2 * (yz - wx), 1 - 2 * (xx + yy), 0.0,
            translation.x, translation.y, translation.z, 1.0,
        ])

    def __mul__(self, other: 'Matrix4') -> 'Matrix4':
        """Compose: ``(a * b)`` applies b first, then a."""
        a, b = self.m, other.m
        result = [0.0] * 16
        for col in range(4):
            for row in range(4):
                for k in range(4):
                    result[col * 4 + row] += a[k * 4 + row] * b[col * 4 + k]
        return Matrix4(result)

    @property
    def translation(self) -> Vector3:
        return Vector3(self.m[12], self.m[13], self.m[14])

    def transform_point(self, v: Vector3) -> Vector3:
        m = self.m
        return Vector3(
            m[0] * v.x + m[4] * v.y + m[8] * v.z + m[12],
            m[1] * v.x + m[5] * v.y + m[9] * v.z + m[13],
            m[2] * v.x + m[6] * v.y + m[10] * v.z + m[14],
        )

    def inverse_rigid(self) -> 'Matrix4':
        """Invert a rotation + translation matrix (no scale or shear)."""
        m = self.m
        inv = [
            m[0], m[4], m[8], 0.0,
            m[1], m[5], m[9], 0.0,
            m[2], m[6], m[10], 0.0,
            0.0, 0.0, 0.0, 1.0,
        ]

        tx, ty, tz = m[12], m[13], m[14]
        inv[12] = -(inv[0] * tx + inv[4] * ty + inv[8] * tz)
        inv[13] = -(inv[1] * tx + inv[5] * ty + inv[9] * tz)
        inv[14] = -(inv[2] * tx + inv[6] * ty + inv[10] * tz)

        return Matrix4(inv)


@dataclass
class BoundingBox:
    """Axis-aligned bounds accumulated from points."""
    minimum: Optional[Vector3] = None
    maximum: Optional[Vector3] = None

    @classmethod
    def from_points(cls, points: Iterable[Vector3]) -> 'BoundingBox':
        box = cls()
        box.extend(points)
        return box

    @property
    def is_empty(self) -> bool:
        return self.minimum is None

    def add_point(self, point: Vector3):
        if self.minimum is None:
            self.minimum = Vector3(point.x, point.y, point.z)
            self.maximum = Vector3(point.x, point.y, point.z)
        else:
            self.minimum = self.minimum.min(point)
            self.maximum = self.maximum.max(point)

    def extend(self, points: Iterable[Vector3]):
        for point in points:
            self.add_point(point)

    def merge(self, other: 'BoundingBox'):
        if not other.is_empty:
            self.add_point(other.minimum)
            self.add_point(other.maximum)

    @property
    def size(self) -> Vector3:
        if self.is_empty:
            return Vector3()
        return self.maximum - self.minimum

    @property
    def center(self) -> Vector3:
        if self.is_empty:
            return Vector3()
        return (self.minimum + self.maximum) * 0.5
