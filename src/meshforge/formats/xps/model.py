"""
XPS Model - in-memory representation of an XNALara .mesh file

Structure:
  Model
    version   - format revision, selects the on-disk layout
    header    - export metadata (author, device, files, settings)
    skeleton  - flat bone list; parents referenced by index
    meshes[]  - textures, vertices, triangles sharing one set of flags

Cross references (bone parents, vertex influences, triangle corners) are plain
integer indices. Model.validate() checks them without changing anything.
"""

import math
from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import Dict, List, Optional, Tuple

from ...utils.math3d import BoundingBox, Matrix4, Quaternion, Vector2, Vector3
from . import errors
from .options import (
    DEFAULT_COLOR, MAX_INFLUENCES, ROOT_PARENT, SUPPORTED_MAJOR_VERSIONS, WEIGHT_EPSILON,
)


LAYOUT_FLAG_MASK = 0x0007
RENDER_FLAG_MASK = 0xFF00
KNOWN_FLAG_MASK = LAYOUT_FLAG_MASK | RENDER_FLAG_MASK


class MeshFlags(IntFlag):
    """
    Per-mesh feature flags (uint16 on disk).

    The low bits select optional vertex fields. The high byte is render
    state that is carried through without affecting the layout.
    """
    NONE = 0

    SECONDARY_UV = 0x0001
    VERTEX_COLOR = 0x0002
    VARIABLE_INFLUENCES = 0x0004

    BACK_FACE_CULLING = 0x0100
    ALWAYS_FORCE_CULLING = 0x0200
    CAST_SHADOWS = 0x0400
    TANGENT_SPACE_RED = 0x0800
    TANGENT_SPACE_GREEN = 0x1000
    TANGENT_SPACE_BLUE = 0x2000
    GLOSS = 0x4000
    BONE_DIRECTIONS = 0x8000

    @classmethod
    def default_render_state(cls) -> 'MeshFlags':
        return cls.CAST_SHADOWS | cls.TANGENT_SPACE_GREEN | cls.GLOSS

    @property
    def has_secondary_uv(self) -> bool:
        return bool(self & MeshFlags.SECONDARY_UV)

    @property
    def has_vertex_color(self) -> bool:
        return bool(self & MeshFlags.VERTEX_COLOR)

    @property
    def has_variable_influences(self) -> bool:
        return bool(self & MeshFlags.VARIABLE_INFLUENCES)

    @property
    def uv_layer_count(self) -> int:
        return 2 if self.has_secondary_uv else 1

    @property
    def unknown_bits(self) -> int:
        return int(self) & ~KNOWN_FLAG_MASK


@dataclass(frozen=True, order=True)
class FormatVersion:
    """Format revision (major.minor) with the layout switches it implies."""
    major: int = 3
    minor: int = 15

    @classmethod
    def parse(cls, text: str) -> 'FormatVersion':
        """Parse "3.15" style version strings."""
        major, _, minor = text.strip().partition(".")
        return cls(int(major), int(minor or 0))

    @property
    def is_supported(self) -> bool:
        return self.major in SUPPORTED_MAJOR_VERSIONS and 0 <= self.minor <= 0xFFFF

    @property
    def uses_null_terminated_strings(self) -> bool:
        return self.major < 2

    @property
    def has_header_metadata(self) -> bool:
        return self.major >= 2

    @property
    def uses_euler_rotation(self) -> bool:
        return self.major <= 2 and self.minor <= 12

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


DEFAULT_VERSION = FormatVersion(3, 15)


@dataclass
class Header:
    """Export metadata. settings is an opaque block kept for round trips."""
    author: str = ""
    device: str = ""
    files: str = ""
    settings: bytes = b""


@dataclass
class Bone:
    """Skeleton bone with local transform."""
    name: str = ""
    parent_index: int = ROOT_PARENT
    translation: Vector3 = field(default_factory=Vector3)
    rotation: Quaternion = field(default_factory=Quaternion)

    @property
    def is_root(self) -> bool:
        return self.parent_index == ROOT_PARENT


@dataclass
class Skeleton:
    """Bone forest. A parent always precedes its children."""
    bones: List[Bone] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.bones)

    def find(self, name: str) -> Optional[int]:
        """Index of the first bone with this name."""
        for index, bone in enumerate(self.bones):
            if bone.name == name:
                return index
        return None

    def roots(self) -> List[int]:
        return [i for i, bone in enumerate(self.bones) if bone.is_root]

    def children(self, index: int) -> List[int]:
        return [i for i, bone in enumerate(self.bones) if bone.parent_index == index]

    def world_matrices(self) -> List[Matrix4]:
        """Compose local transforms down the hierarchy."""
        matrices: List[Matrix4] = []
        for index, bone in enumerate(self.bones):
            local = Matrix4.from_transform(bone.translation, bone.rotation)
            parent = bone.parent_index
            if 0 <= parent < index:
                matrices.append(matrices[parent] * local)
            else:
                matrices.append(local)
        return matrices

    def inverse_bind_matrices(self) -> List[Matrix4]:
        return [m.inverse_rigid() for m in self.world_matrices()]


@dataclass
class BoneInfluence:
    """One (bone, weight) skinning entry."""
    bone_index: int = 0
    weight: float = 0.0


@dataclass
class Vertex:
    """Skinned vertex. influences holds only non-zero weights."""
    position: Vector3 = field(default_factory=Vector3)
    normal: Vector3 = field(default_factory=Vector3)
    color: Tuple[int, int, int, int] = DEFAULT_COLOR
    uvs: List[Vector2] = field(default_factory=lambda: [Vector2()])
    influences: List[BoneInfluence] = field(default_factory=list)

    @property
    def weight_sum(self) -> float:
        return sum(i.weight for i in self.influences)


@dataclass
class TextureRef:
    """Texture file plus the UV layer it samples."""
    path: str = ""
    uv_layer: int = 0


@dataclass
class Mesh:
    """Named vertex group with one set of optional-field flags."""
    name: str = ""
    flags: MeshFlags = field(default_factory=MeshFlags.default_render_state)
    textures: List[TextureRef] = field(default_factory=list)
    vertices: List[Vertex] = field(default_factory=list)
    triangles: List[Tuple[int, int, int]] = field(default_factory=list)

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)

    def bounding_box(self) -> BoundingBox:
        return BoundingBox.from_points(v.position for v in self.vertices)


class ViolationType(Enum):
    """Kinds of model invariant violations."""
    BONE_PARENT = "bone_parent"
    INFLUENCE_COUNT = "influence_count"
    INFLUENCE = "influence"
    WEIGHT_SUM = "weight_sum"
    TRIANGLE_INDEX = "triangle_index"
    UV_LAYER = "uv_layer"
    COLOR = "color"
    FEATURE_FLAG = "feature_flag"


VIOLATION_ERRORS: Dict[ViolationType, type] = {
    ViolationType.BONE_PARENT: errors.InvalidBoneParentIndex,
    ViolationType.INFLUENCE_COUNT: errors.InfluenceOverflow,
    ViolationType.INFLUENCE: errors.InvalidInfluence,
    ViolationType.WEIGHT_SUM: errors.WeightSumViolation,
    ViolationType.TRIANGLE_INDEX: errors.InvalidTriangleIndex,
    ViolationType.UV_LAYER: errors.InvalidUVLayer,
    ViolationType.COLOR: errors.InvalidColor,
    ViolationType.FEATURE_FLAG: errors.UnsupportedFeatureFlag,
}


@dataclass
class Violation:
    """A single invariant violation, located by field path."""
    violation_type: ViolationType
    path: str
    message: str

    def to_error(self, offset: Optional[int] = None) -> errors.XPSError:
        error_cls = VIOLATION_ERRORS[self.violation_type]
        return error_cls(self.message, offset=offset, field=self.path)

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def check_parent_index(parent_index: int, own_index: int, bone_count: int) -> Optional[str]:
    """Describe what is wrong with a bone parent reference, or None."""
    if parent_index == ROOT_PARENT:
        return None
    if parent_index < 0 or parent_index >= bone_count:
        return f"parent index {parent_index} does not reference a bone"
    if parent_index >= own_index:
        return f"parent index {parent_index} is not before bone {own_index}"
    return None


def check_influences(influences: List[BoneInfluence], bone_count: int) -> Optional[Violation]:
    """Validate one vertex's influence list. path is left empty for the caller."""
    if len(influences) > MAX_INFLUENCES:
        return Violation(ViolationType.INFLUENCE_COUNT, "",
                         f"{len(influences)} influences (max {MAX_INFLUENCES})")
    for influence in influences:
        if not 0 <= influence.bone_index < bone_count:
            return Violation(ViolationType.INFLUENCE, "",
                             f"bone index {influence.bone_index} out of range "
                             f"({bone_count} bones)")
        weight = influence.weight
        if not math.isfinite(weight) or weight <= 0.0 or weight > 1.0 + WEIGHT_EPSILON:
            return Violation(ViolationType.INFLUENCE, "",
                             f"weight {weight} outside (0, 1]")
    if influences:
        total = sum(i.weight for i in influences)
        if abs(total - 1.0) > WEIGHT_EPSILON:
            return Violation(ViolationType.WEIGHT_SUM, "",
                             f"weights sum to {total:.6f}, expected 1.0")
    return None


@dataclass
class Model:
    """Complete XPS model."""
    version: FormatVersion = DEFAULT_VERSION
    header: Header = field(default_factory=Header)
    skeleton: Skeleton = field(default_factory=Skeleton)
    meshes: List[Mesh] = field(default_factory=list)

    @property
    def bones(self) -> List[Bone]:
        return self.skeleton.bones

    @property
    def vertex_count(self) -> int:
        return sum(m.vertex_count for m in self.meshes)

    @property
    def triangle_count(self) -> int:
        return sum(m.triangle_count for m in self.meshes)

    def bounding_box(self) -> BoundingBox:
        box = BoundingBox()
        for mesh in self.meshes:
            box.merge(mesh.bounding_box())
        return box

    def get_all_textures(self) -> List[str]:
        """Distinct texture paths in first-use order."""
        textures = []
        for mesh in self.meshes:
            for texture in mesh.textures:
                if texture.path not in textures:
                    textures.append(texture.path)
        return textures

    def validate(self) -> List[Violation]:
        """Check every invariant; returns violations in document order."""
        violations: List[Violation] = []
        bone_count = len(self.skeleton)

        for index, bone in enumerate(self.skeleton.bones):
            problem = check_parent_index(bone.parent_index, index, bone_count)
            if problem:
                violations.append(Violation(
                    ViolationType.BONE_PARENT, f"bones[{index}].parent_index", problem))

        for mesh_index, mesh in enumerate(self.meshes):
            violations.extend(self._validate_mesh(mesh, f"meshes[{mesh_index}]", bone_count))

        return violations

    def is_valid(self) -> bool:
        return not self.validate()

    def _validate_mesh(self, mesh: Mesh, path: str, bone_count: int) -> List[Violation]:
        violations: List[Violation] = []
        flags = MeshFlags(mesh.flags)

        if flags.unknown_bits:
            violations.append(Violation(
                ViolationType.FEATURE_FLAG, f"{path}.flags",
                f"unknown flag bits 0x{flags.unknown_bits:04X}"))
        layers = flags.uv_layer_count

        for index, texture in enumerate(mesh.textures):
            if not 0 <= texture.uv_layer < layers:
                violations.append(Violation(
                    ViolationType.UV_LAYER, f"{path}.textures[{index}].uv_layer",
                    f"UV layer {texture.uv_layer} but mesh has {layers}"))

        for index, vertex in enumerate(mesh.vertices):
            vpath = f"{path}.vertices[{index}]"
            if len(vertex.uvs) != layers:
                violations.append(Violation(
                    ViolationType.UV_LAYER, f"{vpath}.uvs",
                    f"{len(vertex.uvs)} UV pairs but mesh flags declare {layers}"))
            if len(vertex.color) != 4 or any(
                    not isinstance(c, int) or not 0 <= c <= 255 for c in vertex.color):
                violations.append(Violation(
                    ViolationType.COLOR, f"{vpath}.color",
                    f"color {vertex.color} is not four 0-255 channels"))
            problem = check_influences(vertex.influences, bone_count)
            if problem:
                problem.path = f"{vpath}.influences"
                violations.append(problem)

        vertex_count = len(mesh.vertices)
        for index, triangle in enumerate(mesh.triangles):
            if len(triangle) != 3 or any(not 0 <= i < vertex_count for i in triangle):
                violations.append(Violation(
                    ViolationType.TRIANGLE_INDEX, f"{path}.triangles[{index}]",
                    f"triangle {tuple(triangle)} outside {vertex_count} vertices"))

        return violations
