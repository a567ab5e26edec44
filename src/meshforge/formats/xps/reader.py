"""
XPS Reader - binary XNALara .mesh parser

Each record is read by a small function that takes the IoBuffer cursor and
returns the decoded value. Failures raise an XPSImportError carrying the byte
offset and the dotted path of the field being read. Nothing is returned
until the whole document has been read and validated.

Layout (little-endian):
  1. HEADER    - magic, version, "XNAaraL", metadata block (version >= 2)
  2. BONES     - count, then name / parent / translation / rotation
  3. MESHES    - count, then per mesh:
                 name, flags, textures[], vertices[], triangles[]
"""

import logging
import math
import struct
from typing import List, Optional, Tuple

from ...utils.binary import ByteOrder, EndOfBufferError, IoBuffer, StringDecodeError
from ...utils.math3d import Quaternion, Vector2, Vector3
from .errors import (
    CountOverflow, InfluenceOverflow, InvalidBoneParentIndex, InvalidInfluence,
    InvalidMagicOrVersion, InvalidTriangleIndex, InvalidUVLayer, StringEncodingError,
    TrailingData, UnexpectedEndOfInput, UnsupportedFeatureFlag, WeightSumViolation,
)
from .model import (
    Bone, BoneInfluence, FormatVersion, Header, Mesh, MeshFlags, Model, Skeleton,
    TextureRef, Vertex, check_parent_index,
)
from .options import (
    DEFAULT_COLOR, MAGIC, MAGIC_STRING, MAX_INFLUENCES, ParseOptions, WEIGHT_EPSILON,
    WIDE_INDEX_THRESHOLD,
)

logger = logging.getLogger(__name__)


def to_float32(value: float) -> float:
    """Round a Python float to the nearest float32 value."""
    return struct.unpack('<f', struct.pack('<f', value))[0]


# Primitive helpers

def read_string(buf: IoBuffer, version: FormatVersion) -> str:
    """Read a string in the convention the version uses."""
    if version.uses_null_terminated_strings:
        return buf.read_null_terminated_string()
    return buf.read_prefixed_string()


def read_count(buf: IoBuffer, name: str, limit: int) -> int:
    """Read a u32 record count and check it against its limit."""
    with buf.field(name):
        start = buf.position
        count = buf.read_uint32()
        if count > limit:
            raise buf.error(CountOverflow, f"{name} {count} exceeds limit {limit}", start)
    return count


# Header

def read_version(buf: IoBuffer) -> FormatVersion:
    """Read and check the magic number and version."""
    with buf.field("magic"):
        start = buf.position
        magic = buf.read_uint32()
        if magic != MAGIC:
            raise buf.error(InvalidMagicOrVersion,
                            f"Not an XNALara model file: magic {magic} (0x{magic:X})", start)

    with buf.field("version"):
        start = buf.position
        version = FormatVersion(buf.read_uint16(), buf.read_uint16())
        if not version.is_supported:
            raise buf.error(InvalidMagicOrVersion, f"Unsupported format version {version}", start)
    return version


def read_header(buf: IoBuffer, options: ParseOptions) -> Tuple[FormatVersion, Header]:
    """Read the file header and metadata block."""
    with buf.field("header"):
        version = read_version(buf)

        with buf.field("magic_string"):
            start = buf.position
            magic_string = read_string(buf, version)
            if magic_string != MAGIC_STRING:
                raise buf.error(InvalidMagicOrVersion,
                                f"Not an XNALara model file: {magic_string!r}", start)

        header = Header()
        if version.has_header_metadata:
            settings_words = read_count(buf, "settings_length", options.max_settings_words)
            # Device and author names are stored reversed
            with buf.field("device"):
                header.device = read_string(buf, version)[::-1]
            with buf.field("author"):
                header.author = read_string(buf, version)[::-1]
            with buf.field("files"):
                header.files = read_string(buf, version)
            with buf.field("settings"):
                header.settings = buf.read_bytes(settings_words * 4)

    return version, header


# Skeleton

def read_bone(buf: IoBuffer, index: int, bone_count: int, version: FormatVersion) -> Bone:
    """Read one bone record."""
    bone = Bone()
    with buf.field("name"):
        bone.name = read_string(buf, version)

    with buf.field("parent_index"):
        start = buf.position
        bone.parent_index = buf.read_int32()
        problem = check_parent_index(bone.parent_index, index, bone_count)
        if problem:
            raise buf.error(InvalidBoneParentIndex, problem, start)

    with buf.field("translation"):
        bone.translation = Vector3(*buf.read_floats(3))

    with buf.field("rotation"):
        if version.uses_euler_rotation:
            bone.rotation = Quaternion.from_euler(*buf.read_floats(3))
        else:
            x, y, z, w = buf.read_floats(4)
            bone.rotation = Quaternion(w, x, y, z)
    return bone


def read_skeleton(buf: IoBuffer, version: FormatVersion, options: ParseOptions) -> Skeleton:
    bone_count = read_count(buf, "bone_count", options.max_bones)
    skeleton = Skeleton()
    for index in range(bone_count):
        with buf.field(f"bones[{index}]"):
            skeleton.bones.append(read_bone(buf, index, bone_count, version))
    return skeleton


# Meshes

def read_mesh_flags(buf: IoBuffer) -> MeshFlags:
    with buf.field("flags"):
        start = buf.position
        flags = MeshFlags(buf.read_uint16())
        if flags.unknown_bits:
            raise buf.error(UnsupportedFeatureFlag,
                            f"Unknown mesh flag bits 0x{flags.unknown_bits:04X}", start)
    return flags


def read_texture(buf: IoBuffer, flags: MeshFlags, version: FormatVersion) -> TextureRef:
    texture = TextureRef()
    with buf.field("path"):
        texture.path = read_string(buf, version)
    with buf.field("uv_layer"):
        start = buf.position
        texture.uv_layer = buf.read_uint32()
        if texture.uv_layer >= flags.uv_layer_count:
            raise buf.error(InvalidUVLayer,
                            f"UV layer {texture.uv_layer} but mesh has "
                            f"{flags.uv_layer_count}", start)
    return texture


def strongest_influences(influences: List[BoneInfluence], limit: int) -> List[BoneInfluence]:
    """Keep the `limit` heaviest entries in their original order; ties favour earlier ones."""
    ranked = sorted(range(len(influences)), key=lambda i: -influences[i].weight)
    keep = sorted(ranked[:limit])
    return [influences[i] for i in keep]


def normalize_influences(influences: List[BoneInfluence]) -> List[BoneInfluence]:
    """
    Scale weights to sum to 1.0, rounded to float32 so they survive re-export.

    Weights that round to 0.0 are dropped like zero-weight padding.
    """
    total = sum(i.weight for i in influences)
    scaled = [BoneInfluence(i.bone_index, to_float32(i.weight / total)) for i in influences]
    return [i for i in scaled if i.weight != 0.0]


def read_influences(buf: IoBuffer, flags: MeshFlags, bone_count: int,
                    options: ParseOptions) -> List[BoneInfluence]:
    """
    Read the bone indices and weights of one vertex.

    Zero-weight entries are padding and are dropped. More than
    MAX_INFLUENCES entries, or a sum away from 1.0, is an error in strict
    mode; otherwise the strongest entries are kept and renormalized.
    """
    start = buf.position
    if flags.has_variable_influences:
        with buf.field("influence_count"):
            count = buf.read_uint8()
    else:
        count = MAX_INFLUENCES

    with buf.field("bone_indices"):
        indices = [buf.read_uint16() for _ in range(count)]
    with buf.field("weights"):
        weights = buf.read_floats(count)

    with buf.field("influences"):
        influences = [BoneInfluence(i, w) for i, w in zip(indices, weights) if w != 0.0]
        for influence in influences:
            if not math.isfinite(influence.weight) or influence.weight < 0.0:
                raise buf.error(InvalidInfluence, f"Bad weight {influence.weight}", start)
            if influence.bone_index >= bone_count:
                raise buf.error(InvalidInfluence,
                                f"Bone index {influence.bone_index} out of range "
                                f"({bone_count} bones)", start)

        if len(influences) > MAX_INFLUENCES:
            if options.strict:
                raise buf.error(InfluenceOverflow,
                                f"{len(influences)} influences (max {MAX_INFLUENCES})", start)
            influences = normalize_influences(strongest_influences(influences, MAX_INFLUENCES))

        if influences:
            total = sum(i.weight for i in influences)
            if abs(total - 1.0) > WEIGHT_EPSILON:
                if options.strict:
                    raise buf.error(WeightSumViolation,
                                    f"Weights sum to {total:.6f}, expected 1.0", start)
                influences = normalize_influences(influences)
    return influences


def read_vertex(buf: IoBuffer, flags: MeshFlags, bone_count: int,
                options: ParseOptions) -> Vertex:
    """Read one vertex; which fields exist depends on the mesh flags."""
    vertex = Vertex()
    with buf.field("position"):
        vertex.position = Vector3(*buf.read_floats(3))
    with buf.field("normal"):
        vertex.normal = Vector3(*buf.read_floats(3))

    if flags.has_vertex_color:
        with buf.field("color"):
            vertex.color = tuple(buf.read_bytes(4))
    else:
        vertex.color = DEFAULT_COLOR

    with buf.field("uvs"):
        vertex.uvs = [Vector2(*buf.read_floats(2)) for _ in range(flags.uv_layer_count)]

    vertex.influences = read_influences(buf, flags, bone_count, options)
    return vertex


def read_triangle(buf: IoBuffer, wide: bool, vertex_count: int) -> Tuple[int, int, int]:
    start = buf.position
    if wide:
        triangle = (buf.read_uint32(), buf.read_uint32(), buf.read_uint32())
    else:
        triangle = (buf.read_uint16(), buf.read_uint16(), buf.read_uint16())
    for index in triangle:
        if index >= vertex_count:
            raise buf.error(InvalidTriangleIndex,
                            f"Index {index} outside {vertex_count} vertices", start)
    return triangle


def read_mesh(buf: IoBuffer, version: FormatVersion, bone_count: int,
              options: ParseOptions) -> Mesh:
    """Read one mesh record with its textures, vertices and triangles."""
    mesh = Mesh()
    with buf.field("name"):
        mesh.name = read_string(buf, version)
    mesh.flags = read_mesh_flags(buf)

    texture_count = read_count(buf, "texture_count", options.max_textures)
    for index in range(texture_count):
        with buf.field(f"textures[{index}]"):
            mesh.textures.append(read_texture(buf, mesh.flags, version))

    vertex_count = read_count(buf, "vertex_count", options.max_vertices)
    for index in range(vertex_count):
        with buf.field(f"vertices[{index}]"):
            mesh.vertices.append(read_vertex(buf, mesh.flags, bone_count, options))

    triangle_count = read_count(buf, "triangle_count", options.max_triangles)
    wide = vertex_count > WIDE_INDEX_THRESHOLD
    for index in range(triangle_count):
        with buf.field(f"triangles[{index}]"):
            mesh.triangles.append(read_triangle(buf, wide, vertex_count))
    return mesh


def read_model(buf: IoBuffer, options: ParseOptions) -> Model:
    """Read a whole document from the cursor."""
    version, header = read_header(buf, options)
    skeleton = read_skeleton(buf, version, options)
    bone_count = len(skeleton)

    meshes: List[Mesh] = []
    mesh_count = read_count(buf, "mesh_count", options.max_meshes)
    for index in range(mesh_count):
        with buf.field(f"meshes[{index}]"):
            meshes.append(read_mesh(buf, version, bone_count, options))

    if buf.has_more and not options.allow_trailing_data:
        raise buf.error(TrailingData, f"{buf.remaining} byte(s) after the last mesh")

    model = Model(version=version, header=header, skeleton=skeleton, meshes=meshes)
    violations = model.validate()
    if violations:
        raise violations[0].to_error(offset=buf.position)
    return model


def parse(data: bytes, options: Optional[ParseOptions] = None) -> Model:
    """
    Parse an XPS model from bytes.

    Raises:
        XPSImportError: any malformed input. No partial model is returned.
    """
    options = options or ParseOptions()
    buf = IoBuffer.from_bytes(bytes(data), ByteOrder.LITTLE_ENDIAN)
    try:
        return read_model(buf, options)
    except EndOfBufferError as e:
        raise UnexpectedEndOfInput(e.message, offset=e.offset, field=e.field) from e
    except StringDecodeError as e:
        raise StringEncodingError(e.message, offset=e.offset, field=e.field) from e


class XPSReader:
    """
    Parser for XNALara .mesh files.

    Usage:
        reader = XPSReader()
        model = reader.read_file("character.mesh")
        # or
        model = reader.read_bytes(data)
    """

    def __init__(self, options: Optional[ParseOptions] = None):
        self.options = options or ParseOptions()

    def read_file(self, filepath: str) -> Model:
        """Read an XPS model from a file."""
        with open(filepath, 'rb') as f:
            data = f.read()
        logger.debug("Parsing %s (%d bytes)", filepath, len(data))
        model = self.read_bytes(data)
        logger.debug("Parsed %s: %d bones, %d meshes", filepath,
                     len(model.skeleton), len(model.meshes))
        return model

    def read_bytes(self, data: bytes) -> Model:
        """Read an XPS model from a byte buffer."""
        return parse(data, self.options)
