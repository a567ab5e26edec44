"""
XPS Writer - serialize a Model to the binary XNALara .mesh layout

Mirrors the reader record by record. The model is validated and every string
is encoded before the first byte is written, so invalid input never produces
output. Counts are taken from the live lists. For a given model and options
the result is byte-for-byte deterministic.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field, replace
from typing import List, Optional

from ...utils.binary import (
    BinaryWriteError, ByteOrder, IoBuffer, encode_null_terminated_string,
    encode_prefixed_string,
)
from .errors import CountOverflow, InvalidMagicOrVersion, StringEncodingError, XPSExportError
from .model import FormatVersion, Header, Mesh, MeshFlags, Model, Vertex
from .options import (
    ExportOptions, MAGIC, MAGIC_STRING, MAX_INFLUENCES, WIDE_INDEX_THRESHOLD,
)

logger = logging.getLogger(__name__)

U16_MAX = 0xFFFF
U32_MAX = 0xFFFFFFFF


@dataclass
class EncodedMesh:
    name: bytes = b""
    texture_paths: List[bytes] = field(default_factory=list)


@dataclass
class EncodedStrings:
    """Every string of a model, encoded in write order."""
    magic: bytes = b""
    device: bytes = b""
    author: bytes = b""
    files: bytes = b""
    bone_names: List[bytes] = field(default_factory=list)
    meshes: List[EncodedMesh] = field(default_factory=list)


def encode_string(value: str, version: FormatVersion, path: str) -> bytes:
    """Encode one string in the version's convention."""
    try:
        if version.uses_null_terminated_strings:
            return encode_null_terminated_string(value)
        return encode_prefixed_string(value)
    except BinaryWriteError as e:
        raise StringEncodingError(e.message, field=path) from e


def encode_strings(model: Model, header: Header, version: FormatVersion) -> EncodedStrings:
    encoded = EncodedStrings(magic=encode_string(MAGIC_STRING, version, "header.magic_string"))
    if version.has_header_metadata:
        encoded.device = encode_string(header.device[::-1], version, "header.device")
        encoded.author = encode_string(header.author[::-1], version, "header.author")
        encoded.files = encode_string(header.files, version, "header.files")

    encoded.bone_names = [
        encode_string(bone.name, version, f"bones[{i}].name")
        for i, bone in enumerate(model.skeleton.bones)
    ]
    for mesh_index, mesh in enumerate(model.meshes):
        path = f"meshes[{mesh_index}]"
        encoded.meshes.append(EncodedMesh(
            name=encode_string(mesh.name, version, f"{path}.name"),
            texture_paths=[
                encode_string(t.path, version, f"{path}.textures[{i}].path")
                for i, t in enumerate(mesh.textures)
            ],
        ))
    return encoded


def check_counts(model: Model):
    """Counts that cannot be represented at their field width."""
    if len(model.skeleton) > U16_MAX:
        raise CountOverflow(
            f"{len(model.skeleton)} bones cannot be addressed by u16 indices",
            field="bone_count")
    for index, mesh in enumerate(model.meshes):
        for name, count in (("texture_count", len(mesh.textures)),
                            ("vertex_count", len(mesh.vertices)),
                            ("triangle_count", len(mesh.triangles))):
            if count > U32_MAX:
                raise CountOverflow(f"{name} {count} does not fit in u32",
                                    field=f"meshes[{index}].{name}")


def resolve_header(model: Model, options: ExportOptions) -> Header:
    header = replace(model.header)
    if options.author is not None:
        header.author = options.author
    if options.device is not None:
        header.device = options.device
    return header


def padded_settings(settings: bytes) -> bytes:
    """Pad the settings block to whole 4-byte words."""
    remainder = len(settings) % 4
    if remainder:
        return settings + b"\0" * (4 - remainder)
    return settings


# Record writers

def write_header(buf: IoBuffer, version: FormatVersion, header: Header,
                 encoded: EncodedStrings):
    with buf.field("header"):
        buf.write_uint32(MAGIC)
        buf.write_uint16(version.major)
        buf.write_uint16(version.minor)
        buf.write_bytes(encoded.magic)
        if version.has_header_metadata:
            settings = padded_settings(header.settings)
            buf.write_uint32(len(settings) // 4)
            buf.write_bytes(encoded.device)
            buf.write_bytes(encoded.author)
            buf.write_bytes(encoded.files)
            buf.write_bytes(settings)


def write_skeleton(buf: IoBuffer, model: Model, version: FormatVersion,
                   encoded: EncodedStrings):
    buf.write_uint32(len(model.skeleton))
    for index, bone in enumerate(model.skeleton.bones):
        with buf.field(f"bones[{index}]"):
            buf.write_bytes(encoded.bone_names[index])
            buf.write_int32(bone.parent_index)
            buf.write_floats(bone.translation.as_tuple())
            if version.uses_euler_rotation:
                buf.write_floats(bone.rotation.normalize().to_euler())
            else:
                q = bone.rotation
                buf.write_floats((q.x, q.y, q.z, q.w))


def write_vertex(buf: IoBuffer, vertex: Vertex, flags: MeshFlags):
    buf.write_floats(vertex.position.as_tuple())
    buf.write_floats(vertex.normal.as_tuple())
    if flags.has_vertex_color:
        buf.write_bytes(bytes(vertex.color))
    for uv in vertex.uvs:
        buf.write_floats(uv.as_tuple())

    influences = vertex.influences
    if flags.has_variable_influences:
        buf.write_uint8(len(influences))
        padding = 0
    else:
        padding = MAX_INFLUENCES - len(influences)
    for influence in influences:
        buf.write_uint16(influence.bone_index)
    for _ in range(padding):
        buf.write_uint16(0)
    for influence in influences:
        buf.write_float(influence.weight)
    for _ in range(padding):
        buf.write_float(0.0)


def write_mesh(buf: IoBuffer, mesh: Mesh, encoded: EncodedMesh):
    flags = MeshFlags(mesh.flags)
    buf.write_bytes(encoded.name)
    buf.write_uint16(int(flags))

    buf.write_uint32(len(mesh.textures))
    for texture, path in zip(mesh.textures, encoded.texture_paths):
        buf.write_bytes(path)
        buf.write_uint32(texture.uv_layer)

    buf.write_uint32(len(mesh.vertices))
    for vertex in mesh.vertices:
        write_vertex(buf, vertex, flags)

    buf.write_uint32(len(mesh.triangles))
    write_index = buf.write_uint32 if len(mesh.vertices) > WIDE_INDEX_THRESHOLD else buf.write_uint16
    for triangle in mesh.triangles:
        for index in triangle:
            write_index(index)


def serialize(model: Model, options: Optional[ExportOptions] = None) -> bytes:
    """
    Serialize a model to XPS bytes.

    Raises:
        XPSExportError: the model breaks an invariant, a string cannot be
            encoded, or the requested version is unsupported. Raised before
            any output is produced.
    """
    options = options or ExportOptions()
    version = options.version or model.version
    if not version.is_supported:
        raise InvalidMagicOrVersion(f"Unsupported format version {version}", field="version")

    violations = model.validate()
    if violations:
        raise violations[0].to_error()
    check_counts(model)

    header = resolve_header(model, options)
    encoded = encode_strings(model, header, version)

    buf = IoBuffer.for_writing(ByteOrder.LITTLE_ENDIAN)
    try:
        write_header(buf, version, header, encoded)
        write_skeleton(buf, model, version, encoded)
        buf.write_uint32(len(model.meshes))
        for index, mesh in enumerate(model.meshes):
            with buf.field(f"meshes[{index}]"):
                write_mesh(buf, mesh, encoded.meshes[index])
    except BinaryWriteError as e:
        # Values out of range for their field (e.g. floats beyond float32)
        raise XPSExportError(e.message, offset=e.offset, field=e.field) from e
    return buf.getvalue()


class XPSWriter:
    """
    Serializer for XNALara .mesh files.

    Usage:
        writer = XPSWriter(ExportOptions(author="modder"))
        data = writer.write_bytes(model)
        writer.write_file(model, "character.mesh")
    """

    def __init__(self, options: Optional[ExportOptions] = None):
        self.options = options or ExportOptions()

    def write_bytes(self, model: Model) -> bytes:
        return serialize(model, self.options)

    def write_file(self, model: Model, filepath: str):
        """Write atomically: the target is only replaced once all bytes are on disk."""
        data = self.write_bytes(model)
        directory = os.path.dirname(os.path.abspath(filepath))
        fd, temp_path = tempfile.mkstemp(prefix=".xps-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(temp_path, filepath)
        except BaseException:
            os.unlink(temp_path)
            raise
        logger.debug("Wrote %s (%d bytes)", filepath, len(data))
