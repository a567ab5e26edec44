"""
XNALara XPS model format

Modules:
  - model: in-memory model (skeleton, meshes, vertices) and validation
  - reader: binary parser
  - writer: binary serializer
  - obj_export: Wavefront OBJ export

Usage:
    from meshforge.formats.xps import parse, serialize, ExportOptions

    with open("character.mesh", "rb") as f:
        model = parse(f.read())
    print(f"Bones: {[b.name for b in model.skeleton.bones]}")

    data = serialize(model, ExportOptions(author="modder"))
"""

from .errors import (
    XPSError, XPSImportError, XPSExportError,
    UnexpectedEndOfInput, TrailingData, InvalidMagicOrVersion, CountOverflow,
    InvalidBoneParentIndex, InvalidTriangleIndex, WeightSumViolation, InfluenceOverflow,
    InvalidInfluence, InvalidUVLayer, InvalidColor, UnsupportedFeatureFlag,
    StringEncodingError,
)
from .model import (
    Model, Header, Skeleton, Bone, Mesh, MeshFlags, Vertex, BoneInfluence, TextureRef,
    FormatVersion, DEFAULT_VERSION, Violation, ViolationType,
)
from .options import ParseOptions, ExportOptions, ROOT_PARENT, MAX_INFLUENCES
from .reader import XPSReader, parse
from .writer import XPSWriter, serialize
from .obj_export import export_obj

__all__ = [
    # Entry points
    'parse', 'serialize', 'XPSReader', 'XPSWriter', 'export_obj',
    # Model
    'Model', 'Header', 'Skeleton', 'Bone', 'Mesh', 'MeshFlags', 'Vertex',
    'BoneInfluence', 'TextureRef', 'FormatVersion', 'DEFAULT_VERSION',
    'Violation', 'ViolationType',
    # Options
    'ParseOptions', 'ExportOptions', 'ROOT_PARENT', 'MAX_INFLUENCES',
    # Errors
    'XPSError', 'XPSImportError', 'XPSExportError',
    'UnexpectedEndOfInput', 'TrailingData', 'InvalidMagicOrVersion', 'CountOverflow',
    'InvalidBoneParentIndex', 'InvalidTriangleIndex', 'WeightSumViolation',
    'InfluenceOverflow', 'InvalidInfluence', 'InvalidUVLayer', 'InvalidColor',
    'UnsupportedFeatureFlag', 'StringEncodingError',
]
