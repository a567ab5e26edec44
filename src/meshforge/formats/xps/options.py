"""Format constants and parse/export settings for XPS models."""

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .model import FormatVersion


MAGIC = 323232
MAGIC_STRING = "XNAaraL"
SUPPORTED_MAJOR_VERSIONS = (1, 2, 3)

ROOT_PARENT = -1
MAX_INFLUENCES = 4
WEIGHT_EPSILON = 1e-3

# Meshes with more vertices than this store triangle indices as u32
WIDE_INDEX_THRESHOLD = 0xFFFF

DEFAULT_COLOR = (255, 255, 255, 255)


@dataclass
class ParseOptions:
    """
    Import settings.

    strict:
        Reject vertices with more than MAX_INFLUENCES influences or a weight
        sum away from 1.0. When False, the strongest influences are kept and
        the weights renormalized.
    allow_trailing_data:
        Accept bytes after the last mesh record.
    max_*:
        Upper bounds for the declared counts. Bone indices are u16, which
        caps the bone count.
    """
    strict: bool = False
    allow_trailing_data: bool = True
    max_bones: int = 0xFFFF
    max_meshes: int = 4096
    max_textures: int = 256
    max_vertices: int = 1 << 24
    max_triangles: int = 1 << 25
    max_settings_words: int = 1 << 20


@dataclass
class ExportOptions:
    """
    Export settings.

    version overrides the model's own format version. author and device
    replace the header metadata; the caller supplies them, nothing is looked
    up from the operating system.
    """
    version: Optional['FormatVersion'] = None
    author: Optional[str] = None
    device: Optional[str] = None
