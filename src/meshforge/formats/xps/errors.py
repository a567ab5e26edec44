"""
XPS error taxonomy.

Every error carries ``offset`` and ``field`` from the shared BinaryError.
Import-only failures derive from XPSImportError, and model invariant failures
derive from both branches because they can surface on either path.
"""

from ...utils.binary import BinaryError


class XPSError(BinaryError):
    """Base class for XPS codec errors."""


class XPSImportError(XPSError):
    """Raised by parse()."""


class XPSExportError(XPSError):
    """Raised by serialize()."""


class UnexpectedEndOfInput(XPSImportError):
    """Buffer shorter than a record requires."""


class TrailingData(XPSImportError):
    """Bytes left after the last mesh record."""


class InvalidMagicOrVersion(XPSImportError, XPSExportError):
    """Bad magic number, magic string, or unsupported format version."""


class CountOverflow(XPSImportError, XPSExportError):
    """A count exceeds its configured limit or field width."""


class InvalidBoneParentIndex(XPSImportError, XPSExportError):
    """Bone parent is a forward, self, or out-of-range reference."""


class InvalidTriangleIndex(XPSImportError, XPSExportError):
    """Triangle references a vertex past the end of the mesh."""


class WeightSumViolation(XPSImportError, XPSExportError):
    """Influence weights do not sum to 1.0."""


class InfluenceOverflow(XPSImportError, XPSExportError):
    """Vertex has more than four bone influences."""


class InvalidInfluence(XPSImportError, XPSExportError):
    """Influence references a missing bone or has a bad weight."""


class InvalidUVLayer(XPSImportError, XPSExportError):
    """UV layer selector or UV count disagrees with the mesh flags."""


class InvalidColor(XPSImportError, XPSExportError):
    """Vertex color channel outside 0..255."""


class UnsupportedFeatureFlag(XPSImportError, XPSExportError):
    """Mesh flags contain bits this codec does not know."""


class StringEncodingError(XPSImportError, XPSExportError):
    """String cannot be decoded or encoded in the version's convention."""
