"""meshforge formats package - file format codecs."""
from .xps import XPSReader, XPSWriter, parse, serialize

__all__ = [
    # XPS
    'XPSReader', 'XPSWriter', 'parse', 'serialize',
]
