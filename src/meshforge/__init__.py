"""meshforge - mesh interchange toolkit: XNALara XPS model codec."""

__version__ = "1.0.0"
