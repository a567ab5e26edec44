"""Shared helpers: binary I/O and 3D math."""
