"""Borkin pet-care marketplace backend."""

__version__ = "0.4.0"
