"""Adaptive quad sampling surface for drop-cutter toolpath generation."""
from clsurface.exceptions import (
    CLSurfaceError,
    ConfigurationError,
    ResourceLimitError,
    StructuralError,
    UnknownEntityError,
)
from clsurface.model.halfedge import HalfEdgeMesh
from clsurface.model.surface import CutterLocationSurface, SurfaceState, build_surface

__all__ = [
    "CLSurfaceError",
    "ConfigurationError",
    "CutterLocationSurface",
    "HalfEdgeMesh",
    "ResourceLimitError",
    "StructuralError",
    "SurfaceState",
    "UnknownEntityError",
    "build_surface",
]

__version__ = "0.1.0"
