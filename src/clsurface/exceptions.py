"""
Error Taxonomy
==============
All errors raised by the package derive from ``CLSurfaceError``.

Classes:
    ConfigurationError: Rejected input parameters (recoverable by the caller).
    UnknownEntityError: A vertex, half-edge or face id that does not exist.
    StructuralError: The mesh topology is corrupted or malformed. The mesh
        must be discarded.
    ResourceLimitError: The requested refinement exceeds the depth limit.
"""


class CLSurfaceError(Exception):
    """Base class for all cutter location surface errors."""


class ConfigurationError(CLSurfaceError, ValueError):
    """Raised when sampling parameters are invalid (e.g. far <= 0)."""


class UnknownEntityError(CLSurfaceError, LookupError):
    """Raised when an operation references a nonexistent vertex, edge or face."""


class StructuralError(CLSurfaceError, RuntimeError):
    """Raised when a half-edge invariant is violated (twin, next or face links)."""


class ResourceLimitError(CLSurfaceError, RuntimeError):
    """Raised when subdivision would exceed the configured maximum depth."""
