"""
Lithophane-specific exceptions.

Error kinds:
- InvalidConfigurationError: option snapshot cannot produce a print
- ImageDecodeError: source image could not be decoded (not recoverable here)
- DegenerateGeometryError: geometry collapsed beyond local recovery
- GridSizeLimitError: requested grid too large to allocate
- StlFormatError: binary STL buffer is truncated or inconsistent

Recoverable degeneracies (collapsed arc radius, zero-area facets) are logged
as warnings by the stage that meets them and never raised.
"""

from typing import Optional


class LithophaneError(Exception):
    """Base class for all errors raised by the lithophane pipeline."""


class InvalidConfigurationError(LithophaneError, ValueError):
    """Configuration values are inconsistent or out of range."""

    def __init__(self, message: str, option: Optional[str] = None):
        self.option = option
        if option:
            message = f"{option}: {message}"
        super().__init__(message)


class ImageDecodeError(LithophaneError):
    """The source image could not be decoded into an RGBA pixel buffer."""


class DegenerateGeometryError(LithophaneError):
    """Geometry collapsed in a way that cannot be skipped locally."""


class EmptyMeshError(DegenerateGeometryError):
    """No filled cell survived masking, so there is no solid to print."""


class GridSizeLimitError(LithophaneError):
    """The height field grid exceeds the configured cell limit."""

    def __init__(self, width: int, height: int, limit: int):
        self.width = width
        self.height = height
        self.limit = limit
        super().__init__(
            f"Grid of {width}x{height} = {width * height} cells exceeds the "
            f"limit of {limit} cells; increase pixel_size_mm or reduce width_mm"
        )


class StlFormatError(LithophaneError, ValueError):
    """Binary STL buffer is truncated or its triangle count is inconsistent."""
