"""
Configuration and constants for lithophane generation.

Unit Model:
- Every physical length is in millimetres
- The height field stores normalized depth in [0, 1] (borders may exceed 1)
- Absolute thickness = base_mm + min_height + depth * (max_height - min_height)

A LithophaneConfig is an immutable snapshot: one per render pass, never
mutated, replaced wholesale with with_overrides() when an option changes.
"""

import json
import logging
import math
from dataclasses import dataclass, field, fields, asdict, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Tuple

from .errors import InvalidConfigurationError

logger = logging.getLogger(__name__)


class BorderType(Enum):
    """
    Decorative border profiles applied near the image perimeter.

    NONE:    no border, the image runs to the edge
    FLAT:    constant height band
    ROUNDED: quarter-cosine, high at the outer edge
    CHAMFER: linear ramp, high at the outer edge
    FRAME:   lip, groove, bead and taper bands
    OVAL:    elliptical silhouette with a rounded ring
    """
    NONE = "none"
    FLAT = "flat"
    ROUNDED = "rounded"
    CHAMFER = "chamfer"
    FRAME = "frame"
    OVAL = "oval"


class ShapeType(Enum):
    """
    Parametric surface the height field is wrapped onto.

    FLAT:     plane, base at z = 0
    CYLINDER: width is the full circumference
    ARC:      width is the arc length over ShapeSettings.angle_degrees
    SPHERE:   width is the equator circumference
    CIRCLE:   flat, with a round silhouette cut by the height field builder
    """
    FLAT = "flat"
    CYLINDER = "cylinder"
    ARC = "arc"
    SPHERE = "sphere"
    CIRCLE = "circle"


@dataclass(frozen=True)
class BorderSettings:
    """Border profile selection; depth_mm is the height above the base."""
    type: BorderType = BorderType.NONE
    width_mm: float = 3.0
    depth_mm: float = 3.0


@dataclass(frozen=True)
class ShapeSettings:
    """Surface shape; angle_degrees only matters for ARC."""
    type: ShapeType = ShapeType.FLAT
    angle_degrees: float = 180.0


@dataclass(frozen=True)
class MountingSettings:
    """Hanging hole centred horizontally, offset_mm below the top edge."""
    enabled: bool = False
    diameter_mm: float = 5.0
    offset_mm: float = 5.0


@dataclass(frozen=True)
class LithophaneConfig:
    """
    Immutable option snapshot for one lithophane render pass.

    layer_visibility is indexed by quantized physical height level
    (index 0 = thinnest layer). A tuple whose length differs from
    layer_count is treated as "all visible".
    """

    # Layers / thickness
    layer_count: int = 6
    min_height: float = 0.6  # mm above base for depth 0
    max_height: float = 3.0  # mm above base for depth 1
    base_mm: float = 2.0  # solid floor under the relief

    # Grid
    width_mm: float = 100.0
    pixel_size_mm: float = 0.15  # mm per height field cell

    # Image adjustments
    invert: bool = False
    smoothing: float = 0.0  # 0-1 factor, blur radius = round(smoothing * 3)
    contrast: float = 1.0
    brightness: float = 1.0
    gamma: float = 1.0
    background_removal: bool = False
    background_threshold: float = 250.0  # luminance cutoff, 0-255

    layer_visibility: Tuple[bool, ...] = ()

    border: BorderSettings = field(default_factory=BorderSettings)
    shape: ShapeSettings = field(default_factory=ShapeSettings)
    mounting: MountingSettings = field(default_factory=MountingSettings)

    # Fail fast above this many cells instead of attempting the allocation
    max_grid_cells: int = 6_000_000

    @property
    def height_range(self) -> float:
        return self.max_height - self.min_height

    @property
    def smoothing_radius(self) -> int:
        """Box blur radius in cells (0 disables blurring)."""
        return int(math.floor(self.smoothing * 3 + 0.5))

    @property
    def border_pixels(self) -> int:
        """Border band width in cells."""
        return int(math.floor(self.border.width_mm / self.pixel_size_mm + 0.5))

    def validate(self) -> "LithophaneConfig":
        """
        Check the snapshot for values that cannot produce a print.

        Returns:
            self, so calls can be chained

        Raises:
            InvalidConfigurationError: on the first offending option
        """
        numeric = {
            "min_height": self.min_height,
            "max_height": self.max_height,
            "base_mm": self.base_mm,
            "width_mm": self.width_mm,
            "pixel_size_mm": self.pixel_size_mm,
            "smoothing": self.smoothing,
            "contrast": self.contrast,
            "brightness": self.brightness,
            "gamma": self.gamma,
            "background_threshold": self.background_threshold,
            "border.width_mm": self.border.width_mm,
            "border.depth_mm": self.border.depth_mm,
            "shape.angle_degrees": self.shape.angle_degrees,
            "mounting.diameter_mm": self.mounting.diameter_mm,
            "mounting.offset_mm": self.mounting.offset_mm,
        }
        for name, value in numeric.items():
            if not math.isfinite(value):
                raise InvalidConfigurationError(f"must be finite, got {value}", name)

        if self.layer_count < 2:
            raise InvalidConfigurationError(
                f"must be at least 2, got {self.layer_count}", "layer_count")
        if self.max_height <= self.min_height:
            raise InvalidConfigurationError(
                f"must exceed min_height ({self.min_height}), got {self.max_height}",
                "max_height")
        if self.min_height < 0:
            raise InvalidConfigurationError(
                f"must be non-negative, got {self.min_height}", "min_height")
        if self.base_mm < 0:
            raise InvalidConfigurationError(
                f"must be non-negative, got {self.base_mm}", "base_mm")
        if self.width_mm <= 0:
            raise InvalidConfigurationError(
                f"must be positive, got {self.width_mm}", "width_mm")
        if self.pixel_size_mm <= 0:
            raise InvalidConfigurationError(
                f"must be positive, got {self.pixel_size_mm}", "pixel_size_mm")
        if not 0.0 <= self.smoothing <= 1.0:
            raise InvalidConfigurationError(
                f"must be within [0, 1], got {self.smoothing}", "smoothing")
        if self.gamma <= 0:
            raise InvalidConfigurationError(
                f"must be positive, got {self.gamma}", "gamma")
        if not 0.0 <= self.background_threshold <= 255.0:
            raise InvalidConfigurationError(
                f"must be within [0, 255], got {self.background_threshold}",
                "background_threshold")
        if self.border.type is not BorderType.NONE and self.border.width_mm < 0:
            raise InvalidConfigurationError(
                f"must be non-negative, got {self.border.width_mm}", "border.width_mm")
        if self.border.type is not BorderType.NONE and self.border.depth_mm < self.min_height:
            raise InvalidConfigurationError(
                f"must be at least min_height ({self.min_height}), got {self.border.depth_mm}",
                "border.depth_mm")
        if self.mounting.enabled and self.mounting.diameter_mm <= 0:
            raise InvalidConfigurationError(
                f"must be positive, got {self.mounting.diameter_mm}",
                "mounting.diameter_mm")
        if self.max_grid_cells <= 0:
            raise InvalidConfigurationError(
                f"must be positive, got {self.max_grid_cells}", "max_grid_cells")
        return self

    def effective_layer_visibility(self) -> Tuple[bool, ...]:
        """Visibility flags per layer, all visible when the tuple is stale."""
        if len(self.layer_visibility) == self.layer_count:
            return tuple(bool(v) for v in self.layer_visibility)
        if self.layer_visibility:
            logger.warning(
                f"layer_visibility has {len(self.layer_visibility)} entries for "
                f"{self.layer_count} layers; treating all layers as visible")
        return (True,) * self.layer_count

    def with_overrides(self, **changes: Any) -> "LithophaneConfig":
        """Return a new snapshot with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["layer_visibility"] = list(self.layer_visibility)
        data["border"]["type"] = self.border.type.value
        data["shape"]["type"] = self.shape.type.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LithophaneConfig":
        """
        Build a snapshot from a plain dictionary (e.g. parsed JSON).

        Missing keys keep their defaults; unknown keys are rejected.
        """
        data = dict(data)
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidConfigurationError(f"unknown options {sorted(unknown)}")

        try:
            if "border" in data:
                border = dict(data["border"])
                if "type" in border:
                    border["type"] = BorderType(border["type"])
                data["border"] = BorderSettings(**border)
            if "shape" in data:
                shape = dict(data["shape"])
                if "type" in shape:
                    shape["type"] = ShapeType(shape["type"])
                data["shape"] = ShapeSettings(**shape)
            if "mounting" in data:
                data["mounting"] = MountingSettings(**data["mounting"])
        except (TypeError, ValueError) as e:
            raise InvalidConfigurationError(str(e)) from e

        if "layer_visibility" in data:
            data["layer_visibility"] = tuple(bool(v) for v in data["layer_visibility"])
        return cls(**data)

    @classmethod
    def from_json(cls, path: Path) -> "LithophaneConfig":
        """Load config from JSON file."""
        with open(path) as f:
            data = json.load(f)
        return cls.from_dict(data)

    def save(self, path: Path) -> None:
        """Save config to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


# Global default config
DEFAULT_CONFIG = LithophaneConfig()
