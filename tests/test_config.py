"""
Tests for the configuration snapshot and error types.

Tests cover:
- Defaults and derived properties
- Validation of out-of-range options
- Dictionary / JSON round trips
- Stale layer visibility fallback
"""

import logging
import math

import pytest
from pathlib import Path
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lithophane.common.config import (
    BorderSettings,
    BorderType,
    LithophaneConfig,
    MountingSettings,
    ShapeSettings,
    ShapeType,
)
from lithophane.common.errors import (
    GridSizeLimitError,
    InvalidConfigurationError,
    LithophaneError,
)


class TestDefaults:
    """Test default values and derived properties."""

    def test_default_values(self):
        config = LithophaneConfig()

        assert config.layer_count == 6
        assert config.min_height == 0.6
        assert config.max_height == 3.0
        assert config.base_mm == 2.0
        assert config.border.type is BorderType.NONE
        assert config.shape.type is ShapeType.FLAT
        assert config.mounting.enabled is False

    def test_defaults_validate(self):
        assert LithophaneConfig().validate() is not None

    def test_height_range(self):
        config = LithophaneConfig(min_height=1.0, max_height=4.0)
        assert config.height_range == pytest.approx(3.0)

    @pytest.mark.parametrize("smoothing,radius", [
        (0.0, 0),
        (0.1, 0),
        (0.5, 2),
        (1.0, 3),
    ])
    def test_smoothing_radius(self, smoothing, radius):
        assert LithophaneConfig(smoothing=smoothing).smoothing_radius == radius

    def test_border_pixels(self):
        config = LithophaneConfig(
            pixel_size_mm=0.5,
            border=BorderSettings(type=BorderType.FLAT, width_mm=3.0)
        )
        assert config.border_pixels == 6

    def test_is_immutable(self):
        config = LithophaneConfig()
        with pytest.raises(AttributeError):
            config.layer_count = 3

    def test_with_overrides_returns_new_snapshot(self):
        config = LithophaneConfig()
        changed = config.with_overrides(layer_count=3)

        assert changed.layer_count == 3
        assert config.layer_count == 6


class TestValidate:
    """Test option validation."""

    @pytest.mark.parametrize("changes,option", [
        ({"layer_count": 1}, "layer_count"),
        ({"max_height": 0.5}, "max_height"),
        ({"min_height": -0.1, "max_height": 1.0}, "min_height"),
        ({"base_mm": -1.0}, "base_mm"),
        ({"width_mm": 0.0}, "width_mm"),
        ({"pixel_size_mm": 0.0}, "pixel_size_mm"),
        ({"smoothing": 1.5}, "smoothing"),
        ({"gamma": 0.0}, "gamma"),
        ({"background_threshold": 300.0}, "background_threshold"),
        ({"width_mm": math.nan}, "width_mm"),
        ({"max_grid_cells": 0}, "max_grid_cells"),
    ])
    def test_rejects_invalid(self, changes, option):
        config = LithophaneConfig(**changes)
        with pytest.raises(InvalidConfigurationError) as excinfo:
            config.validate()
        assert excinfo.value.option == option
        assert str(excinfo.value).startswith(f"{option}:")

    def test_rejects_bad_mounting_only_when_enabled(self):
        LithophaneConfig(mounting=MountingSettings(enabled=False, diameter_mm=0.0)).validate()
        with pytest.raises(InvalidConfigurationError):
            LithophaneConfig(mounting=MountingSettings(enabled=True, diameter_mm=0.0)).validate()

    def test_border_depth_below_min_height_rejected(self):
        shallow = BorderSettings(type=BorderType.FLAT, depth_mm=0.3)
        with pytest.raises(InvalidConfigurationError) as excinfo:
            LithophaneConfig(min_height=0.6, border=shallow).validate()
        assert excinfo.value.option == "border.depth_mm"

    def test_border_depth_ignored_without_border(self):
        LithophaneConfig(border=BorderSettings(type=BorderType.NONE, depth_mm=0.1)).validate()

    def test_error_hierarchy(self):
        assert issubclass(InvalidConfigurationError, LithophaneError)
        assert issubclass(InvalidConfigurationError, ValueError)
        assert issubclass(GridSizeLimitError, LithophaneError)

    def test_grid_size_message(self):
        err = GridSizeLimitError(4000, 3000, 1000)
        assert "12000000" in str(err)
        assert err.limit == 1000


class TestSerialization:
    """Test dict and JSON round trips."""

    def test_dict_round_trip(self):
        config = LithophaneConfig(
            layer_count=4,
            invert=True,
            layer_visibility=(True, False, True, True),
            border=BorderSettings(type=BorderType.FRAME, width_mm=5.0, depth_mm=4.0),
            shape=ShapeSettings(type=ShapeType.ARC, angle_degrees=120.0),
            mounting=MountingSettings(enabled=True, diameter_mm=4.0, offset_mm=6.0),
        )
        restored = LithophaneConfig.from_dict(config.to_dict())
        assert restored == config

    def test_to_dict_uses_plain_values(self):
        d = LithophaneConfig(shape=ShapeSettings(type=ShapeType.SPHERE)).to_dict()

        assert d["shape"]["type"] == "sphere"
        assert d["border"]["type"] == "none"
        assert isinstance(d["layer_visibility"], list)

    def test_partial_dict_keeps_defaults(self):
        config = LithophaneConfig.from_dict({"layer_count": 8, "border": {"type": "rounded"}})

        assert config.layer_count == 8
        assert config.border.type is BorderType.ROUNDED
        assert config.border.width_mm == 3.0
        assert config.base_mm == 2.0

    def test_unknown_key_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            LithophaneConfig.from_dict({"layers": 5})

    def test_bad_enum_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            LithophaneConfig.from_dict({"shape": {"type": "torus"}})

    def test_json_round_trip(self, tmp_path):
        config = LithophaneConfig(layer_count=3, smoothing=0.5)
        path = tmp_path / "nested" / "config.json"

        config.save(path)
        assert path.exists()
        assert LithophaneConfig.from_json(path) == config


class TestLayerVisibility:
    """Test the stale-visibility fallback."""

    def test_matching_length_used(self):
        config = LithophaneConfig(layer_count=3, layer_visibility=(True, False, True))
        assert config.effective_layer_visibility() == (True, False, True)

    def test_empty_means_all_visible(self):
        config = LithophaneConfig(layer_count=4)
        assert config.effective_layer_visibility() == (True,) * 4

    def test_stale_length_means_all_visible(self, caplog):
        config = LithophaneConfig(layer_count=6, layer_visibility=(False, False, False))

        with caplog.at_level(logging.WARNING):
            visibility = config.effective_layer_visibility()

        assert visibility == (True,) * 6
        assert "treating all layers as visible" in caplog.text
