"""
Tests for the end-to-end lithophane pipeline.

Tests cover:
- Mid-gray reference block (thickness, bounds, triangle count)
- Idempotence
- Manifold output for every shape, border and hole source
- Empty-mesh and configuration errors
- File processing and preview
"""

import io

import numpy as np
import pytest
import trimesh
from PIL import Image
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
    EmptyMeshError,
    GridSizeLimitError,
    ImageDecodeError,
    InvalidConfigurationError,
)
from lithophane.common.mesh_ops import count_open_edges, signed_volume
from lithophane.geometry.stl import parse_stl
from lithophane.pipeline import generate_lithophane, process_image_file


# ============== Fixtures ==============

@pytest.fixture
def gray_4x4():
    pixels = np.full((4, 4, 4), 128, dtype=np.uint8)
    pixels[..., 3] = 255
    return pixels


@pytest.fixture
def noise_image():
    rng = np.random.default_rng(11)
    pixels = rng.integers(0, 256, (24, 30, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return pixels


@pytest.fixture
def reference_config():
    return LithophaneConfig(layer_count=2, min_height=0.6, max_height=3.0, base_mm=0.0)


def assert_manifold(result):
    mesh = result.mesh
    assert count_open_edges(mesh.faces) == 0
    assert mesh.to_trimesh().is_watertight
    assert signed_volume(mesh) > 0
    assert result.metadata.is_watertight


# ============== Reference Scenario ==============

class TestMidGrayBlock:
    """4x4 mid-gray image at two layers."""

    def test_uniform_thickness(self, gray_4x4, reference_config):
        result = generate_lithophane(gray_4x4, reference_config)

        lo, hi = result.mesh.bounds
        np.testing.assert_allclose(lo, [-50.0, -50.0, 0.0], atol=1e-9)
        np.testing.assert_allclose(hi, [50.0, 50.0, 3.0], atol=1e-9)
        np.testing.assert_allclose(result.mesh.vertices[0::2, 2], 3.0)

    def test_triangle_count(self, gray_4x4, reference_config):
        result = generate_lithophane(gray_4x4, reference_config)

        assert result.mesh.n_faces == 60
        assert len(result.stl_bytes) == 84 + 60 * 50
        assert parse_stl(result.stl_bytes).n_triangles == 60
        assert_manifold(result)

    def test_trimesh_round_trip(self, gray_4x4, reference_config):
        result = generate_lithophane(gray_4x4, reference_config)
        loaded = trimesh.load(io.BytesIO(result.stl_bytes), file_type='stl')

        assert loaded.is_watertight
        assert loaded.volume == pytest.approx(100.0 * 100.0 * 3.0, rel=1e-5)

    def test_metadata(self, gray_4x4, reference_config):
        result = generate_lithophane(gray_4x4, reference_config, source="gray.png")
        meta = result.metadata

        assert meta.source == "gray.png"
        assert (meta.grid_width, meta.grid_height) == (4, 4)
        assert meta.n_triangles == 60
        assert meta.n_wall_triangles == 24
        assert meta.shape == "flat"
        assert meta.generation_params["layer_count"] == 2


class TestIdempotence:

    def test_byte_identical(self, noise_image):
        config = LithophaneConfig(
            smoothing=0.3,
            border=BorderSettings(type=BorderType.FRAME, width_mm=1.0),
            shape=ShapeSettings(type=ShapeType.ARC, angle_degrees=150.0),
            pixel_size_mm=0.25,
        )
        first = generate_lithophane(noise_image, config)
        second = generate_lithophane(noise_image.copy(), config)

        assert first.stl_bytes == second.stl_bytes
        np.testing.assert_array_equal(first.preview, second.preview)


# ============== Manifoldness ==============

class TestManifold:
    """Every combination must produce a closed, outward-facing solid."""

    @pytest.mark.parametrize("shape", list(ShapeType))
    def test_shapes(self, noise_image, shape):
        config = LithophaneConfig(shape=ShapeSettings(type=shape, angle_degrees=90.0))
        assert_manifold(generate_lithophane(noise_image, config))

    @pytest.mark.parametrize("border", [b for b in BorderType if b is not BorderType.NONE])
    def test_borders(self, noise_image, border):
        config = LithophaneConfig(
            pixel_size_mm=1.0,
            border=BorderSettings(type=border, width_mm=4.0, depth_mm=4.0)
        )
        result = generate_lithophane(noise_image, config)

        assert result.height_field.border.any()
        assert_manifold(result)

    @pytest.mark.parametrize("shape", list(ShapeType))
    def test_hidden_layers(self, noise_image, shape):
        config = LithophaneConfig(
            layer_count=4,
            layer_visibility=(True, False, True, True),
            shape=ShapeSettings(type=shape),
        )
        result = generate_lithophane(noise_image, config)

        assert result.height_field.n_holes > 0
        assert result.metadata.n_hole_cells == result.height_field.n_holes
        assert_manifold(result)

    def test_mounting_hole(self, noise_image):
        config = LithophaneConfig(
            pixel_size_mm=1.0,
            width_mm=30.0,
            mounting=MountingSettings(enabled=True, diameter_mm=6.0, offset_mm=6.0)
        )
        result = generate_lithophane(noise_image, config)

        assert result.height_field.hole[6, 15]
        assert_manifold(result)

    def test_background_removal(self):
        pixels = np.full((20, 20, 4), 60, dtype=np.uint8)
        pixels[5:12, 8:14, :3] = 255
        pixels[..., 3] = 255
        config = LithophaneConfig(background_removal=True)

        result = generate_lithophane(pixels, config)

        assert result.height_field.n_holes == 7 * 6
        assert_manifold(result)

    def test_oval_on_cylinder(self, noise_image):
        config = LithophaneConfig(
            pixel_size_mm=1.0,
            border=BorderSettings(type=BorderType.OVAL, width_mm=3.0),
            shape=ShapeSettings(type=ShapeType.CYLINDER)
        )
        assert_manifold(generate_lithophane(noise_image, config))


# ============== Thickness ==============

class TestThickness:

    def test_monotonic_along_ramp(self):
        ramp = np.linspace(0, 255, 40).round().astype(np.uint8)
        pixels = np.zeros((6, 40, 4), dtype=np.uint8)
        pixels[..., :3] = ramp[None, :, None]
        pixels[..., 3] = 255

        result = generate_lithophane(pixels, LithophaneConfig(layer_count=8))
        top = result.mesh.vertices[0::2, 2].reshape(6, 40)

        assert np.all(np.diff(top, axis=1) >= 0)
        assert top.min() == pytest.approx(2.0 + 0.6)
        assert top.max() == pytest.approx(2.0 + 3.0)


# ============== Errors ==============

class TestErrors:

    def test_all_background(self):
        pixels = np.full((6, 6, 4), 255, dtype=np.uint8)
        with pytest.raises(EmptyMeshError):
            generate_lithophane(pixels, LithophaneConfig(background_removal=True))

    def test_single_row(self):
        pixels = np.full((1, 8, 4), 100, dtype=np.uint8)
        with pytest.raises(EmptyMeshError):
            generate_lithophane(pixels, LithophaneConfig())

    def test_invalid_config(self, gray_4x4):
        with pytest.raises(InvalidConfigurationError):
            generate_lithophane(gray_4x4, LithophaneConfig(layer_count=1))

    def test_grid_limit(self, noise_image):
        with pytest.raises(GridSizeLimitError):
            generate_lithophane(noise_image, LithophaneConfig(max_grid_cells=100))


# ============== Files and Preview ==============

class TestProcessImageFile:

    def test_png(self, tmp_path):
        path = tmp_path / "ramp.png"
        data = np.tile(np.linspace(0, 255, 40).astype(np.uint8), (20, 1))
        Image.fromarray(data).save(path)

        config = LithophaneConfig(width_mm=10.0, pixel_size_mm=0.5)
        result = process_image_file(path, config)

        assert (result.width, result.height) == (20, 10)
        assert result.width_mm == 10.0
        assert result.height_mm == pytest.approx(5.0)
        assert result.metadata.source == str(path)
        assert_manifold(result)

    def test_grid_limit_checked_before_resize(self, tmp_path):
        path = tmp_path / "small.png"
        Image.new("RGB", (10, 10), (90, 90, 90)).save(path)

        config = LithophaneConfig(width_mm=1000.0, pixel_size_mm=0.1, max_grid_cells=1000)
        with pytest.raises(GridSizeLimitError):
            process_image_file(path, config)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ImageDecodeError):
            process_image_file(tmp_path / "missing.png", LithophaneConfig())

    def test_preview(self, tmp_path):
        path = tmp_path / "gray.png"
        Image.new("L", (40, 30), 128).save(path)

        result = process_image_file(path, LithophaneConfig(width_mm=40.0, pixel_size_mm=1.0))

        assert result.preview.shape == (30, 40, 2)
        assert result.preview.dtype == np.uint8
        np.testing.assert_array_equal(result.preview[..., 1], 255)

    def test_no_preview(self, gray_4x4, reference_config):
        result = generate_lithophane(gray_4x4, reference_config, preview_max_size=None)
        assert result.preview is None
