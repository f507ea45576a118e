"""Tests for Gaussian splat assets."""

import numpy as np
import pytest
import torch

from sceneloader.polygon import Format, Object
from sceneloader.scene import GaussianPoints, rgb2sh, sh2rgb


@pytest.fixture
def splats():
    rng = np.random.default_rng(0)
    num_points = 5
    return GaussianPoints(
        positions=rng.normal(size=(num_points, 3)),
        features_dc=rng.normal(size=(num_points, 3)),
        features_rest=rng.normal(size=(num_points, 15, 3)),
        opacities=rng.normal(size=(num_points, 1)),
        scales=rng.normal(size=(num_points, 3)),
        rotations=rng.normal(size=(num_points, 4)),
    )


class TestGaussianPoints:
    """Test reading and writing splat PLY files."""

    def test_attributes(self, splats):
        names = splats.list_of_attributes()
        assert len(names) == 6 + 3 + 45 + 1 + 3 + 4
        assert names[:9] == ["x", "y", "z", "nx", "ny", "nz", "f_dc_0", "f_dc_1", "f_dc_2"]
        assert names[-5:] == ["scale_2", "rot_0", "rot_1", "rot_2", "rot_3"]
        assert splats.sh_degree == 3

    def test_roundtrip(self, splats, temp_dir):
        path = temp_dir / "out" / "point_cloud.ply"
        splats.save_ply(path)
        loaded = GaussianPoints.load_ply(path)

        for name in ["positions", "normals", "features_dc", "features_rest", "opacities", "scales", "rotations"]:
            np.testing.assert_array_equal(getattr(loaded, name), getattr(splats, name))

    def test_channel_major_rest(self, splats):
        """Test that f_rest lists all coefficients of one channel before the next."""
        ply = splats.to_ply()
        np.testing.assert_array_equal(ply["vertex"]["f_rest_0"].numpy(), splats.features_rest[:, 0, 0])
        np.testing.assert_array_equal(ply["vertex"]["f_rest_1"].numpy(), splats.features_rest[:, 1, 0])
        np.testing.assert_array_equal(ply["vertex"]["f_rest_15"].numpy(), splats.features_rest[:, 0, 1])

    def test_big_endian(self, splats):
        data = splats.to_ply(Format.BINARY_BIG_ENDIAN).to_bytes()
        loaded = GaussianPoints.from_ply(Object.from_bytes(data))
        np.testing.assert_array_equal(loaded.scales, splats.scales)

    def test_from_points(self):
        colors = np.array([[1.0, 0.0, 0.5]])
        splats = GaussianPoints.from_points(np.zeros((1, 3)), colors, sh_degree=1, opacity=0.1, scale=0.01)
        assert splats.features_rest.shape == (1, 3, 3)
        assert splats.sh_degree == 1
        np.testing.assert_allclose(splats.colors, colors, atol=1e-6)
        np.testing.assert_allclose(splats.rotations, [[1.0, 0.0, 0.0, 0.0]])
        assert float(1 / (1 + np.exp(-splats.opacities[0, 0]))) == pytest.approx(0.1, abs=1e-6)
        assert float(np.exp(splats.scales[0, 0])) == pytest.approx(0.01, abs=1e-6)

    def test_degree_zero(self, temp_dir):
        splats = GaussianPoints.from_points(np.ones((2, 3)), np.full((2, 3), 0.5), sh_degree=0)
        path = temp_dir / "dc.ply"
        splats.save_ply(path)
        loaded = GaussianPoints.load_ply(path)
        assert loaded.features_rest.shape == (2, 0, 3)
        assert loaded.sh_degree == 0

    def test_tensor_input(self):
        splats = GaussianPoints(
            positions=torch.zeros(2, 3),
            features_dc=torch.zeros(2, 1, 3),
            features_rest=torch.zeros(2, 3, 3),
            opacities=torch.zeros(2),
            scales=torch.zeros(2, 3),
            rotations=torch.zeros(2, 4),
        )
        assert splats.features_dc.shape == (2, 3)
        assert splats.opacities.shape == (2, 1)
        assert splats.positions.dtype == np.float32

    def test_missing_property(self):
        ply = Object.from_arrays({"vertex": {a: np.zeros(1, "f4") for a in "xyz"}})
        with pytest.raises(KeyError):
            GaussianPoints.from_ply(ply)

    def test_bad_rest_count(self, splats):
        ply = splats.to_ply()
        ply.add_property("vertex", "f_rest_45", "float", np.zeros(5, "f4"))
        with pytest.raises(ValueError):
            GaussianPoints.from_ply(ply)


class TestShConversion:
    def test_inverse(self):
        rgb = np.array([0.0, 0.25, 1.0])
        np.testing.assert_allclose(sh2rgb(rgb2sh(rgb)), rgb)
