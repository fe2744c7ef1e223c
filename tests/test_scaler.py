"""Tests for min-max scaling."""

import numpy as np
import pytest

from clickml.errors import ShapeMismatch
from clickml.preprocessing_config import PreprocessingConfig, ScalerParams
from clickml.scaler import scale


def _params(scale_: list[float], min_: list[float], **ranges: list[float]) -> ScalerParams:
    n = len(scale_)
    return ScalerParams(
        data_min=ranges.get("data_min", [0.0] * n),
        data_max=ranges.get("data_max", [1.0] * n),
        scale=scale_,
        min=min_,
    )


class TestScale:
    """Tests for the x * scale + min transform."""

    def test_elementwise_formula(self) -> None:
        """Test each output is vector[i] * scale[i] + min[i]."""
        params = _params([0.5, 2.0, -1.0], [1.0, -3.0, 0.25])
        vector = np.array([4.0, 1.5, 2.0])
        result = scale(vector, params)
        for i in range(3):
            assert result[i] == pytest.approx(vector[i] * params.scale[i] + params.min[i])

    def test_identity_params(self) -> None:
        """Test unit scale and zero offset leave values unchanged."""
        result = scale(np.array([30.0, 1.0]), _params([1.0, 1.0], [0.0, 0.0]))
        np.testing.assert_array_equal(result, [30.0, 1.0])

    def test_ignores_data_range(self) -> None:
        """Test data_min/data_max never enter the transform."""
        params = _params([0.1], [0.2], data_min=[-50.0], data_max=[500.0])
        assert scale(np.array([10.0]), params)[0] == pytest.approx(1.2)

    def test_deterministic(self, config: PreprocessingConfig) -> None:
        """Test scaling the same input twice gives the same output."""
        vector = np.linspace(0, 100, config.n_features)
        np.testing.assert_array_equal(
            scale(vector, config.scaler), scale(vector, config.scaler)
        )

    def test_input_not_modified(self) -> None:
        """Test the source vector is left intact."""
        vector = np.array([2.0, 3.0])
        scale(vector, _params([10.0, 10.0], [1.0, 1.0]))
        np.testing.assert_array_equal(vector, [2.0, 3.0])

    def test_training_range_maps_to_unit_interval(self, config: PreprocessingConfig) -> None:
        """Test a fitted scaler maps data_min to 0 and data_max to 1."""
        lo = scale(np.array(config.scaler.data_min), config.scaler)
        hi = scale(np.array(config.scaler.data_max), config.scaler)
        varying = np.array(config.scaler.data_max) != np.array(config.scaler.data_min)
        np.testing.assert_allclose(lo, 0.0, atol=1e-9)
        np.testing.assert_allclose(hi[varying], 1.0, atol=1e-9)

    def test_length_mismatch(self) -> None:
        """Test a vector of the wrong width is rejected."""
        with pytest.raises(ShapeMismatch):
            scale(np.array([1.0, 2.0, 3.0]), _params([1.0, 1.0], [0.0, 0.0]))

    def test_rejects_matrix(self) -> None:
        """Test batches are not accepted."""
        with pytest.raises(ShapeMismatch, match="1-D"):
            scale(np.ones((1, 2)), _params([1.0, 1.0], [0.0, 0.0]))
