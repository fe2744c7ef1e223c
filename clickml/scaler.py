"""
Min-max scaling in the fitted ``x * scale + min`` form.

``scale`` and ``min`` are the attributes sklearn's ``MinMaxScaler`` stores
after fitting.  They are applied as-is; ``data_min``/``data_max`` are
range hints only and never used to rederive the transform.
"""

import numpy as np

from clickml.errors import ShapeMismatch
from clickml.preprocessing_config import ScalerParams


def scale(vector: np.ndarray, params: ScalerParams) -> np.ndarray:
    """Return ``vector * params.scale + params.min`` as a new read-only array."""
    values = np.asarray(vector, dtype=np.float64)
    if values.ndim != 1:
        raise ShapeMismatch(f"Expected a 1-D vector, got shape {values.shape}")
    if values.shape[0] != len(params.scale) or values.shape[0] != len(params.min):
        raise ShapeMismatch(
            f"Vector has {values.shape[0]} features but scaler has "
            f"{len(params.scale)} scale / {len(params.min)} min entries"
        )

    scaled = values * np.asarray(params.scale, dtype=np.float64) + np.asarray(
        params.min, dtype=np.float64
    )
    scaled.flags.writeable = False
    return scaled
