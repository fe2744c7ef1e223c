"""
Feature Layout Description
==========================
Describes, for each column of the model input, where its value comes
from and how it is transformed, so the live layout can be inspected
without reading the preprocessing config by hand.

Each descriptor contains:
- ``name``       : feature name as it appears in ``features_order``
- ``position``   : column index in the model input
- ``source``     : "numeric" | "binary" | "label_encoded" | "calendar"
                   | "search_query" | "unknown"
- ``transform``  : human-readable scaling formula
- ``data_min`` / ``data_max`` : training range of the raw value
"""

from clickml.config import (
    BINARY_FEATURES,
    CALENDAR_FEATURES,
    LABEL_ENCODED_FEATURES,
    NUMERIC_FEATURES,
    SEARCH_QUERY_PREFIX,
)
from clickml.preprocessing_config import PreprocessingConfig


class FeatureDescriptor:
    """Describes a single model input column."""

    def __init__(
        self,
        name: str,
        position: int,
        source: str,
        transform: str,
        data_min: float,
        data_max: float,
        vocabulary_size: int | None = None,
    ):
        self.name = name
        self.position = position
        self.source = source
        self.transform = transform
        self.data_min = data_min
        self.data_max = data_max
        self.vocabulary_size = vocabulary_size

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "position": self.position,
            "source": self.source,
            "transform": self.transform,
            "data_min": self.data_min,
            "data_max": self.data_max,
            "vocabulary_size": self.vocabulary_size,
        }


def feature_source(name: str) -> str:
    if name in NUMERIC_FEATURES:
        return "numeric"
    if name in BINARY_FEATURES:
        return "binary"
    if name in LABEL_ENCODED_FEATURES:
        return "label_encoded"
    if name in CALENDAR_FEATURES:
        return "calendar"
    if name.startswith(SEARCH_QUERY_PREFIX):
        return "search_query"
    return "unknown"


def describe_features(config: PreprocessingConfig) -> list[FeatureDescriptor]:
    """One descriptor per ``features_order`` entry, in model order."""
    scaler = config.scaler
    descriptors = []
    for idx, name in enumerate(config.features_order):
        vocab = config.label_encoders.get(name)
        descriptors.append(FeatureDescriptor(
            name=name,
            position=idx,
            source=feature_source(name),
            transform=f"minmax(x * {scaler.scale[idx]:.6g} + {scaler.min[idx]:.6g})",
            data_min=scaler.data_min[idx],
            data_max=scaler.data_max[idx],
            vocabulary_size=len(vocab) if vocab is not None else None,
        ))
    return descriptors
