"""
Preprocessing Configuration
===========================
Typed, immutable view of ``preprocessing_config.json`` -- the document
exported next to the model at training time.  It carries everything the
inference pipeline needs to reproduce training preprocessing:

- ``label_encoders``            : column -> vocabulary (position = code)
- ``features_order``            : exact column order of the model input
- ``scaler``                    : fitted MinMaxScaler attributes
- ``num_search_query_features`` : width of the zero-filled query block
- ``metrics``                   : optional training metrics (display only)

Vocabulary order is preserved exactly as stored; sorting it would change
the codes.  Use ``sorted_vocabulary`` for display.
"""

import logging
import math
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from clickml.errors import ConfigMalformed, ConfigUnavailable, FetchError
from clickml.fetch import ResourceFetcher

logger = logging.getLogger(__name__)


class ScalerParams(BaseModel):
    """Fitted MinMaxScaler attributes, indexed by ``features_order`` position."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    data_min: tuple[float, ...]
    data_max: tuple[float, ...]
    scale: tuple[float, ...]
    min: tuple[float, ...]

    @model_validator(mode="after")
    def _check_parallel(self) -> "ScalerParams":
        lengths = {
            "data_min": len(self.data_min),
            "data_max": len(self.data_max),
            "scale": len(self.scale),
            "min": len(self.min),
        }
        if len(set(lengths.values())) != 1:
            raise ValueError(f"scaler arrays differ in length: {lengths}")
        return self

    def __len__(self) -> int:
        return len(self.scale)


class TrainingMetrics(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    accuracy: Optional[float] = None
    roc_auc: Optional[float] = None


class PreprocessingConfig(BaseModel):
    """Session-wide preprocessing configuration (read-only)."""

    model_config = ConfigDict(frozen=True)

    label_encoders: dict[str, tuple[str, ...]]
    features_order: tuple[str, ...]
    scaler: ScalerParams
    num_search_query_features: int = Field(..., ge=0)
    metrics: Optional[TrainingMetrics] = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "PreprocessingConfig":
        if len(set(self.features_order)) != len(self.features_order):
            dupes = sorted(
                {f for f in self.features_order if self.features_order.count(f) > 1}
            )
            raise ValueError(f"features_order contains duplicates: {dupes}")

        if len(self.scaler) != len(self.features_order):
            raise ValueError(
                f"scaler has {len(self.scaler)} entries but features_order "
                f"has {len(self.features_order)}"
            )

        for column, classes in self.label_encoders.items():
            if len(set(classes)) != len(classes):
                raise ValueError(
                    f"label_encoders[{column!r}] contains duplicate categories"
                )
        return self

    @property
    def n_features(self) -> int:
        return len(self.features_order)

    def vocabulary(self, column: str) -> tuple[str, ...]:
        """Return the vocabulary of ``column`` in its encoding order."""
        return self.label_encoders[column]

    def sorted_vocabulary(self, column: str) -> list[str]:
        """Alphabetised copy of a vocabulary, for display only."""
        return sorted(self.label_encoders[column])

    def feature_range(self, feature: str) -> Optional[tuple[int, int]]:
        """Integer ``(floor(data_min), ceil(data_max))`` hint for a feature."""
        if feature not in self.features_order:
            return None
        idx = self.features_order.index(feature)
        return (
            math.floor(self.scaler.data_min[idx]),
            math.ceil(self.scaler.data_max[idx]),
        )


def parse_preprocessing_config(data: object) -> PreprocessingConfig:
    """Validate a decoded JSON document.

    Raises
    ------
    ConfigMalformed
        If required keys are missing or the content is inconsistent.
    """
    if not isinstance(data, dict):
        raise ConfigMalformed(
            f"Expected a JSON object, got {type(data).__name__}"
        )
    try:
        return PreprocessingConfig.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigMalformed(f"Invalid preprocessing config: {problems}") from e


async def load_preprocessing_config(
    uri: str, fetcher: ResourceFetcher
) -> PreprocessingConfig:
    """Fetch, decode and validate the preprocessing configuration."""
    try:
        data = await fetcher.fetch_json(uri)
    except FetchError as e:
        raise ConfigUnavailable(
            f"Failed to load Config. Check '{uri}'. Details: {e}"
        ) from e
    except ValueError as e:
        raise ConfigUnavailable(
            f"Failed to load Config. '{uri}' is not valid JSON. Details: {e}"
        ) from e

    try:
        config = parse_preprocessing_config(data)
    except ConfigMalformed as e:
        raise ConfigMalformed(f"Failed to load Config. Details: {e}") from e

    logger.info(
        "Config loaded: %d features, %d label encoders, %d search-query features",
        config.n_features,
        len(config.label_encoders),
        config.num_search_query_features,
    )
    return config
