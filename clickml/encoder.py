"""
Feature Encoder for Inference
=============================
Mirror of the training-time feature construction, applied to a single
ad impression for real-time inference.

The resulting vector is unscaled; see ``clickml.scaler``.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

import numpy as np

from clickml.config import (
    DEFAULT_DAY_OF_WEEK,
    DEFAULT_MONTH,
    DEFAULT_YEAR,
    FEATURE_AD_TOPIC,
    FEATURE_AGE,
    FEATURE_AREA_INCOME,
    FEATURE_COUNTRY,
    FEATURE_DAILY_TIME,
    FEATURE_DAY_OF_WEEK,
    FEATURE_INTERNET_USAGE,
    FEATURE_MALE,
    FEATURE_MONTH,
    FEATURE_YEAR,
    GENDER_POSITIVE,
    SEARCH_QUERY_PREFIX,
    UNKNOWN_CATEGORY_INDEX,
)
from clickml.errors import FeatureMissing
from clickml.preprocessing_config import PreprocessingConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalendarContext:
    """Calendar features fed to the model in place of a real timestamp."""

    year: int = DEFAULT_YEAR
    month: int = DEFAULT_MONTH
    day_of_week: int = DEFAULT_DAY_OF_WEEK  # Monday = 0

    @classmethod
    def from_date(cls, d: date) -> "CalendarContext":
        return cls(year=d.year, month=d.month, day_of_week=d.weekday())


DEFAULT_CALENDAR = CalendarContext()


@dataclass(frozen=True)
class RawAdInput:
    """User-facing values for one ad impression."""

    daily_time_spent_on_site: float
    age: int
    area_income: float
    daily_internet_usage: float
    gender: str
    country: str
    ad_topic_line: str


@dataclass(frozen=True)
class EncodedCategory:
    """Label-encoded value, tagged with whether it was seen in training.

    ``known=False`` means the raw value was absent from the vocabulary and
    the fallback index was used instead.
    """

    value: int
    known: bool
    raw: str


@dataclass(frozen=True)
class EncodedFeatures:
    """Unscaled, ordered feature vector plus encoding diagnostics."""

    vector: np.ndarray
    categories: dict[str, EncodedCategory] = field(default_factory=dict)

    @property
    def has_unknown_categories(self) -> bool:
        return any(not c.known for c in self.categories.values())


def encode_category(classes: tuple[str, ...], value: str) -> EncodedCategory:
    """Index of the first exact match in ``classes``, else the fallback."""
    try:
        return EncodedCategory(value=classes.index(value), known=True, raw=value)
    except ValueError:
        return EncodedCategory(value=UNKNOWN_CATEGORY_INDEX, known=False, raw=value)


def encode_gender(value: str) -> int:
    return 1 if value == GENDER_POSITIVE else 0


def search_query_names(count: int) -> list[str]:
    return [f"{SEARCH_QUERY_PREFIX}{i}" for i in range(count)]


class FeatureEncoder:
    """Builds model-ordered feature vectors from raw ad inputs.

    Parameters
    ----------
    config : PreprocessingConfig
        Vocabularies, feature order and search-query width.
    calendar : CalendarContext
        Calendar values injected into every vector.
    """

    def __init__(
        self,
        config: PreprocessingConfig,
        calendar: CalendarContext = DEFAULT_CALENDAR,
    ):
        self.config = config
        self.calendar = calendar

    def value_map(
        self, raw: RawAdInput
    ) -> tuple[dict[str, float], dict[str, EncodedCategory]]:
        """Every encoded value keyed by feature name.

        A label-encoded column without a configured vocabulary is left out
        of the map; ``encode`` reports it if the model needs it.
        """
        row: dict[str, float] = {
            FEATURE_DAILY_TIME: float(raw.daily_time_spent_on_site),
            FEATURE_AGE: float(raw.age),
            FEATURE_AREA_INCOME: float(raw.area_income),
            FEATURE_INTERNET_USAGE: float(raw.daily_internet_usage),
            FEATURE_MALE: float(encode_gender(raw.gender)),
            FEATURE_YEAR: float(self.calendar.year),
            FEATURE_MONTH: float(self.calendar.month),
            FEATURE_DAY_OF_WEEK: float(self.calendar.day_of_week),
        }

        categories: dict[str, EncodedCategory] = {}
        for column, value in (
            (FEATURE_AD_TOPIC, raw.ad_topic_line),
            (FEATURE_COUNTRY, raw.country),
        ):
            if column not in self.config.label_encoders:
                continue
            encoded = encode_category(self.config.vocabulary(column), value)
            if not encoded.known:
                logger.debug(
                    "Unknown %s %r; encoded as index %d",
                    column, value, encoded.value,
                )
            categories[column] = encoded
            row[column] = float(encoded.value)

        # No search history is collected; the block stays neutral.
        for name in search_query_names(self.config.num_search_query_features):
            row[name] = 0.0

        return row, categories

    def encode(self, raw: RawAdInput) -> EncodedFeatures:
        """
        Convert a raw ad input into a vector matching ``features_order``.

        Raises
        ------
        FeatureMissing
            If a feature named in ``features_order`` has no value.
        """
        row, categories = self.value_map(raw)

        missing = [f for f in self.config.features_order if f not in row]
        if missing:
            raise FeatureMissing(
                f"No value for feature(s) {missing}; config and encoder disagree"
            )

        # Assemble in exact training order
        vector = np.array(
            [row[f] for f in self.config.features_order], dtype=np.float64
        )
        vector.flags.writeable = False
        return EncodedFeatures(vector=vector, categories=categories)
