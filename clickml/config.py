"""
Click Gauge Configuration
=========================
Central constants for artifact locations, feature names, the synthetic
calendar context, and presentation thresholds used across the inference
pipeline and the web surface.
"""

import os
from pathlib import Path

# -- Paths -----------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
LOG_DIR = PROJECT_ROOT / "logs"

MODEL_URI = os.environ.get(
    "CLICKGAUGE_MODEL_URI", str(ARTIFACTS_DIR / "tfjs_model" / "model.json")
)
CONFIG_URI = os.environ.get(
    "CLICKGAUGE_CONFIG_URI", str(ARTIFACTS_DIR / "preprocessing_config.json")
)

FETCH_TIMEOUT_S = 30.0

# -- Feature Definitions ---------------------------------------------------
FEATURE_DAILY_TIME = "Daily Time Spent on Site"
FEATURE_AGE = "Age"
FEATURE_AREA_INCOME = "Area Income"
FEATURE_INTERNET_USAGE = "Daily Internet Usage"
FEATURE_MALE = "Male"
FEATURE_COUNTRY = "Country"
FEATURE_AD_TOPIC = "Ad Topic Line"
FEATURE_YEAR = "Timestamp_Year"
FEATURE_MONTH = "Timestamp_Month"
FEATURE_DAY_OF_WEEK = "Timestamp_DayOfWeek"
SEARCH_QUERY_PREFIX = "Search_Query_"

NUMERIC_FEATURES = [
    FEATURE_DAILY_TIME,
    FEATURE_AGE,
    FEATURE_AREA_INCOME,
    FEATURE_INTERNET_USAGE,
]

BINARY_FEATURES = [FEATURE_MALE]

# Columns encoded by position in the configured label-encoder vocabulary
LABEL_ENCODED_FEATURES = [FEATURE_COUNTRY, FEATURE_AD_TOPIC]

CALENDAR_FEATURES = [FEATURE_YEAR, FEATURE_MONTH, FEATURE_DAY_OF_WEEK]

# Gender literal mapped to 1; every other value maps to 0
GENDER_POSITIVE = "Male"

# Vocabulary index used when a category was never seen in training
UNKNOWN_CATEGORY_INDEX = 0

# -- Calendar Context ------------------------------------------------------
# Neutral mid-point of the training period (2016-06-01, a Wednesday).
DEFAULT_YEAR = 2016
DEFAULT_MONTH = 6
DEFAULT_DAY_OF_WEEK = 2  # Monday = 0

# -- Presentation ----------------------------------------------------------
DECISION_THRESHOLD = 0.5
GAUGE_STROKE_DASH = 100
POSITIVE_COLOR = "#00ff88"
NEGATIVE_COLOR = "#ff4444"

# -- Initial form values ---------------------------------------------------
DEFAULT_RAW_INPUT = {
    "daily_time_spent_on_site": 65.0,
    "age": 35,
    "area_income": 55000.0,
    "daily_internet_usage": 180.0,
    "gender": "Male",
    "country": "",
    "ad_topic_line": "",
}
