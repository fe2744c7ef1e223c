"""Pytest configuration and shared fixtures."""

import json
import time
from pathlib import Path
from typing import Any, Callable

import numpy as np
import pytest

from clickml.encoder import RawAdInput
from clickml.model_provider import ComputeScope, Model
from clickml.preprocessing_config import PreprocessingConfig

FEATURES_ORDER = [
    "Daily Time Spent on Site",
    "Age",
    "Area Income",
    "Daily Internet Usage",
    "Ad Topic Line",
    "Country",
    "Male",
    "Timestamp_Year",
    "Timestamp_Month",
    "Timestamp_DayOfWeek",
    "Search_Query_0",
    "Search_Query_1",
    "Search_Query_2",
]

DATA_MIN = [32.6, 19.0, 13996.5, 104.78, 0.0, 0.0, 0.0, 2016.0, 1.0, 0.0, 0.0, 0.0, 0.0]
DATA_MAX = [91.43, 61.0, 79484.8, 269.96, 2.0, 4.0, 1.0, 2016.0, 7.0, 6.0, 1.0, 1.0, 1.0]


def _minmax(data_min: list[float], data_max: list[float]) -> tuple[list[float], list[float]]:
    scale = [1.0 / (hi - lo) if hi != lo else 1.0 for lo, hi in zip(data_min, data_max)]
    mins = [-lo * s for lo, s in zip(data_min, scale)]
    return scale, mins


class FakeModel(Model):
    """Model stub with a configurable output and optional delay."""

    def __init__(
        self,
        input_width: int,
        output: Callable[[np.ndarray], float] = lambda v: 0.7,
        delay: Callable[[np.ndarray], float] = lambda v: 0.0,
    ):
        super().__init__(input_width)
        self.output = output
        self.delay = delay
        self.calls: list[np.ndarray] = []

    def _forward(self, batch: np.ndarray, scope: ComputeScope) -> np.ndarray:
        vector = batch[0].copy()
        self.calls.append(vector)
        time.sleep(self.delay(vector))
        return scope.track(np.array([[self.output(vector)]], dtype=np.float32))


class RecordingPresenter:
    """Presenter that records every call."""

    def __init__(self) -> None:
        self.probabilities: list[float] = []
        self.statuses: list[str] = []
        self.errors: list[str] = []

    def present(self, probability: float) -> None:
        self.probabilities.append(probability)

    def show_status(self, message: str) -> None:
        self.statuses.append(message)

    def show_blocking_error(self, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def config_dict() -> dict[str, Any]:
    """A preprocessing config shaped like the training export."""
    scale, mins = _minmax(DATA_MIN, DATA_MAX)
    return {
        "label_encoders": {
            # Deliberately unsorted: position is the encoded value
            "Country": ["Tunisia", "Nauru", "San Marino", "Italy", "Iceland"],
            "Ad Topic Line": [
                "Monitored national standardization",
                "Cloned 5thgeneration orchestration",
                "Organic bottom-line service-desk",
            ],
        },
        "features_order": list(FEATURES_ORDER),
        "scaler": {
            "data_min": list(DATA_MIN),
            "data_max": list(DATA_MAX),
            "scale": scale,
            "min": mins,
        },
        "num_search_query_features": 3,
        "metrics": {"accuracy": 0.9567, "roc_auc": 0.987654},
    }


@pytest.fixture
def config(config_dict: dict[str, Any]) -> PreprocessingConfig:
    return PreprocessingConfig.model_validate(config_dict)


@pytest.fixture
def config_file(tmp_path: Path, config_dict: dict[str, Any]) -> Path:
    path = tmp_path / "preprocessing_config.json"
    path.write_text(json.dumps(config_dict), encoding="utf-8")
    return path


@pytest.fixture
def raw_input() -> RawAdInput:
    return RawAdInput(
        daily_time_spent_on_site=68.95,
        age=35,
        area_income=61833.9,
        daily_internet_usage=256.09,
        gender="Male",
        country="Italy",
        ad_topic_line="Cloned 5thgeneration orchestration",
    )


@pytest.fixture
def presenter() -> RecordingPresenter:
    return RecordingPresenter()


@pytest.fixture
def fake_model_cls() -> type[FakeModel]:
    return FakeModel


@pytest.fixture
def tfjs_weights() -> dict[str, np.ndarray]:
    """Weights for a 13 -> 4 (relu) -> 1 (sigmoid) network."""
    rng = np.random.default_rng(7)
    return {
        "dense/kernel": rng.normal(size=(len(FEATURES_ORDER), 4)).astype(np.float32),
        "dense/bias": rng.normal(size=(4,)).astype(np.float32),
        "dense_1/kernel": rng.normal(size=(4, 1)).astype(np.float32),
        "dense_1/bias": rng.normal(size=(1,)).astype(np.float32),
    }


def build_tfjs_artifacts(
    weights: dict[str, np.ndarray],
    input_width: int,
    extra_layers: list[dict] | None = None,
) -> tuple[dict, bytes]:
    """Return a ``model.json`` document and its single weight shard."""
    layers = [
        {
            "class_name": "Dense",
            "config": {
                "name": "dense",
                "units": 4,
                "activation": "relu",
                "use_bias": True,
                "batch_input_shape": [None, input_width],
            },
        },
        {"class_name": "Dropout", "config": {"name": "dropout", "rate": 0.2}},
        {
            "class_name": "Dense",
            "config": {"name": "dense_1", "units": 1, "activation": "sigmoid", "use_bias": True},
        },
    ]
    layers.extend(extra_layers or [])
    model_json = {
        "format": "layers-model",
        "modelTopology": {
            "keras_version": "2.15.0",
            "backend": "tensorflow",
            "model_config": {
                "class_name": "Sequential",
                "config": {"name": "sequential", "layers": layers},
            },
        },
        "weightsManifest": [
            {
                "paths": ["group1-shard1of1.bin"],
                "weights": [
                    {"name": name, "shape": list(arr.shape), "dtype": "float32"}
                    for name, arr in weights.items()
                ],
            }
        ],
    }
    shard = b"".join(arr.astype(np.float32).tobytes() for arr in weights.values())
    return model_json, shard


@pytest.fixture
def tfjs_model_dir(tmp_path: Path, tfjs_weights: dict[str, np.ndarray]) -> Path:
    """Directory holding ``model.json`` and its weight shard."""
    model_dir = tmp_path / "tfjs_model"
    model_dir.mkdir()
    model_json, shard = build_tfjs_artifacts(tfjs_weights, len(FEATURES_ORDER))
    (model_dir / "model.json").write_text(json.dumps(model_json), encoding="utf-8")
    (model_dir / "group1-shard1of1.bin").write_bytes(shard)
    return model_dir


def reference_forward(weights: dict[str, np.ndarray], vector: np.ndarray) -> float:
    """Plain numpy evaluation of the fixture network."""
    x = vector.astype(np.float32).reshape(1, -1)
    h = np.maximum(x @ weights["dense/kernel"] + weights["dense/bias"], 0.0)
    z = h @ weights["dense_1/kernel"] + weights["dense_1/bias"]
    return float((1.0 / (1.0 + np.exp(-z)))[0, 0])
