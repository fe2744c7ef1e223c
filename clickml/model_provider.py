"""
Model Provider
==============
Loads the serialized click model once at startup and exposes
``Model.predict(vector) -> probability`` for real-time inference.

Supported artifacts (chosen by file suffix):

- ``model.json``       : TensorFlow.js layers-model export (Sequential
                         stack of Dense / Dropout / Activation /
                         BatchNormalization layers), evaluated with numpy.
- ``.joblib`` / ``.pkl``: a scikit-learn classifier with ``predict_proba``.

Every forward pass runs inside a ``ComputeScope`` so intermediate arrays
are released when ``predict`` returns, on success or error.
"""

import io
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable
from urllib.parse import urlparse

import joblib
import numpy as np

from clickml.errors import FetchError, ModelUnavailable, ShapeMismatch
from clickml.fetch import ResourceFetcher, resolve_relative

logger = logging.getLogger(__name__)


# ── Compute scope ────────────────────────────────────────────────────────

class ComputeScope:
    """Scoped registry of intermediate buffers for one forward pass."""

    def __init__(self, owner: "Model"):
        self._owner = owner
        self._buffers: list[np.ndarray] = []

    def track(self, array: np.ndarray) -> np.ndarray:
        self._buffers.append(array)
        self._owner._adjust_live(1)
        return array

    def __enter__(self) -> "ComputeScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        released = len(self._buffers)
        self._buffers.clear()
        self._owner._adjust_live(-released)


# ── Model interface ──────────────────────────────────────────────────────

class Model(ABC):
    """Binary classifier returning the positive-class probability."""

    def __init__(self, input_width: int):
        self.input_width = input_width
        self._live = 0
        self._live_lock = threading.Lock()

    def _adjust_live(self, delta: int) -> None:
        with self._live_lock:
            self._live += delta

    def live_buffers(self) -> int:
        """Number of intermediate buffers currently held by forward passes."""
        with self._live_lock:
            return self._live

    def predict(self, vector: np.ndarray) -> float:
        """
        Run inference on a single scaled feature vector.

        Raises
        ------
        ShapeMismatch
            If ``vector`` is not 1-D with exactly ``input_width`` entries.
        """
        arr = np.asarray(vector, dtype=np.float32)
        if arr.ndim != 1 or arr.shape[0] != self.input_width:
            raise ShapeMismatch(
                f"Model expects {self.input_width} features, got shape {arr.shape}"
            )

        with ComputeScope(self) as scope:
            batch = scope.track(arr.reshape(1, -1))
            out = self._forward(batch, scope)
            return float(np.asarray(out).reshape(-1)[0])

    @abstractmethod
    def _forward(self, batch: np.ndarray, scope: ComputeScope) -> np.ndarray:
        """Map a ``(1, input_width)`` batch to the model output."""


# ── TensorFlow.js layers model ───────────────────────────────────────────

def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


def _softmax(x: np.ndarray) -> np.ndarray:
    shifted = np.exp(x - np.max(x, axis=-1, keepdims=True))
    return shifted / np.sum(shifted, axis=-1, keepdims=True)


def _elu(x: np.ndarray) -> np.ndarray:
    return np.where(x > 0, x, np.expm1(x))


def _selu(x: np.ndarray) -> np.ndarray:
    alpha = 1.6732632423543772
    lam = 1.0507009873554805
    return lam * np.where(x > 0, x, alpha * np.expm1(x))


ACTIVATIONS: dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "linear": lambda x: x,
    "relu": lambda x: np.maximum(x, 0.0),
    "sigmoid": _sigmoid,
    "tanh": np.tanh,
    "softmax": _softmax,
    "elu": _elu,
    "selu": _selu,
}

_DTYPES = {"float32": np.float32, "int32": np.int32}

_SKIPPED_LAYERS = {"InputLayer", "Dropout"}
_SUPPORTED_LAYERS = _SKIPPED_LAYERS | {"Dense", "Activation", "BatchNormalization"}


def _activation(name: str | None) -> Callable[[np.ndarray], np.ndarray]:
    key = (name or "linear").lower()
    if key not in ACTIVATIONS:
        raise ValueError(f"Unsupported activation '{name}'")
    return ACTIVATIONS[key]


class _Layer:
    def __init__(self, class_name: str, config: dict, weights: dict[str, np.ndarray]):
        self.class_name = class_name
        self.name = config.get("name", class_name)
        self.config = config
        self.weights = weights
        if class_name in ("Dense", "Activation"):
            self.activation = _activation(config.get("activation"))

        missing = [w for w in self._required_weights() if w not in weights]
        if missing:
            raise ValueError(f"Layer '{self.name}' is missing weights {missing}")

    def _required_weights(self) -> list[str]:
        if self.class_name == "Dense":
            return ["kernel", "bias"] if self.config.get("use_bias", True) else ["kernel"]
        if self.class_name == "BatchNormalization":
            required = ["moving_mean", "moving_variance"]
            if self.config.get("scale", True):
                required.append("gamma")
            if self.config.get("center", True):
                required.append("beta")
            return required
        return []

    def __call__(self, x: np.ndarray, scope: ComputeScope) -> np.ndarray:
        if self.class_name == "Dense":
            z = scope.track(x @ self.weights["kernel"])
            if "bias" in self.weights and self.config.get("use_bias", True):
                z = scope.track(z + self.weights["bias"])
            return scope.track(self.activation(z))
        if self.class_name == "Activation":
            return scope.track(self.activation(x))
        if self.class_name == "BatchNormalization":
            eps = float(self.config.get("epsilon", 1e-3))
            w = self.weights
            z = scope.track((x - w["moving_mean"]) / np.sqrt(w["moving_variance"] + eps))
            if "gamma" in w:
                z = scope.track(z * w["gamma"])
            if "beta" in w:
                z = scope.track(z + w["beta"])
            return z
        return x


class TfjsLayersModel(Model):
    """Numpy forward pass over a TensorFlow.js Sequential layers model."""

    def __init__(self, layers: list[_Layer], input_width: int):
        super().__init__(input_width)
        self.layers = layers

    def _forward(self, batch: np.ndarray, scope: ComputeScope) -> np.ndarray:
        x = batch
        for layer in self.layers:
            x = layer(x, scope)
        return x

    @classmethod
    def from_artifacts(cls, model_json: dict, weight_data: list[bytes]) -> "TfjsLayersModel":
        """
        Build a model from a parsed ``model.json`` and its weight groups.

        ``weight_data[i]`` holds the concatenated shards of
        ``weightsManifest[i]``.
        """
        topology = model_json["modelTopology"]
        topology = topology.get("model_config", topology)
        if topology.get("class_name") != "Sequential":
            raise ValueError(
                f"Unsupported model class '{topology.get('class_name')}'; "
                "only Sequential models are supported"
            )
        layer_specs = topology["config"]
        if isinstance(layer_specs, dict):
            layer_specs = layer_specs["layers"]

        weights = _decode_weights(model_json.get("weightsManifest", []), weight_data)

        layers: list[_Layer] = []
        input_width = None
        for spec in layer_specs:
            class_name = spec["class_name"]
            config = spec.get("config", {})
            if class_name not in _SUPPORTED_LAYERS:
                raise ValueError(f"Unsupported layer type '{class_name}'")
            if input_width is None:
                shape = config.get("batch_input_shape") or config.get("batch_shape")
                if shape:
                    input_width = int(shape[-1])
            if class_name == "InputLayer":
                continue
            name = config.get("name", class_name)
            layers.append(_Layer(class_name, config, weights.get(name, {})))

        if input_width is None:
            dense = next((layer for layer in layers if layer.class_name == "Dense"), None)
            if dense is None:
                raise ValueError("Cannot determine model input width")
            input_width = int(dense.weights["kernel"].shape[0])

        return cls(layers, input_width)


def _decode_weights(
    manifest: list[dict], weight_data: list[bytes]
) -> dict[str, dict[str, np.ndarray]]:
    """Split weight-group buffers into arrays keyed by layer then parameter."""
    if len(manifest) != len(weight_data):
        raise ValueError(
            f"Manifest lists {len(manifest)} weight groups, got {len(weight_data)}"
        )

    by_layer: dict[str, dict[str, np.ndarray]] = {}
    for group, buffer in zip(manifest, weight_data):
        offset = 0
        for entry in group["weights"]:
            if "quantization" in entry:
                raise ValueError(f"Quantized weight '{entry['name']}' is not supported")
            dtype = _DTYPES.get(entry.get("dtype", "float32"))
            if dtype is None:
                raise ValueError(f"Unsupported weight dtype '{entry.get('dtype')}'")
            shape = tuple(entry["shape"])
            count = int(np.prod(shape)) if shape else 1
            nbytes = count * np.dtype(dtype).itemsize
            if offset + nbytes > len(buffer):
                raise ValueError(f"Weight data truncated at '{entry['name']}'")
            array = np.frombuffer(buffer, dtype=dtype, count=count, offset=offset)
            offset += nbytes

            # "dense/kernel", "sequential/dense/kernel" or "dense/kernel:0"
            parts = entry["name"].split(":")[0].split("/")
            if len(parts) < 2:
                raise ValueError(f"Cannot map weight '{entry['name']}' to a layer")
            layer_name, param = parts[-2], parts[-1]
            by_layer.setdefault(layer_name, {})[param] = (
                array.reshape(shape).astype(np.float32)
            )
    return by_layer


# ── scikit-learn model ───────────────────────────────────────────────────

class SklearnModel(Model):
    """Wraps a fitted estimator exposing ``predict_proba``."""

    def __init__(self, estimator: Any):
        if not hasattr(estimator, "predict_proba"):
            raise ValueError(
                f"{type(estimator).__name__} does not implement predict_proba"
            )
        width = getattr(estimator, "n_features_in_", None)
        if width is None:
            raise ValueError(f"{type(estimator).__name__} is not fitted")
        super().__init__(int(width))
        self.estimator = estimator

    def _forward(self, batch: np.ndarray, scope: ComputeScope) -> np.ndarray:
        proba = scope.track(np.asarray(self.estimator.predict_proba(batch)))
        return proba[:, -1]


# ── Loading ──────────────────────────────────────────────────────────────

def _suffix(uri: str) -> str:
    path = urlparse(uri).path or uri
    return path.rsplit(".", 1)[-1].lower() if "." in path else ""


async def _load_tfjs(uri: str, fetcher: ResourceFetcher) -> TfjsLayersModel:
    model_json = json.loads(await fetcher.fetch_bytes(uri))
    weight_data = []
    for group in model_json.get("weightsManifest", []):
        shards = [
            await fetcher.fetch_bytes(resolve_relative(uri, path))
            for path in group["paths"]
        ]
        weight_data.append(b"".join(shards))
    return TfjsLayersModel.from_artifacts(model_json, weight_data)


async def _load_joblib(uri: str, fetcher: ResourceFetcher) -> SklearnModel:
    data = await fetcher.fetch_bytes(uri)
    return SklearnModel(joblib.load(io.BytesIO(data)))


_LOADERS = {
    "json": _load_tfjs,
    "joblib": _load_joblib,
    "pkl": _load_joblib,
}


async def load_model(uri: str, fetcher: ResourceFetcher) -> Model:
    """Fetch and deserialize the model artifact at ``uri``.

    Raises
    ------
    ModelUnavailable
        If the artifact cannot be fetched, parsed or is of an unsupported kind.
    """
    loader = _LOADERS.get(_suffix(uri))
    if loader is None:
        raise ModelUnavailable(
            f"Failed to load Model. Unsupported artifact type for '{uri}'"
        )

    try:
        model = await loader(uri, fetcher)
    except FetchError as e:
        raise ModelUnavailable(
            f"Failed to load Model. Check '{uri}' path. Details: {e}"
        ) from e
    except Exception as e:
        # Deserializers raise a wide range of exception types for bad input
        raise ModelUnavailable(
            f"Failed to load Model. Could not parse '{uri}'. Details: {e}"
        ) from e

    logger.info(
        "Model loaded from %s (%s, input width %d)",
        uri, type(model).__name__, model.input_width,
    )
    return model
