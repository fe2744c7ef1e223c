"""
Inference Session
=================
Owns the startup sequence and the per-interaction prediction pipeline::

    UNINITIALIZED -> LOADING -> READY <-> PREDICTING
                        |
                        +-> FAILED (terminal)

Model and configuration are loaded once into an immutable
``SessionContext``.  Every input change runs Encode -> Scale -> Predict ->
Present.  Predictions may overlap; each one carries a sequence number and
only a result newer than the last presented one reaches the presenter.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from clickml.config import (
    DEFAULT_RAW_INPUT,
    FEATURE_AD_TOPIC,
    FEATURE_COUNTRY,
)
from clickml.encoder import (
    DEFAULT_CALENDAR,
    CalendarContext,
    EncodedCategory,
    FeatureEncoder,
    RawAdInput,
)
from clickml.errors import ShapeMismatch, SessionNotReady
from clickml.fetch import ResourceFetcher
from clickml.model_provider import Model, load_model
from clickml.preprocessing_config import PreprocessingConfig, load_preprocessing_config
from clickml.scaler import scale

logger = logging.getLogger(__name__)

NOT_READY_MESSAGE = "Model is not ready yet! Please wait for 'Ready' status."


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    PREDICTING = "predicting"
    FAILED = "failed"


class Presenter(Protocol):
    """Display sink driven by the session."""

    def present(self, probability: float) -> None: ...

    def show_status(self, message: str) -> None: ...

    def show_blocking_error(self, message: str) -> None: ...


@dataclass(frozen=True)
class SessionContext:
    """Everything loaded at startup; shared read-only by all predictions."""

    config: PreprocessingConfig
    model: Model
    encoder: FeatureEncoder


@dataclass(frozen=True)
class PredictionOutcome:
    probability: float
    categories: dict[str, EncodedCategory]
    sequence: int
    stale: bool = False


class InferenceSession:
    """
    Startup orchestration plus the interactive prediction pipeline.

    Parameters
    ----------
    model_uri, config_uri : str
        Locations of the model artifact and ``preprocessing_config.json``.
    presenter : Presenter
        Receives probabilities, status lines and the blocking error.
    fetcher : ResourceFetcher, optional
        Fetch capability shared by both loaders.
    calendar : CalendarContext
        Calendar values injected into every feature vector.
    """

    def __init__(
        self,
        model_uri: str,
        config_uri: str,
        presenter: Presenter,
        fetcher: Optional[ResourceFetcher] = None,
        calendar: CalendarContext = DEFAULT_CALENDAR,
    ):
        self.model_uri = model_uri
        self.config_uri = config_uri
        self.presenter = presenter
        self.fetcher = fetcher or ResourceFetcher()
        self.calendar = calendar

        self._state = SessionState.UNINITIALIZED
        self._context: Optional[SessionContext] = None
        self._error: Optional[str] = None
        self._in_flight = 0
        self._issued = 0
        self._presented = 0

    # ── State ────────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        if self._state is SessionState.READY and self._in_flight:
            return SessionState.PREDICTING
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def context(self) -> Optional[SessionContext]:
        return self._context

    @property
    def error(self) -> Optional[str]:
        return self._error

    # ── Startup ──────────────────────────────────────────────────────────

    async def start(self) -> SessionState:
        """Load model and config, run the first prediction; end in READY or FAILED."""
        if self._state is not SessionState.UNINITIALIZED:
            raise RuntimeError(f"Session already started (state={self._state.value})")
        self._state = SessionState.LOADING

        try:
            self.presenter.show_status("Loading resources... Step 1: Model")
            model = await load_model(self.model_uri, self.fetcher)

            self.presenter.show_status("Loading resources... Step 2: Config")
            config = await load_preprocessing_config(self.config_uri, self.fetcher)

            if model.input_width != config.n_features:
                raise ShapeMismatch(
                    f"Model expects {model.input_width} features but config "
                    f"orders {config.n_features}"
                )

            # FeatureMissing if features_order names a value the encoder lacks
            encoder = FeatureEncoder(config, self.calendar)
            first = encoder.encode(initial_input(config))
            probability = await asyncio.to_thread(
                model.predict, scale(first.vector, config.scaler)
            )
        except Exception as e:
            logger.exception("Session startup failed")
            self._state = SessionState.FAILED
            self._error = f"CRITICAL ERROR: {e}"
            self.presenter.show_status(self._error)
            self.presenter.show_blocking_error(self._error)
            return self._state

        self._context = SessionContext(config=config, model=model, encoder=encoder)
        self._state = SessionState.READY
        self.presenter.present(probability)

        self.presenter.show_status("Ready - Model is Live")
        logger.info("Session ready (%d features)", config.n_features)
        return self._state

    # ── Prediction ───────────────────────────────────────────────────────

    async def predict(
        self, raw: RawAdInput, trigger: str = "input"
    ) -> Optional[PredictionOutcome]:
        """
        Run the full pipeline for one interaction.

        Returns ``None`` when the session is not ready and the trigger was a
        plain input change.

        Raises
        ------
        SessionNotReady
            When not ready and ``trigger == "submit"``.
        """
        if not self.is_ready or self._context is None:
            if trigger == "submit":
                raise SessionNotReady(NOT_READY_MESSAGE)
            logger.warning("Prediction skipped: Model/Config not loaded.")
            return None

        ctx = self._context
        self._issued += 1
        sequence = self._issued
        self._in_flight += 1
        try:
            encoded = ctx.encoder.encode(raw)
            scaled = scale(encoded.vector, ctx.config.scaler)
            probability = await asyncio.to_thread(ctx.model.predict, scaled)
        finally:
            self._in_flight -= 1

        stale = sequence < self._presented
        if stale:
            logger.debug(
                "Discarding stale prediction #%d (latest shown #%d)",
                sequence, self._presented,
            )
        else:
            self._presented = sequence
            self.presenter.present(probability)

        return PredictionOutcome(
            probability=probability,
            categories=encoded.categories,
            sequence=sequence,
            stale=stale,
        )


def initial_input(config: PreprocessingConfig) -> RawAdInput:
    """Form defaults with the first display entry of each vocabulary."""
    values = dict(DEFAULT_RAW_INPUT)
    for column, key in ((FEATURE_COUNTRY, "country"), (FEATURE_AD_TOPIC, "ad_topic_line")):
        if not values[key] and config.label_encoders.get(column):
            values[key] = config.sorted_vocabulary(column)[0]
    return RawAdInput(**values)
