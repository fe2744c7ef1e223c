"""
FastAPI Backend -- Ad Click Gauge
=================================
Serves the interactive click-probability page and the API behind it:
- Model + preprocessing config loaded once at startup
- Input validation via Pydantic
- Live prediction on every form change
- Form population (vocabularies, slider ranges, training metrics)
- Feature layout inspection
- Health/status endpoint
- Request logging
"""

import logging
import random
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from clickapp.presentation import GaugePresenter, format_metrics, render_gauge
from clickapp.schemas import (
    AdImpressionInput,
    CategoryDiagnostic,
    FeatureDescriptorResponse,
    FeatureLayoutResponse,
    FormOptionsResponse,
    GaugeResponse,
    HealthResponse,
    PredictionResponse,
    RangeHint,
)
from clickml.config import (
    CONFIG_URI,
    FEATURE_AD_TOPIC,
    FEATURE_AREA_INCOME,
    FEATURE_COUNTRY,
    LOG_DIR,
    MODEL_URI,
)
from clickml.errors import SessionNotReady
from clickml.feature_registry import describe_features
from clickml.fetch import ResourceFetcher
from clickml.session import InferenceSession, SessionContext

# -- Logging ---------------------------------------------------------------
LOG_DIR.mkdir(parents=True, exist_ok=True)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    handlers=[
        logging.FileHandler(LOG_DIR / "api.log"),
        logging.StreamHandler(),
    ],
)
logger = logging.getLogger("api")

STATIC_DIR = Path(__file__).resolve().parent / "static"


def _ready_context(request: Request) -> SessionContext:
    session: InferenceSession = request.app.state.session
    if not session.is_ready or session.context is None:
        raise HTTPException(503, session.error or "Session not ready")
    return session.context


def create_app(
    model_uri: str = MODEL_URI,
    config_uri: str = CONFIG_URI,
    fetcher: Optional[ResourceFetcher] = None,
) -> FastAPI:
    """Build the application around a fresh inference session."""

    # -- Application Lifecycle ----------------------------------------------
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load model and preprocessing config into the session."""
        presenter = GaugePresenter()
        session = InferenceSession(
            model_uri=model_uri,
            config_uri=config_uri,
            presenter=presenter,
            fetcher=fetcher,
        )
        app.state.presenter = presenter
        app.state.session = session

        logger.info("Loading model and preprocessing config...")
        state = await session.start()
        logger.info("Session state after startup: %s", state.value)
        yield
        logger.info("Shutting down")

    # -- App Instance -------------------------------------------------------
    app = FastAPI(
        title="Ad Click Gauge API",
        description=(
            "Live click-through probability for an ad impression, using a "
            "pre-trained classifier and its exported preprocessing."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Serve static files (HTML, CSS, JS)
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    # -- Middleware: request timing -----------------------------------------
    @app.middleware("http")
    async def log_request(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    # =======================================================================
    #  Routes
    # =======================================================================

    @app.get("/", include_in_schema=False)
    async def root():
        """Serve the frontend UI."""
        return FileResponse(str(STATIC_DIR / "index.html"))

    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health(request: Request):
        """Session state, current status line and any blocking error."""
        session: InferenceSession = request.app.state.session
        presenter: GaugePresenter = request.app.state.presenter
        return HealthResponse(
            status=session.state.value,
            model_loaded=session.is_ready,
            message=presenter.status,
            error=presenter.blocking_error,
        )

    @app.get("/form", response_model=FormOptionsResponse, tags=["ui"])
    async def form_options(request: Request):
        """Vocabularies, slider ranges and training metrics for the form."""
        config = _ready_context(request).config

        countries = (
            config.sorted_vocabulary(FEATURE_COUNTRY)
            if FEATURE_COUNTRY in config.label_encoders else []
        )
        ad_topics = (
            config.sorted_vocabulary(FEATURE_AD_TOPIC)
            if FEATURE_AD_TOPIC in config.label_encoders else []
        )
        income = config.feature_range(FEATURE_AREA_INCOME)

        # Random default so the form doesn't always open on the first entry
        return FormOptionsResponse(
            countries=countries,
            ad_topics=ad_topics,
            default_country=random.choice(countries) if countries else None,
            default_ad_topic=random.choice(ad_topics) if ad_topics else None,
            area_income_range=RangeHint(min=income[0], max=income[1]) if income else None,
            metrics=format_metrics(config.metrics),
        )

    @app.post("/predict", response_model=PredictionResponse, tags=["prediction"])
    async def predict_click(
        request: Request,
        impression: AdImpressionInput,
        trigger: Literal["input", "submit"] = "input",
    ):
        """
        Click probability for one ad impression.

        ``trigger=input`` (form change) is skipped quietly while the model
        is loading; ``trigger=submit`` gets a 503 instead.
        """
        session: InferenceSession = request.app.state.session
        try:
            outcome = await session.predict(impression.to_raw(), trigger=trigger)
        except SessionNotReady as e:
            raise HTTPException(status_code=503, detail=str(e))
        except Exception as e:
            logger.exception("Prediction failed")
            raise HTTPException(status_code=500, detail=f"Prediction error: {str(e)}")

        if outcome is None:
            return PredictionResponse(status="skipped")

        view = render_gauge(outcome.probability)
        return PredictionResponse(
            probability=outcome.probability,
            gauge=GaugeResponse(**asdict(view)),
            categories={
                column: CategoryDiagnostic(value=c.value, known=c.known, raw=c.raw)
                for column, c in outcome.categories.items()
            },
            stale=outcome.stale,
        )

    @app.get("/features", response_model=FeatureLayoutResponse, tags=["monitoring"])
    async def feature_layout(request: Request):
        """Model input layout derived from the preprocessing config."""
        config = _ready_context(request).config
        return FeatureLayoutResponse(
            n_features=config.n_features,
            num_search_query_features=config.num_search_query_features,
            features=[
                FeatureDescriptorResponse(**d.to_dict())
                for d in describe_features(config)
            ],
        )

    return app


app = create_app()
