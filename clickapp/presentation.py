"""
Gauge presentation for click probabilities.

Turns a probability into the ring/label data the browser draws, and keeps
the latest status line and blocking error for the page to poll.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from clickml.config import (
    DECISION_THRESHOLD,
    GAUGE_STROKE_DASH,
    NEGATIVE_COLOR,
    POSITIVE_COLOR,
)
from clickml.preprocessing_config import TrainingMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GaugeView:
    probability: float
    dash_offset: float
    percent_text: str
    verdict: str
    color: str


def classify(probability: float) -> str:
    """``"positive"`` strictly above the decision threshold, else ``"negative"``."""
    return "positive" if probability > DECISION_THRESHOLD else "negative"


def percent_label(probability: float) -> str:
    """One-decimal percentage; exact ties round up, like JavaScript's ``toFixed``."""
    tenths = Decimal(probability * 100).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{tenths}%"


def render_gauge(probability: float) -> GaugeView:
    verdict = classify(probability)
    return GaugeView(
        probability=probability,
        dash_offset=GAUGE_STROKE_DASH - probability * GAUGE_STROKE_DASH,
        percent_text=percent_label(probability),
        verdict=verdict,
        color=POSITIVE_COLOR if verdict == "positive" else NEGATIVE_COLOR,
    )


def format_metrics(metrics: Optional[TrainingMetrics]) -> dict[str, str]:
    """Display strings for the training metrics panel."""
    if metrics is None:
        return {}
    shown = {}
    if metrics.accuracy is not None:
        shown["accuracy"] = f"{metrics.accuracy * 100:.2f}%"
    if metrics.roc_auc is not None:
        shown["roc_auc"] = f"{metrics.roc_auc:.4f}"
    return shown


class GaugePresenter:
    """In-memory display sink; the web layer reads its current state."""

    def __init__(self) -> None:
        self.current: Optional[GaugeView] = None
        self.status: str = ""
        self.blocking_error: Optional[str] = None

    def present(self, probability: float) -> None:
        self.current = render_gauge(probability)

    def show_status(self, message: str) -> None:
        self.status = message
        logger.info("Status: %s", message)

    def show_blocking_error(self, message: str) -> None:
        self.blocking_error = message
        logger.error("Blocking error: %s", message)
