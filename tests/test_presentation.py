"""Tests for gauge rendering and the display sink."""

import pytest

from clickapp.presentation import (
    GaugePresenter,
    classify,
    format_metrics,
    render_gauge,
)
from clickml.preprocessing_config import TrainingMetrics


class TestClassify:
    """Tests for the 0.5 decision threshold."""

    def test_threshold_is_negative(self) -> None:
        """Test exactly 0.5 is styled negative."""
        assert classify(0.5) == "negative"

    def test_just_above_threshold(self) -> None:
        """Test anything above 0.5 is styled positive."""
        assert classify(0.5000001) == "positive"

    @pytest.mark.parametrize("p,expected", [(0.0, "negative"), (1.0, "positive")])
    def test_extremes(self, p: float, expected: str) -> None:
        """Test the ends of the probability range."""
        assert classify(p) == expected


class TestRenderGauge:
    """Tests for ring and label values."""

    def test_positive_probability(self) -> None:
        """Test 0.873 renders as 87.3% in positive styling."""
        view = render_gauge(0.873)
        assert view.percent_text == "87.3%"
        assert view.verdict == "positive"
        assert view.color == "#00ff88"

    def test_negative_probability(self) -> None:
        """Test a low probability uses the negative color."""
        view = render_gauge(0.12)
        assert view.percent_text == "12.0%"
        assert view.verdict == "negative"
        assert view.color == "#ff4444"

    @pytest.mark.parametrize(
        "p,text", [(0.0625, "6.3%"), (0.0, "0.0%"), (1.0, "100.0%"), (0.87349, "87.3%")]
    )
    def test_label_rounds_ties_up(self, p: float, text: str) -> None:
        """Test an exact tenth-of-a-percent tie rounds up, as the browser does."""
        assert render_gauge(p).percent_text == text

    @pytest.mark.parametrize("p,offset", [(0.0, 100.0), (0.25, 75.0), (1.0, 0.0)])
    def test_ring_offset_proportional(self, p: float, offset: float) -> None:
        """Test the ring fill is proportional to the probability."""
        assert render_gauge(p).dash_offset == pytest.approx(offset)


class TestFormatMetrics:
    """Tests for the training metrics panel."""

    def test_both_metrics(self) -> None:
        """Test accuracy shows as percent and ROC AUC with four decimals."""
        shown = format_metrics(TrainingMetrics(accuracy=0.9567, roc_auc=0.987654))
        assert shown == {"accuracy": "95.67%", "roc_auc": "0.9877"}

    def test_no_metrics(self) -> None:
        """Test a config without metrics shows nothing."""
        assert format_metrics(None) == {}


class TestGaugePresenter:
    """Tests for the in-memory display sink."""

    def test_keeps_latest_view(self) -> None:
        """Test each presentation replaces the previous one."""
        presenter = GaugePresenter()
        presenter.present(0.2)
        presenter.present(0.8)
        assert presenter.current is not None
        assert presenter.current.percent_text == "80.0%"

    def test_status_and_error(self) -> None:
        """Test status lines and blocking errors are retained."""
        presenter = GaugePresenter()
        presenter.show_status("Ready - Model is Live")
        presenter.show_blocking_error("CRITICAL ERROR: boom")
        assert presenter.status == "Ready - Model is Live"
        assert presenter.blocking_error == "CRITICAL ERROR: boom"
