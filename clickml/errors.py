"""
Error taxonomy for the click-probability pipeline.

Every loader and pipeline stage raises one of these; the session turns
startup failures into a single blocking notice.
"""


class ClickGaugeError(Exception):
    """Base class for all pipeline errors."""


class FetchError(ClickGaugeError):
    """A resource could not be retrieved."""

    def __init__(self, uri: str, detail: str, status_code: int | None = None):
        self.uri = uri
        self.status_code = status_code
        super().__init__(f"{detail} ({uri})")


class ConfigUnavailable(ClickGaugeError):
    """Preprocessing configuration could not be fetched or parsed."""


class ConfigMalformed(ClickGaugeError):
    """Preprocessing configuration is missing keys or is inconsistent."""


class ModelUnavailable(ClickGaugeError):
    """Model artifact could not be fetched or parsed."""


class ShapeMismatch(ClickGaugeError):
    """A vector does not have the width the next stage expects."""


class FeatureMissing(ClickGaugeError):
    """A feature named in ``features_order`` has no encoded value."""


class SessionNotReady(ClickGaugeError):
    """A prediction was requested before the model and config were loaded."""
