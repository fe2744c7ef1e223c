"""
Pydantic Schemas for Request / Response Validation
===================================================
Input schema for one ad impression plus the structured responses the
browser page consumes.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from clickml.encoder import RawAdInput


class AdImpressionInput(BaseModel):
    """Form values for a click-probability request."""

    daily_time_spent_on_site: float = Field(
        ..., ge=0, le=1440,
        description="Minutes per day spent on the site",
        json_schema_extra={"example": 65.0},
    )
    age: int = Field(
        ..., ge=0, le=120,
        description="Visitor age in years",
        json_schema_extra={"example": 35},
    )
    area_income: float = Field(
        ..., ge=0,
        description="Average income of the visitor's area",
        json_schema_extra={"example": 55000.0},
    )
    daily_internet_usage: float = Field(
        ..., ge=0, le=1440,
        description="Minutes per day spent online",
        json_schema_extra={"example": 180.0},
    )
    gender: str = Field(
        ...,
        description="'Male' encodes as 1, anything else as 0",
        json_schema_extra={"example": "Male"},
    )
    country: str = Field(
        ..., description="Country name", json_schema_extra={"example": "France"},
    )
    ad_topic_line: str = Field(
        ..., description="Ad headline",
        json_schema_extra={"example": "Cloned 5thgeneration orchestration"},
    )

    def to_raw(self) -> RawAdInput:
        return RawAdInput(**self.model_dump())


class GaugeResponse(BaseModel):
    probability: float
    dash_offset: float
    percent_text: str
    verdict: Literal["positive", "negative"]
    color: str


class CategoryDiagnostic(BaseModel):
    value: int
    known: bool
    raw: str


class PredictionResponse(BaseModel):
    """Prediction result, or a skip notice when the session is not ready."""

    status: Literal["ok", "skipped"] = "ok"
    probability: Optional[float] = Field(None, ge=0, le=1)
    gauge: Optional[GaugeResponse] = None
    categories: dict[str, CategoryDiagnostic] = Field(default_factory=dict)
    stale: bool = False


class HealthResponse(BaseModel):
    status: str
    model_loaded: bool
    message: str = ""
    error: Optional[str] = None


class RangeHint(BaseModel):
    min: int
    max: int


class FormOptionsResponse(BaseModel):
    """Everything the page needs to populate the form."""

    countries: list[str]
    ad_topics: list[str]
    default_country: Optional[str] = None
    default_ad_topic: Optional[str] = None
    area_income_range: Optional[RangeHint] = None
    metrics: dict[str, str] = Field(default_factory=dict)


class FeatureDescriptorResponse(BaseModel):
    name: str
    position: int
    source: str
    transform: str
    data_min: float
    data_max: float
    vocabulary_size: Optional[int] = None


class FeatureLayoutResponse(BaseModel):
    n_features: int
    num_search_query_features: int
    features: list[FeatureDescriptorResponse]
