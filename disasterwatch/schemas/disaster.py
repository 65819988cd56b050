from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DisasterType(str, Enum):
    WILDFIRE = "WILDFIRE"
    FLOOD = "FLOOD"
    EARTHQUAKE = "EARTHQUAKE"
    STORM = "STORM"
    TORNADO = "TORNADO"
    TSUNAMI = "TSUNAMI"
    OTHER = "OTHER"


class Severity(str, Enum):
    """Display urgency, lowest first."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class CamelModel(BaseModel):
    """Immutable model serialized with camelCase keys (the browser's field names)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Coordinates(CamelModel):
    lat: float = Field(ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(ge=-180, le=180, allow_inf_nan=False)


class DisasterEvent(CamelModel):
    id: str                              # generated at parse time, not by the model
    title: str
    type: DisasterType
    description: str
    location_name: str
    coordinates: Coordinates
    severity: Severity
    source: str
    source_url: Optional[str] = None
    timestamp: str                       # ISO-8601
    verified: bool = True
    detailed_status: Optional[str] = None


class DisasterResponse(CamelModel):
    events: List[DisasterEvent]
    search_center: Coordinates
    zoom_level: int


class SearchState(CamelModel):
    is_searching: bool = False
    last_updated: Optional[datetime] = None
    error: Optional[str] = None


# ---- Upstream payload (what the generation service returns) ----

class UpstreamEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    type: DisasterType
    description: str
    location_name: str
    coordinates: Coordinates
    severity: Severity
    source: str
    source_url: Optional[str] = None
    timestamp: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        # Hurricanes, volcanic eruptions etc. are reported but have no category of their own
        if isinstance(value, str):
            name = value.strip().upper()
            return name if name in DisasterType.__members__ else DisasterType.OTHER.value
        return value

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("source_url", "timestamp", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class UpstreamRegionPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    search_center: Coordinates
    zoom_level: Optional[float] = Field(default=None, allow_inf_nan=False)
    events: Optional[List[UpstreamEvent]] = None


_LAT_LNG = {
    "type": "OBJECT",
    "properties": {
        "lat": {"type": "NUMBER"},
        "lng": {"type": "NUMBER"},
    },
    "required": ["lat", "lng"],
}

REGION_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "searchCenter": _LAT_LNG,
        "zoomLevel": {"type": "NUMBER"},
        "events": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING"},
                    "type": {"type": "STRING", "enum": [t.value for t in DisasterType]},
                    "description": {"type": "STRING"},
                    "locationName": {"type": "STRING"},
                    "coordinates": _LAT_LNG,
                    "severity": {"type": "STRING", "enum": [s.value for s in Severity]},
                    "source": {"type": "STRING"},
                    "sourceUrl": {
                        "type": "STRING",
                        "description": "A valid URL source for this report",
                    },
                    "timestamp": {"type": "STRING"},
                },
                "required": [
                    "title",
                    "type",
                    "description",
                    "locationName",
                    "coordinates",
                    "severity",
                    "source",
                ],
            },
        },
    },
    "required": ["searchCenter", "events", "zoomLevel"],
}
