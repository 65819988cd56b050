import json
import uuid
from datetime import datetime, timezone

import structlog
from pydantic import ValidationError

from disasterwatch.agents.llm import GenerationService, get_generation_service
from disasterwatch.config import DEFAULT_ZOOM_LEVEL
from disasterwatch.errors import MalformedResponseError
from disasterwatch.schemas.disaster import (
    REGION_RESPONSE_SCHEMA, Coordinates, DisasterEvent, DisasterResponse,
    UpstreamRegionPayload,
)

logger = structlog.get_logger(__name__)

COORDINATE_PREFIX = "lat:"

REGION_SYSTEM_INSTRUCTION = """You are a strict, real-time natural disaster monitor.

Tasks:
1. **Locate the search region**: work out the central latitude and longitude
   of the region the user searched for (for "Texas", the centre of Texas).
2. **Find disasters**: search for CONFIRMED natural disasters happening now or
   within the last 24 hours in that region.

Rules for events:
- Report ONLY wildfires, floods, earthquakes above M4.0, tornadoes, tsunamis,
  hurricanes/typhoons and volcanic eruptions.
- Ignore ordinary weather (light rain, snow, normal heat, clouds). Report it
  only when an official WARNING or EMERGENCY is in force (e.g. "Flash Flood
  Warning").
- Verify every event with the Google Search tool against recent news or
  official accounts (NWS, USGS, national agencies).
- Never invent events. If nothing major is happening in the region, return an
  empty events list.
- Every event MUST carry a specific, valid source URL (news article or
  official status page).

Output: a JSON object with
- "searchCenter": {lat, lng} of the searched region,
- "zoomLevel": suggested map zoom (5 for a country, 8 for a state, 11 for a city),
- "events": the list of disaster events."""


def _generate_id() -> str:
    return uuid.uuid4().hex


def format_coordinate_query(coordinates: Coordinates) -> str:
    """Region string for a device location, e.g. ``lat:35.2, lng:-101.8``."""
    return f"{COORDINATE_PREFIX}{coordinates.lat}, lng:{coordinates.lng}"


def is_coordinate_query(region: str) -> bool:
    return COORDINATE_PREFIX in region


def build_region_prompt(region: str) -> str:
    return (
        f'Search for real-time natural disaster alerts in: "{region}".\n'
        f"If the input is coordinates (e.g. lat:x, lng:y), search near there.\n"
        f"Be extremely precise with the coordinates of each event."
    )


def _load_json(text: str):
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    # Local models sometimes wrap the object in prose or code fences
    start_idx = text.find("{")
    end_idx = text.rfind("}") + 1
    if start_idx != -1 and end_idx > start_idx:
        try:
            return json.loads(text[start_idx:end_idx])
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Response is not valid JSON: {e}") from e
    raise MalformedResponseError("Response does not contain a JSON object")


def parse_region_payload(text: str | None) -> DisasterResponse:
    """Validate a region-query body and turn it into typed events.

    Each event gets a fresh id and ``verified=True``; a missing timestamp
    becomes the parse time and a missing zoom hint becomes the default.
    Raises MalformedResponseError for anything that is not the expected shape.
    """
    if not text or not text.strip():
        raise MalformedResponseError("No response body from the generation service")

    data = _load_json(text)
    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(data).__name__}"
        )

    try:
        payload = UpstreamRegionPayload.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"Unexpected response shape: {e}") from e

    now = datetime.now(timezone.utc).isoformat()
    events = [
        DisasterEvent(
            id=_generate_id(),
            title=item.title,
            type=item.type,
            description=item.description,
            location_name=item.location_name,
            coordinates=item.coordinates,
            severity=item.severity,
            source=item.source,
            source_url=item.source_url,
            timestamp=item.timestamp or now,
            verified=True,
        )
        for item in payload.events or []
    ]

    zoom_level = round(payload.zoom_level) if payload.zoom_level else DEFAULT_ZOOM_LEVEL
    return DisasterResponse(
        events=events,
        search_center=payload.search_center,
        zoom_level=zoom_level,
    )


async def fetch_disaster_data(
    region: str, service: GenerationService | None = None,
) -> DisasterResponse:
    """Ask the generation service for current disasters in ``region``.

    Args:
        region: a place name, or a coordinate query from format_coordinate_query.
        service: backend to use; the configured one when omitted.

    Raises:
        ConfigurationError: no credential, before any call is attempted.
        GenerationServiceError: the service call failed.
        MalformedResponseError: the answer did not match the schema.
    """
    service = service or get_generation_service()
    try:
        text = await service.generate(
            system_instruction=REGION_SYSTEM_INSTRUCTION,
            prompt=build_region_prompt(region),
            response_schema=REGION_RESPONSE_SCHEMA,
            web_search=True,
        )
        response = parse_region_payload(text)
    except Exception as e:
        logger.error("region_query_failed", region=region, error=str(e),
                     error_type=type(e).__name__)
        raise

    logger.info(
        "region_query_completed",
        region=region,
        events=len(response.events),
        zoom_level=response.zoom_level,
    )
    return response
