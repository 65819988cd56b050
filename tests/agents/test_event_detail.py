from __future__ import annotations

import pytest

from disasterwatch.agents.event_detail import (
    DETAIL_SYSTEM_INSTRUCTION,
    NO_DETAILS_FOUND,
    fetch_event_details,
)
from disasterwatch.errors import (
    ConfigurationError,
    EventDetailsError,
    GenerationServiceError,
)
from disasterwatch.schemas.disaster import (
    Coordinates,
    DisasterEvent,
    DisasterType,
    Severity,
)


def _event() -> DisasterEvent:
    return DisasterEvent(
        id="evt-1",
        title="Panhandle Wildfire",
        type=DisasterType.WILDFIRE,
        description="Fast-moving grass fire north of Amarillo.",
        location_name="Amarillo, TX",
        coordinates=Coordinates(lat=35.2, lng=-101.8),
        severity=Severity.HIGH,
        source="NWS",
        timestamp="2026-10-19T08:30:00+00:00",
    )


async def test_returns_narrative_text(stub_service) -> None:
    report = "**Containment:** 40%. Evacuation orders lifted for Canyon."
    service = stub_service(report)

    assert await fetch_event_details(_event(), service=service) == report


async def test_prompt_describes_the_event(stub_service) -> None:
    service = stub_service("report")

    await fetch_event_details(_event(), service=service)

    call = service.calls[0]
    assert call["system_instruction"] == DETAIL_SYSTEM_INSTRUCTION
    assert "Panhandle Wildfire (WILDFIRE)" in call["prompt"]
    assert "Location: Amarillo, TX" in call["prompt"]
    assert "Fast-moving grass fire" in call["prompt"]
    assert call["web_search"] is True
    assert "response_schema" not in call


@pytest.mark.parametrize("body", [None, "", "  \n"])
async def test_empty_body_falls_back(stub_service, body) -> None:
    result = await fetch_event_details(_event(), service=stub_service(body))
    assert result == NO_DETAILS_FOUND == "No additional details found."


async def test_service_failure_is_wrapped(stub_service) -> None:
    cause = GenerationServiceError("503 from upstream")

    with pytest.raises(EventDetailsError) as excinfo:
        await fetch_event_details(_event(), service=stub_service(cause))

    assert str(excinfo.value) == "Failed to fetch detailed report."
    assert excinfo.value.__cause__ is cause


async def test_missing_credential_fails_before_any_call(no_credentials, monkeypatch) -> None:
    constructed = []
    monkeypatch.setattr(
        "disasterwatch.agents.llm.genai.Client",
        lambda **kwargs: constructed.append(kwargs),
    )

    with pytest.raises(ConfigurationError):
        await fetch_event_details(_event())

    assert constructed == []
