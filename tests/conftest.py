from __future__ import annotations

import asyncio
import inspect
import json
from typing import Any, List, Optional

import pytest

from disasterwatch.agents import llm


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> Optional[bool]:
    """Run ``async def`` tests on a fresh event loop."""
    function = pyfuncitem.obj
    if not inspect.iscoroutinefunction(function):
        return None

    signature = inspect.signature(function)
    accepted = {
        name: value
        for name, value in pyfuncitem.funcargs.items()
        if name in signature.parameters
    }

    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(function(**accepted))
    finally:
        loop.close()
    return True


class StubGenerationService:
    """Generation service stub: returns (or raises) queued results in order."""

    def __init__(self, *results: Any) -> None:
        self._results: List[Any] = list(results)
        self.calls: List[dict] = []

    async def generate(self, **kwargs: Any) -> Optional[str]:
        self.calls.append(kwargs)
        if not self._results:
            raise RuntimeError("stub generation service exhausted")
        result = self._results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


TEXAS_PAYLOAD = {
    "searchCenter": {"lat": 31.0, "lng": -100.0},
    "zoomLevel": 8,
    "events": [
        {
            "title": "Panhandle Wildfire",
            "type": "WILDFIRE",
            "description": "Fast-moving grass fire north of Amarillo.",
            "locationName": "Amarillo, TX",
            "coordinates": {"lat": 35.2, "lng": -101.8},
            "severity": "HIGH",
            "source": "NWS",
        }
    ],
}


@pytest.fixture
def stub_service():
    return StubGenerationService


@pytest.fixture
def texas_payload() -> dict:
    return json.loads(json.dumps(TEXAS_PAYLOAD))


@pytest.fixture
def no_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    monkeypatch.setattr("disasterwatch.config.GENERATION_PROVIDER", "gemini")


@pytest.fixture(autouse=True)
def fresh_gemini_services(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(llm, "_gemini_services", {})
