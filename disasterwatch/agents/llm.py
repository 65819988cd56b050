import json
from typing import Protocol

import httpx
import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_ollama import ChatOllama

from disasterwatch import config
from disasterwatch.errors import ConfigurationError, GenerationServiceError

logger = structlog.get_logger(__name__)


class GenerationService(Protocol):
    """One prompt in, the model's text body out (None when the body is empty)."""

    async def generate(
        self,
        *,
        system_instruction: str,
        prompt: str,
        response_schema: dict | None = None,
        web_search: bool = True,
    ) -> str | None: ...


class GeminiGenerationService:
    """Google Gemini with the Google Search tool for grounding."""

    def __init__(self, api_key: str | None, model: str | None = None):
        if not api_key:
            raise ConfigurationError(
                "API key for the generation service is missing (set GEMINI_API_KEY)."
            )
        self.model = model or config.GEMINI_MODEL
        self._client = genai.Client(api_key=api_key)

    async def generate(
        self,
        *,
        system_instruction: str,
        prompt: str,
        response_schema: dict | None = None,
        web_search: bool = True,
    ) -> str | None:
        generate_config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            tools=[types.Tool(google_search=types.GoogleSearch())] if web_search else None,
            response_mime_type="application/json" if response_schema else None,
            response_schema=response_schema,
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=generate_config,
            )
        except genai_errors.APIError as e:
            raise GenerationServiceError(f"Gemini API error {e.code}: {e.message}") from e
        except Exception as e:
            # transport errors differ between the httpx and aiohttp backends of the SDK
            raise GenerationServiceError(f"Gemini request failed: {e}") from e
        return response.text

    async def aclose(self) -> None:
        await self._client.aio.aclose()


def get_llm(model: str | None = None, json_mode: bool = False) -> ChatOllama:
    """Factory: returns a configured ChatOllama instance."""
    return ChatOllama(
        base_url=config.OLLAMA_BASE_URL,
        model=model or config.OLLAMA_MODEL,
        temperature=0,
        format="json" if json_mode else None,
        client_kwargs={"timeout": config.OLLAMA_TIMEOUT},
    )


async def is_ollama_available() -> bool:
    """Check if the Ollama server is reachable."""
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            resp = await client.get(f"{config.OLLAMA_BASE_URL}/api/tags")
            return resp.status_code == 200
    except (httpx.ConnectError, httpx.TimeoutException):
        return False


class OllamaGenerationService:
    """Local model through LangChain. No web search, so reports are only as fresh as the model."""

    def __init__(self, model: str | None = None):
        self.model = model or config.OLLAMA_MODEL

    async def generate(
        self,
        *,
        system_instruction: str,
        prompt: str,
        response_schema: dict | None = None,
        web_search: bool = True,
    ) -> str | None:
        if not await is_ollama_available():
            raise GenerationServiceError(
                f"Ollama server not reachable at {config.OLLAMA_BASE_URL}"
            )
        if web_search:
            logger.debug("web_search_unavailable", provider="ollama", model=self.model)

        instruction = system_instruction
        if response_schema is not None:
            instruction = (
                f"{system_instruction}\n\n"
                f"Respond ONLY with a JSON object matching this schema:\n"
                f"{json.dumps(response_schema, indent=2)}"
            )

        llm = get_llm(self.model, json_mode=response_schema is not None)
        try:
            response = await llm.ainvoke([
                SystemMessage(content=instruction),
                HumanMessage(content=prompt),
            ])
        except Exception as e:
            raise GenerationServiceError(f"Ollama request failed: {e}") from e
        content = response.content
        return content if isinstance(content, str) else str(content)


# Gemini services keyed by credential, so each key keeps one client and its connection pool
_gemini_services: dict[str, GeminiGenerationService] = {}


def get_generation_service(provider: str | None = None) -> GenerationService:
    """Return the configured backend. Raises ConfigurationError before any network call."""
    name = (provider or config.GENERATION_PROVIDER).strip().lower()
    if name == "gemini":
        api_key = config.get_gemini_api_key()
        service = _gemini_services.get(api_key) if api_key else None
        if service is None:
            service = GeminiGenerationService(api_key=api_key)
            _gemini_services[api_key] = service
        return service
    if name == "ollama":
        return OllamaGenerationService()
    raise ConfigurationError(
        f"Unknown GENERATION_PROVIDER {name!r}, expected 'gemini' or 'ollama'"
    )


async def close_generation_services() -> None:
    """Close the cached Gemini clients (called on application shutdown)."""
    services = list(_gemini_services.values())
    _gemini_services.clear()
    for service in services:
        try:
            await service.aclose()
        except Exception as e:
            logger.warning("generation_service_close_failed", error=str(e))
