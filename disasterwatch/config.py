import os

GENERATION_PROVIDER = os.getenv("GENERATION_PROVIDER", "gemini").strip().lower()

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-3-flash-preview")

OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.1:8b")
OLLAMA_TIMEOUT = float(os.getenv("OLLAMA_TIMEOUT", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
JSON_LOGS = os.getenv("JSON_LOGS", "false").lower() in ("1", "true", "yes", "y")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
    ).split(",")
    if origin.strip()
]

# Fixed queries issued by the dashboard
GLOBAL_QUERY = "Major natural disasters globally"
FALLBACK_REGION = "Global"

# Map defaults (zoom levels follow the web map tile convention)
DEFAULT_CENTER = {"lat": 34.0522, "lng": -118.2437}  # Los Angeles
DEFAULT_ZOOM = 5
DEFAULT_ZOOM_LEVEL = 6  # when the model omits a zoom hint
GLOBAL_CENTER = {"lat": 20.0, "lng": 0.0}
GLOBAL_ZOOM = 2
SELECTED_EVENT_ZOOM = 12
USER_LOCATION_ZOOM = 10


def get_gemini_api_key() -> str | None:
    """Read the Gemini credential at call time so it can be rotated without a restart."""
    key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    if key is None or not key.strip():
        return None
    return key.strip()
