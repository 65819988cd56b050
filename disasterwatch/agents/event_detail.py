import structlog

from disasterwatch.agents.llm import GenerationService, get_generation_service
from disasterwatch.errors import ConfigurationError, EventDetailsError
from disasterwatch.schemas.disaster import DisasterEvent

logger = structlog.get_logger(__name__)

NO_DETAILS_FOUND = "No additional details found."

DETAIL_SYSTEM_INSTRUCTION = """You are a specialised crisis reporter. Write a detailed,
up-to-the-minute situation report for one specific ongoing disaster.

Tasks:
1. Search specifically for the LATEST updates (last 1-2 hours) on the event given.
2. Focus on: containment %, casualty counts, structural damage, evacuation
   orders and road closures.
3. If the event is over or the reports are old, say so clearly.
4. Answer as a clean Markdown formatted paragraph."""


def build_detail_prompt(event: DisasterEvent) -> str:
    return (
        f"Provide a detailed situation report for:\n"
        f"Event: {event.title} ({event.type.value})\n"
        f"Location: {event.location_name}\n"
        f"Original Report: {event.description}\n\n"
        f"Search for the very latest news and official announcements."
    )


async def fetch_event_details(
    event: DisasterEvent, service: GenerationService | None = None,
) -> str:
    """Fresh narrative status for an already-found event (Markdown text).

    Returns NO_DETAILS_FOUND when the service answers with an empty body.
    A missing credential raises ConfigurationError; every other failure is
    wrapped in EventDetailsError.
    """
    service = service or get_generation_service()
    try:
        text = await service.generate(
            system_instruction=DETAIL_SYSTEM_INSTRUCTION,
            prompt=build_detail_prompt(event),
            web_search=True,
        )
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error("event_detail_failed", event_id=event.id, title=event.title,
                     error=str(e), error_type=type(e).__name__)
        raise EventDetailsError("Failed to fetch detailed report.") from e

    if not text or not text.strip():
        logger.info("event_detail_empty", event_id=event.id)
        return NO_DETAILS_FOUND
    logger.info("event_detail_completed", event_id=event.id, chars=len(text))
    return text
