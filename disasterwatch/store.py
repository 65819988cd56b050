import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

import structlog

from disasterwatch import config
from disasterwatch.agents.event_detail import fetch_event_details
from disasterwatch.agents.region_query import (
    fetch_disaster_data, format_coordinate_query, is_coordinate_query,
)
from disasterwatch.errors import ConfigurationError
from disasterwatch.schemas.dashboard import DashboardState, MapView, Tab, ViewMode
from disasterwatch.schemas.disaster import (
    Coordinates, DisasterEvent, DisasterResponse, DisasterType, SearchState,
)

logger = structlog.get_logger(__name__)

SEARCH_ERROR = "Unable to complete analysis. Please try a different region."
GLOBAL_REFRESH_ERROR = "Failed to refresh global feed."

YOUR_LOCATION = "Your Location"
LOCAL_FEED_LABEL = "Local Region"
GLOBAL_FEED_LABEL = "Global Calamities"
LOCAL_EMPTY_MESSAGE = "No confirmed reports in this area recently."
GLOBAL_EMPTY_MESSAGE = "No major global events reported right now (which is good news!)."

RegionFetcher = Callable[[str], Awaitable[DisasterResponse]]
DetailFetcher = Callable[[DisasterEvent], Awaitable[str]]

_SLOT_FIELDS = {Tab.LOCAL: "local_events", Tab.GLOBAL: "global_events"}


class DashboardStore:
    """In-memory dashboard state and the intents that change it.

    State is an immutable DashboardState snapshot replaced on every change.
    Intents suspend only at the generation-service call and apply their
    update synchronously when it returns, so no locking is needed on a single
    event loop. Each event list (slot) carries a generation counter: a
    response whose request has since been superseded is dropped.
    """

    def __init__(
        self,
        fetch_region: Optional[RegionFetcher] = None,
        fetch_details: Optional[DetailFetcher] = None,
    ):
        self._fetch_region = fetch_region or fetch_disaster_data
        self._fetch_details = fetch_details or fetch_event_details
        self._state = DashboardState()
        self._generations: dict[Tab, int] = {Tab.LOCAL: 0, Tab.GLOBAL: 0}
        # slot -> generation of its request currently shown as "searching"
        self._status_owners: dict[Tab, int] = {}

    @property
    def state(self) -> DashboardState:
        return self._state

    # ---- Intents ----

    async def start(self, location: Optional[Coordinates] = None) -> None:
        """Initial load: global feed and local search run concurrently.

        Without a device location the local search falls back to "Global".
        """
        if location is not None:
            self._set(user_location=location)
            region = format_coordinate_query(location)
        else:
            region = config.FALLBACK_REGION
        logger.info("dashboard_start", has_location=location is not None, region=region)
        await asyncio.gather(self._load_global_feed(), self.search(region))

    async def search(self, region: str) -> None:
        generation = self._begin(Tab.LOCAL, track_status=True)
        self._set(
            search=self._state.search.model_copy(update={"is_searching": True, "error": None}),
            selected_event_id=None,
            last_search_query=region,
            active_tab=Tab.LOCAL,
        )

        try:
            response = await self._fetch_region(region)
        except Exception as e:
            if not self._is_current(Tab.LOCAL, generation):
                return
            self._log_failure("local_search_failed", e, region=region)
            self._finish_status(Tab.LOCAL, generation, error=SEARCH_ERROR)
            return

        if not self._is_current(Tab.LOCAL, generation):
            return
        self._set(
            local_events=tuple(response.events),
            search_focus=response.search_center,
            zoom_level=response.zoom_level,
            region_name=YOUR_LOCATION if is_coordinate_query(region) else region,
        )
        self._finish_status(Tab.LOCAL, generation)

    async def refresh(self) -> None:
        """Re-run the query behind the active tab. Results replace the list, never merge."""
        if self._state.active_tab == Tab.LOCAL:
            if self._state.last_search_query:
                await self.search(self._state.last_search_query)
            return
        await self._refresh_global_feed()

    def set_active_tab(self, tab: Tab) -> None:
        self._set(active_tab=tab)

    def set_view_mode(self, mode: ViewMode) -> None:
        self._set(view_mode=mode)

    def set_type_filter(self, disaster_type: Optional[DisasterType]) -> None:
        self._set(type_filter=disaster_type)

    def select_event(self, event_id: str, narrow_viewport: bool = False) -> Optional[DisasterEvent]:
        """Select an event of the active list. Narrow screens jump to the map."""
        event = self.find_event(event_id)
        if event is None:
            return None
        changes: dict = {"selected_event_id": event_id}
        if narrow_viewport:
            changes["view_mode"] = ViewMode.MAP
        self._set(**changes)
        return event

    async def request_event_details(self, event_id: str) -> Optional[DisasterEvent]:
        """Fetch a situation report and merge it into the event.

        Returns the updated event, or None when the event is not in the
        active list, the fetch failed, or the list was replaced meanwhile.
        Failures are logged only; the search status is left alone.
        """
        slot = self._state.active_tab
        event = self.find_event(event_id)
        if event is None:
            logger.info("event_detail_skipped", event_id=event_id, slot=slot.value)
            return None

        self._set(loading_details_id=event_id)
        try:
            details = await self._fetch_details(event)
        except Exception as e:
            self._log_failure("event_detail_update_failed", e, event_id=event_id)
            return None
        finally:
            if self._state.loading_details_id == event_id:
                self._set(loading_details_id=None)

        return self._merge_details(slot, event_id, details)

    # ---- Observations ----

    def find_event(self, event_id: str) -> Optional[DisasterEvent]:
        for event in self.displayed_events():
            if event.id == event_id:
                return event
        return None

    def displayed_events(self) -> List[DisasterEvent]:
        return list(self._events(self._state.active_tab))

    def filtered_events(self) -> List[DisasterEvent]:
        type_filter = self._state.type_filter
        events = self.displayed_events()
        if type_filter is None:
            return events
        return [e for e in events if e.type == type_filter]

    def event_types(self) -> List[DisasterType]:
        """Distinct types of the displayed events, in order of first appearance."""
        seen: List[DisasterType] = []
        for event in self.displayed_events():
            if event.type not in seen:
                seen.append(event.type)
        return seen

    def feed_label(self) -> str:
        if self._state.active_tab == Tab.GLOBAL:
            return GLOBAL_FEED_LABEL
        return self._state.region_name or LOCAL_FEED_LABEL

    def empty_message(self) -> Optional[str]:
        s = self._state
        if self.filtered_events() or s.search.is_searching or s.search.error:
            return None
        return LOCAL_EMPTY_MESSAGE if s.active_tab == Tab.LOCAL else GLOBAL_EMPTY_MESSAGE

    def map_view(self) -> MapView:
        """Where the map should look.

        A selected event wins, then the search focus of the active tab, then
        the device location, then the default centre.
        """
        s = self._state
        if s.active_tab == Tab.GLOBAL:
            focus: Optional[Coordinates] = Coordinates(**config.GLOBAL_CENTER)
            focus_zoom = config.GLOBAL_ZOOM
        else:
            focus, focus_zoom = s.search_focus, s.zoom_level

        events = self.displayed_events()
        selected = self.find_event(s.selected_event_id) if s.selected_event_id else None

        if selected is not None:
            center, zoom = selected.coordinates, config.SELECTED_EVENT_ZOOM
        elif focus is not None:
            center, zoom = focus, focus_zoom
        elif s.user_location is not None:
            center, zoom = s.user_location, config.USER_LOCATION_ZOOM
        else:
            center, zoom = Coordinates(**config.DEFAULT_CENTER), config.DEFAULT_ZOOM

        return MapView(
            center=center,
            zoom=zoom,
            events=events,
            selected_event_id=selected.id if selected else None,
            user_location=s.user_location,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set(self, **changes) -> None:
        self._state = self._state.model_copy(update=changes)

    def _events(self, slot: Tab) -> tuple:
        return getattr(self._state, _SLOT_FIELDS[slot])

    def _begin(self, slot: Tab, track_status: bool = False) -> int:
        self._generations[slot] += 1
        generation = self._generations[slot]
        if track_status:
            self._status_owners[slot] = generation
        return generation

    def _is_current(self, slot: Tab, generation: int) -> bool:
        if self._generations[slot] == generation:
            return True
        logger.info(
            "stale_response_discarded",
            slot=slot.value,
            generation=generation,
            current=self._generations[slot],
        )
        return False

    def _finish_status(self, slot: Tab, generation: int, error: Optional[str] = None) -> None:
        """Settle the status for the slot's tracked request.

        The searching flag stays set while the other slot still has a request
        in flight. The last tracked request to finish decides the error.
        """
        if self._status_owners.get(slot) != generation:
            return
        del self._status_owners[slot]
        still_searching = bool(self._status_owners)
        if error is None:
            search = SearchState(
                is_searching=still_searching,
                last_updated=datetime.now(timezone.utc),
                error=None,
            )
        else:
            search = self._state.search.model_copy(
                update={"is_searching": still_searching, "error": error}
            )
        self._set(search=search)

    async def _load_global_feed(self) -> None:
        generation = self._begin(Tab.GLOBAL)
        try:
            response = await self._fetch_region(config.GLOBAL_QUERY)
        except Exception as e:
            self._log_failure("global_feed_load_failed", e)
            return
        if not self._is_current(Tab.GLOBAL, generation):
            return
        self._set(global_events=tuple(response.events))

    async def _refresh_global_feed(self) -> None:
        generation = self._begin(Tab.GLOBAL, track_status=True)
        self._set(
            search=self._state.search.model_copy(update={"is_searching": True, "error": None}),
        )

        try:
            response = await self._fetch_region(config.GLOBAL_QUERY)
        except Exception as e:
            if not self._is_current(Tab.GLOBAL, generation):
                return
            self._log_failure("global_feed_refresh_failed", e)
            self._finish_status(Tab.GLOBAL, generation, error=GLOBAL_REFRESH_ERROR)
            return

        if not self._is_current(Tab.GLOBAL, generation):
            return
        self._set(global_events=tuple(response.events))
        self._finish_status(Tab.GLOBAL, generation)

    def _merge_details(self, slot: Tab, event_id: str, details: str) -> Optional[DisasterEvent]:
        updated: Optional[DisasterEvent] = None
        merged = []
        for event in self._events(slot):
            if event.id == event_id:
                updated = event.model_copy(update={"detailed_status": details})
                merged.append(updated)
            else:
                merged.append(event)

        if updated is None:
            logger.info("event_detail_discarded", event_id=event_id, slot=slot.value)
            return None
        self._set(**{_SLOT_FIELDS[slot]: tuple(merged)})
        return updated

    def _log_failure(self, event: str, error: Exception, **fields) -> None:
        if isinstance(error, ConfigurationError):
            logger.error("generation_service_not_configured", during=event,
                         error=str(error), **fields)
            return
        logger.error(event, error=str(error), error_type=type(error).__name__, **fields)
