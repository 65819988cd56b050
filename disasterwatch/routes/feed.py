from typing import Optional

from fastapi import APIRouter, Depends

from disasterwatch.routes.dashboard import get_store
from disasterwatch.schemas.disaster import DisasterType
from disasterwatch.store import DashboardStore

router = APIRouter(prefix="/feed", tags=["feed"])


@router.get("/events")
def list_events(type: Optional[DisasterType] = None,
                store: DashboardStore = Depends(get_store)):
    """Events of the active tab, optionally narrowed to one type.

    The ``type`` query overrides the stored filter for this call only.
    """
    events = store.filtered_events() if type is None else [
        e for e in store.displayed_events() if e.type == type
    ]
    state = store.state
    return {
        "tab": state.active_tab.value,
        "label": store.feed_label(),
        "events": [e.model_dump(mode="json", by_alias=True) for e in events],
        "eventTypes": [t.value for t in store.event_types()],
        "search": state.search.model_dump(mode="json", by_alias=True),
        "selectedEventId": state.selected_event_id,
        "loadingDetailsId": state.loading_details_id,
    }


@router.get("/map")
def map_view(store: DashboardStore = Depends(get_store)):
    return store.map_view().model_dump(mode="json", by_alias=True)
