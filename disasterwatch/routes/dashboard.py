from fastapi import APIRouter, Depends, HTTPException, Request

from disasterwatch.schemas.dashboard import (
    FilterRequest, SearchRequest, SelectRequest, StartRequest, TabRequest,
    ViewModeRequest,
)
from disasterwatch.store import DashboardStore

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def get_store(request: Request) -> DashboardStore:
    return request.app.state.store


def dashboard_snapshot(store: DashboardStore) -> dict:
    """Current state plus everything the list and map views derive from it."""
    return {
        **store.state.model_dump(mode="json", by_alias=True),
        "view": {
            "feedLabel": store.feed_label(),
            "events": [e.model_dump(mode="json", by_alias=True) for e in store.filtered_events()],
            "eventTypes": [t.value for t in store.event_types()],
            "emptyMessage": store.empty_message(),
            "map": store.map_view().model_dump(mode="json", by_alias=True),
        },
    }


@router.get("")
def get_dashboard(store: DashboardStore = Depends(get_store)):
    return dashboard_snapshot(store)


@router.post("/start")
async def start(req: StartRequest, store: DashboardStore = Depends(get_store)):
    """Initial load. The browser sends its location if geolocation was granted."""
    await store.start(req.location)
    return dashboard_snapshot(store)


@router.post("/search")
async def search(req: SearchRequest, store: DashboardStore = Depends(get_store)):
    await store.search(req.region)
    return dashboard_snapshot(store)


@router.post("/refresh")
async def refresh(store: DashboardStore = Depends(get_store)):
    await store.refresh()
    return dashboard_snapshot(store)


@router.post("/tab")
def set_tab(req: TabRequest, store: DashboardStore = Depends(get_store)):
    store.set_active_tab(req.tab)
    return dashboard_snapshot(store)


@router.post("/view-mode")
def set_view_mode(req: ViewModeRequest, store: DashboardStore = Depends(get_store)):
    store.set_view_mode(req.mode)
    return dashboard_snapshot(store)


@router.post("/filter")
def set_filter(req: FilterRequest, store: DashboardStore = Depends(get_store)):
    store.set_type_filter(req.type)
    return dashboard_snapshot(store)


@router.post("/events/{event_id}/select")
def select_event(event_id: str, req: SelectRequest = None,
                 store: DashboardStore = Depends(get_store)):
    narrow = req.narrow_viewport if req else False
    if store.select_event(event_id, narrow_viewport=narrow) is None:
        raise HTTPException(404, f"Event {event_id} not found in the active feed")
    return dashboard_snapshot(store)


@router.post("/events/{event_id}/details")
async def event_details(event_id: str, store: DashboardStore = Depends(get_store)):
    """Fetch an AI situation report for one event of the active feed.

    A failed report leaves the event untouched and comes back as
    ``updated: false``; it does not change the feed's error banner.
    """
    if store.find_event(event_id) is None:
        raise HTTPException(404, f"Event {event_id} not found in the active feed")
    updated = await store.request_event_details(event_id)
    return {
        "updated": updated is not None,
        "event": updated.model_dump(mode="json", by_alias=True) if updated else None,
        "dashboard": dashboard_snapshot(store),
    }
