from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from disasterwatch.schemas.disaster import (
    CamelModel, Coordinates, DisasterEvent, DisasterType, SearchState,
)


class Tab(str, Enum):
    LOCAL = "LOCAL"
    GLOBAL = "GLOBAL"


class ViewMode(str, Enum):
    MAP = "MAP"
    LIST = "LIST"


class DashboardState(CamelModel):
    """One immutable snapshot of everything the dashboard renders."""
    local_events: Tuple[DisasterEvent, ...] = ()
    global_events: Tuple[DisasterEvent, ...] = ()
    active_tab: Tab = Tab.LOCAL
    selected_event_id: Optional[str] = None
    loading_details_id: Optional[str] = None
    user_location: Optional[Coordinates] = None   # device location
    search_focus: Optional[Coordinates] = None    # centre of the last local search
    zoom_level: int = 5
    region_name: str = ""
    last_search_query: str = ""
    view_mode: ViewMode = ViewMode.MAP
    type_filter: Optional[DisasterType] = None
    search: SearchState = SearchState()


class MapView(CamelModel):
    center: Coordinates
    zoom: int
    events: List[DisasterEvent]
    selected_event_id: Optional[str] = None
    user_location: Optional[Coordinates] = None


# ---- Request bodies ----

class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StartRequest(RequestModel):
    location: Optional[Coordinates] = None        # None when geolocation is denied/unavailable


class SearchRequest(RequestModel):
    region: str

    @field_validator("region")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("region must not be blank")
        return value.strip()


class TabRequest(RequestModel):
    tab: Tab


class ViewModeRequest(RequestModel):
    mode: ViewMode


class FilterRequest(RequestModel):
    type: Optional[DisasterType] = None           # None clears the filter


class SelectRequest(RequestModel):
    narrow_viewport: bool = False
