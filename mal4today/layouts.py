"""
Concrete MAL page structure.

Everything that knows how MAL lays out its pages lives here as data. When
MAL changes its markup, these specs are what needs updating.
"""
from typing import Dict, List

from pydantic import BaseModel, ConfigDict

from .extractor import Css, FieldSelector, JsonKey, RecordSource


class ListLayout(BaseModel):
    """One known rendering of a user's anime list."""
    model_config = ConfigDict(frozen=True)

    name: str
    source: RecordSource
    fields: Dict[str, FieldSelector]


# --- List page
# Field names: anime_id, title, url, airing_status, start_date

# Current list pages ship every row as JSON in the table's data-items attribute
MODERN_LIST = ListLayout(
    name="modern",
    source=RecordSource(selector="table.list-table", json_attr="data-items"),
    fields={
        "anime_id": JsonKey(key="anime_id"),
        "title": JsonKey(key="anime_title"),
        "url": JsonKey(key="anime_url"),
        "airing_status": JsonKey(key="anime_airing_status"),
        "start_date": JsonKey(key="anime_start_date_string"),
    },
)

# Lists using a classic style render plain HTML rows
CLASSIC_LIST = ListLayout(
    name="classic",
    source=RecordSource(container="div#list_surround", selector="table:has(a.animetitle)"),
    fields={
        "title": Css(selector="a.animetitle"),
        "url": Css(selector="a.animetitle", mode="attr", attr="href"),
    },
)

LIST_LAYOUTS: List[ListLayout] = [MODERN_LIST, CLASSIC_LIST]


# --- Details page

DETAIL_FIELDS: Dict[str, FieldSelector] = {
    "title": Css(selector="h1.title-name"),
    "status": Css(selector='span.dark_text:-soup-contains("Status:")', mode="next_text"),
    "broadcast": Css(selector='span.dark_text:-soup-contains("Broadcast:")', mode="next_text"),
}
