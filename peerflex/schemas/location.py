from typing import Dict, Optional

from pydantic import BaseModel, Field


class Location(BaseModel):

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class SearchResult(BaseModel):

    display_name: str
    lat: str
    lon: str
    type: str = "location"
    address: Optional[Dict[str, str]] = None
