from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from peerflex.schemas.location import Location
from peerflex.schemas.profile import Profile


def _point_to_location(value: Any) -> Any:
    # stored as GeoJSON {"type": "Point", "coordinates": [lng, lat]}
    if isinstance(value, dict) and "coordinates" in value:
        lng, lat = value["coordinates"][:2]
        return {"latitude": lat, "longitude": lng}
    return value


class Event(BaseModel):

    id: str
    title: str
    description: str = ""
    event_type: str = "other"
    location: Optional[Location] = None
    address: str = ""
    venue_name: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    max_attendees: Optional[int] = None
    registered_count: int = 0
    is_public: bool = True
    is_virtual: bool = False
    meeting_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    organizer_name: Optional[str] = None
    difficulty_level: str = "beginner"
    price: float = 0
    registration_deadline: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    user: Optional[Profile] = None

    @field_validator("location", mode="before")
    @classmethod
    def location_from_point(cls, value: Any) -> Any:
        return _point_to_location(value)


class EventCreate(BaseModel):

    title: str = Field(min_length=1)
    description: str = ""
    event_type: str = "other"
    location: Optional[Location] = None
    address: str = ""
    venue_name: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    max_attendees: Optional[int] = Field(default=None, ge=1)
    is_public: bool = True
    is_virtual: bool = False
    meeting_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    organizer_name: Optional[str] = None
    difficulty_level: Optional[str] = None
    price: Optional[float] = None
    registration_deadline: Optional[datetime] = None


class EventUpdate(BaseModel):

    title: Optional[str] = None
    description: Optional[str] = None
    event_type: Optional[str] = None
    location: Optional[Location] = None
    address: Optional[str] = None
    venue_name: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    max_attendees: Optional[int] = Field(default=None, ge=1)
    is_public: Optional[bool] = None
    is_virtual: Optional[bool] = None
    meeting_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    tags: Optional[List[str]] = None
    difficulty_level: Optional[str] = None
    price: Optional[float] = None
    registration_deadline: Optional[datetime] = None


class NearLocation(BaseModel):

    lat: float
    lng: float
    radius: float = 10


class EventFilters(BaseModel):

    event_type: Optional[str] = None
    search: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)
    page: int = Field(default=0, ge=0)
    upcoming_only: bool = False
    near_location: Optional[NearLocation] = None


class EventAttendance(BaseModel):

    id: str
    event_id: str
    user_id: str
    status: Literal["registered", "attended", "cancelled"] = "registered"
    registered_at: Optional[datetime] = None
    joined_at: Optional[datetime] = None
    profile: Optional[Profile] = None
    event: Optional[Event] = None


class EventCategory(BaseModel):

    id: str
    name: str
    description: Optional[str] = None
    is_active: bool = True
