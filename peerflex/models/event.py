from typing import List, Literal, Optional, TypedDict


class GeoPoint(TypedDict):
    type: Literal["Point"]
    coordinates: List[float]  # [lng, lat]


class EventDocument(TypedDict, total=False):
    _id: str
    title: str
    description: str
    event_type: str
    location: Optional[GeoPoint]
    address: str
    venue_name: Optional[str]
    start_time: str
    end_time: str
    max_attendees: Optional[int]
    registered_count: int
    is_public: bool
    is_virtual: bool
    meeting_url: Optional[str]
    cover_image_url: Optional[str]
    tags: List[str]
    organizer_name: Optional[str]
    difficulty_level: str
    price: float
    registration_deadline: Optional[str]
    created_by: str
    created_at: str


class EventAttendeeDocument(TypedDict, total=False):
    _id: str
    event_id: str
    user_id: str
    status: Literal["registered", "attended", "cancelled"]
    registered_at: str
    joined_at: Optional[str]


class EventCategoryDocument(TypedDict, total=False):
    _id: str
    name: str
    description: Optional[str]
    is_active: bool
