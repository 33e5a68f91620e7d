# schemas.py (Pydantic v2)
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List, Literal
from datetime import date, datetime

from models.Trip import TripStatus
from models.TripRequest import RequestStatus


BUDGET_OPTIONS = [
    "Budget",
    "Mid-range",
    "Mid-range to High",
    "Mid-range to Luxury",
    "Luxury",
]

AVAILABLE_INTERESTS = [
    "Adventure", "Art", "Beach", "Camping", "City Exploration",
    "Culture", "Cuisine", "Diving", "Festivals", "Hiking",
    "History", "Local Experience", "Luxury", "Mountains", "Museums",
    "Music", "Nature", "Nightlife", "Photography", "Relaxation",
    "Road Trip", "Shopping", "Sightseeing", "Solo Travel", "Sports",
    "Study", "Trekking", "Volunteering", "Wellness", "Wildlife",
    "Winter Sports", "Work Retreat", "Yoga",
]

TripSort = Literal["newest", "soon", "budget-low", "budget-high"]


# ---------- Profiles ----------
class ProfileBase(BaseModel):
    username: Optional[str] = None
    full_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    location: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    interests: Optional[List[str]] = None
    languages: Optional[List[str]] = None

class ProfileUpdate(BaseModel):
    """Partial update for the session user's profile"""
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    full_name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    age: Optional[int] = Field(None, ge=16, le=120)
    gender: Optional[str] = None
    interests: Optional[List[str]] = None
    languages: Optional[List[str]] = None

class ProfileRead(ProfileBase):
    id: str

    model_config = ConfigDict(from_attributes=True)

class ProfileSummary(BaseModel):
    id: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class PushTokenUpdate(BaseModel):
    fcm_token: str


# ---------- Trips ----------
class TripBase(BaseModel):
    title: str = Field(..., min_length=5)
    destination: str = Field(..., min_length=3)
    description: str = Field(..., min_length=20)
    start_date: date
    end_date: date
    budget: str
    max_travelers: int = Field(..., ge=2, le=20)
    interests: List[str] = Field(..., min_length=1)

    @field_validator("budget")
    @classmethod
    def budget_is_known(cls, v: str) -> str:
        if v not in BUDGET_OPTIONS:
            raise ValueError(f"budget must be one of: {', '.join(BUDGET_OPTIONS)}")
        return v

    @model_validator(mode="after")
    def dates_in_order(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self

class TripWrite(TripBase):
    pass

class TripUpdate(BaseModel):
    """Partial update (PATCH) - owner only"""
    title: Optional[str] = Field(None, min_length=5)
    destination: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=20)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Optional[str] = None
    max_travelers: Optional[int] = Field(None, ge=2, le=20)
    interests: Optional[List[str]] = Field(None, min_length=1)
    status: Optional[TripStatus] = None

    @field_validator(
        "title", "destination", "start_date", "end_date", "budget", "max_travelers", "interests", "status",
        mode="before",
    )
    @classmethod
    def not_null(cls, v):
        # omit a field to leave it unchanged; these columns cannot be cleared
        if v is None:
            raise ValueError("cannot be null")
        return v

    @field_validator("budget")
    @classmethod
    def budget_is_known(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in BUDGET_OPTIONS:
            raise ValueError(f"budget must be one of: {', '.join(BUDGET_OPTIONS)}")
        return v

class TripRead(BaseModel):
    id: str
    user_id: str
    title: str
    destination: str
    description: Optional[str] = None
    start_date: date
    end_date: date
    budget: str
    max_travelers: int
    current_travelers: int
    interests: List[str] = []
    image_url: Optional[str] = None
    status: TripStatus
    created_at: datetime
    updated_at: datetime
    host: Optional[ProfileSummary] = None

    model_config = ConfigDict(from_attributes=True)

class TripSummary(BaseModel):
    id: str
    title: str
    destination: str
    image_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class TripFilter(BaseModel):
    """Search criteria for the explore page. Every field is optional."""
    destination: Optional[str] = None
    period: Optional[str] = None  # a TimeWindow; unknown values are ignored
    budget: Optional[str] = None
    interests: List[str] = []


# ---------- Trip Requests ----------
class TripRequestWrite(BaseModel):
    message: Optional[str] = Field(None, max_length=1000)

class TripRequestRead(BaseModel):
    id: str
    trip_id: str
    user_id: str
    message: Optional[str] = None
    status: RequestStatus
    created_at: datetime
    updated_at: datetime
    trip: Optional[TripSummary] = None
    requester: Optional[ProfileSummary] = None

    model_config = ConfigDict(from_attributes=True)


# ---------- Messages ----------
class MessageWrite(BaseModel):
    receiver_id: str
    content: str

class MessageRead(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    content: str
    read: bool
    created_at: datetime
    pending: bool = False  # True while a locally sent message awaits the stored record

    model_config = ConfigDict(from_attributes=True)

class ConversationRead(BaseModel):
    partner_id: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    unread_count: int = 0


# ---------- Trip Discussion ----------
class DiscussionMessageWrite(BaseModel):
    content: str = Field(..., max_length=2000)

class DiscussionMessageRead(BaseModel):
    id: str
    trip_id: str
    user_id: str
    content: str
    created_at: datetime
    author: Optional[ProfileSummary] = None

    model_config = ConfigDict(from_attributes=True)


# ---------- Session ----------
class SessionRead(BaseModel):
    user_id: str
    email: Optional[str] = None
    profile: Optional[ProfileRead] = None
