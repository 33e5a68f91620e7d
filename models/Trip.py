import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, CheckConstraint, ForeignKey, JSON, Enum as SQLEnum, func
from sqlalchemy.orm import relationship
from database import Base


class TripStatus(enum.Enum):
    PLANNING = "planning"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Trip(Base):
    __tablename__ = "trips"
    __table_args__ = (
        CheckConstraint("current_travelers >= 1", name="ck_trip_current_travelers_min"),
        CheckConstraint("current_travelers <= max_travelers", name="ck_trip_current_travelers_max"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(128), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)  # owner
    title = Column(String(150), nullable=False)
    destination = Column(String(150), nullable=False, index=True)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    budget = Column(String(50), nullable=False)
    max_travelers = Column(Integer, nullable=False)
    current_travelers = Column(Integer, nullable=False, default=1)  # creator counts as first traveler
    interests = Column(JSON, nullable=False, default=list)
    image_url = Column(String(500), nullable=True)
    status = Column(SQLEnum(TripStatus, values_callable=lambda e: [m.value for m in e]),
                    default=TripStatus.PLANNING, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    host = relationship("Profile", lazy="joined")
    requests = relationship("TripRequest", back_populates="trip", cascade="all, delete-orphan")
    discussion_messages = relationship("TripDiscussionMessage", back_populates="trip", cascade="all, delete-orphan")
