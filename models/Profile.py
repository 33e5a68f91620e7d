from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, func
from database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(128), primary_key=True, index=True)  # same id as the auth identity
    username = Column(String(50), unique=True, index=True, nullable=True)
    full_name = Column(String(150), nullable=True)
    bio = Column(Text, nullable=True)
    avatar_url = Column(String(500), nullable=True)
    location = Column(String(150), nullable=True)
    age = Column(Integer, nullable=True)
    gender = Column(String(50), nullable=True)
    interests = Column(JSON, nullable=True)
    languages = Column(JSON, nullable=True)
    fcm_token = Column(String(500), nullable=True)  # Firebase Cloud Messaging token
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
