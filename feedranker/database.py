from sqlalchemy import (
    create_engine, Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Text, Enum, JSON,
    Index, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship, Session
from datetime import datetime, timezone
from typing import Generator

from .config import settings


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def make_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # Batch ingestion writes from worker threads
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


# Create SQLAlchemy engine
engine = make_engine(settings.database_url)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()

SKIP_REASONS = ("bored", "too-hard", "not-interested", "seen-before")
VIDEO_STATUSES = ("pending", "approved", "rejected", "flagged")
NO_SESSION = "none"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    display_name = Column(String)
    interests = Column(JSON, default=list)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    videos = relationship("Video", back_populates="creator")
    engagements = relationship("Engagement", back_populates="user")


class Video(Base):
    """A creator-uploaded video."""
    __tablename__ = "videos"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, default="")
    video_url = Column(String)
    thumbnail_url = Column(String)
    duration = Column(Float, default=0.0)
    category = Column(String, index=True, nullable=False)
    tags = Column(JSON, default=list)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    views = Column(Integer, default=0)
    like_count = Column(Integer, default=0)
    comment_count = Column(Integer, default=0)
    shares = Column(Integer, default=0)
    engagement_rate = Column(Float, default=0.0)
    # Rolling aggregates maintained from engagement writes
    average_watch_time = Column(Float, default=0.0)
    completion_rate = Column(Float, default=0.0)

    status = Column(Enum(*VIDEO_STATUSES, name="video_status"), default="pending", nullable=False)
    is_private = Column(Boolean, default=False)
    uploaded_at = Column(DateTime, default=utcnow)
    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    creator = relationship("User", back_populates="videos")

    __table_args__ = (
        Index("ix_videos_category_status", "category", "status"),
        Index("ix_videos_status_private_published", "status", "is_private", "published_at"),
    )


class ExternalVideo(Base):
    """A video cached from the external index; shaped by the indexing job, read-only here."""
    __tablename__ = "external_videos"

    id = Column(Integer, primary_key=True, index=True)
    video_id = Column(String, unique=True, index=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, default="")
    thumbnail_url = Column(String)
    channel_title = Column(String)
    subject = Column(String, index=True)
    duration = Column(Float, default=0.0)
    view_count = Column(Integer, default=0)
    published_at = Column(DateTime, nullable=True)
    cached_at = Column(DateTime, default=utcnow, index=True)
    video_url = Column(String)
    is_active = Column(Boolean, default=True, index=True)


class Engagement(Base):
    __tablename__ = "engagements"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    video_id = Column(String, nullable=False, index=True)
    video_source = Column(Enum("uploaded", "external", name="video_source"), nullable=False)
    session_id = Column(String, nullable=False, default=NO_SESSION)

    # Engagement metrics
    watch_time = Column(Float, default=0.0)
    total_duration = Column(Float, default=0.0)
    completion_rate = Column(Float, default=0.0)

    # Interaction tracking
    liked = Column(Boolean, default=False)
    commented = Column(Boolean, default=False)
    shared = Column(Boolean, default=False)

    # Attention metrics
    replays = Column(Integer, default=0)
    pause_count = Column(Integer, default=0)
    seek_count = Column(Integer, default=0)

    # Skip behavior
    skipped_at = Column(Float, nullable=True)
    skip_reason = Column(Enum(*SKIP_REASONS, name="skip_reason"), nullable=True)

    engagement_score = Column(Float, default=0.0)
    category = Column(String, index=True)

    started_at = Column(DateTime, default=utcnow)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="engagements")

    __table_args__ = (
        UniqueConstraint("user_id", "video_id", "session_id", name="uq_engagements_user_video_session"),
        Index("ix_engagements_user_created", "user_id", "created_at"),
        Index("ix_engagements_session_created", "session_id", "created_at"),
    )


class ViewingHistory(Base):
    __tablename__ = "viewing_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    video_id = Column(String, nullable=False)
    watch_time = Column(Float, default=0.0)
    completed = Column(Boolean, default=False)
    timestamp = Column(DateTime, default=utcnow)


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)


# Dependency to get DB session
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


