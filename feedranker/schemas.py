from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, Field
from datetime import datetime

SkipReason = Literal["bored", "too-hard", "not-interested", "seen-before", "none"]
VideoSource = Literal["uploaded", "external"]


# Collaborator records (seeded through the local data endpoints)
class UserBase(BaseModel):
    username: str
    display_name: Optional[str] = None
    interests: List[str] = []

class UserCreate(UserBase):
    pass

class User(UserBase):
    id: int

    class Config:
        from_attributes = True

class VideoBase(BaseModel):
    title: str
    description: str = ""
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: float = Field(default=0.0, ge=0)
    category: str
    tags: List[str] = []
    views: int = Field(default=0, ge=0)
    like_count: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    status: Literal["pending", "approved", "rejected", "flagged"] = "approved"
    is_private: bool = False
    published_at: Optional[datetime] = None

class VideoCreate(VideoBase):
    creator_id: Optional[int] = None

class Video(VideoBase):
    id: int
    creator_id: Optional[int] = None
    engagement_rate: float = 0.0
    average_watch_time: float = 0.0
    completion_rate: float = 0.0

    class Config:
        from_attributes = True

class ExternalVideoBase(BaseModel):
    video_id: str
    title: str
    description: str = ""
    thumbnail_url: Optional[str] = None
    channel_title: Optional[str] = None
    subject: Optional[str] = None
    duration: float = Field(default=0.0, ge=0)
    view_count: int = Field(default=0, ge=0)
    published_at: Optional[datetime] = None
    video_url: Optional[str] = None
    is_active: bool = True

class ExternalVideoCreate(ExternalVideoBase):
    pass

class ExternalVideo(ExternalVideoBase):
    id: int
    cached_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Engagement ingestion
class EngagementEvent(BaseModel):
    """One behavioral sample. Every field but video_id is optional; absent fields keep stored values."""
    video_id: str = Field(min_length=1)
    session_id: Optional[str] = None
    watch_time: Optional[float] = Field(default=None, ge=0)
    total_duration: Optional[float] = Field(default=None, ge=0)
    completion_rate: Optional[float] = Field(default=None, ge=0, le=100)
    liked: Optional[bool] = None
    commented: Optional[bool] = None
    shared: Optional[bool] = None
    replays: Optional[int] = Field(default=None, ge=0)
    pause_count: Optional[int] = Field(default=None, ge=0)
    seek_count: Optional[int] = Field(default=None, ge=0)
    skipped_at: Optional[float] = Field(default=None, ge=0)
    skip_reason: Optional[SkipReason] = None
    category: Optional[str] = None

class EngagementBatchRequest(BaseModel):
    # Items are validated one by one so a malformed event fails alone
    events: List[Dict[str, Any]] = Field(min_length=1)

class TrackResponse(BaseModel):
    status: str = "success"
    engagement_id: int
    engagement_score: float
    completion_rate: float

class BatchResponse(BaseModel):
    status: str = "success"
    tracked_count: int
    total_count: int


# Derived state
class DisengagementMetrics(BaseModel):
    avg_completion_rate: float
    avg_engagement_score: float
    skip_rate: float
    avg_inter_arrival_seconds: float
    window_size: int

class DisengagementAssessment(BaseModel):
    is_disengaging: bool = False
    severity: float = 0
    reasons: List[str] = []
    metrics: Optional[DisengagementMetrics] = None

class CategoryStat(BaseModel):
    category: str
    avg_engagement: float
    total_watched: int
    avg_completion_rate: float

class PreferencesResponse(BaseModel):
    status: str = "success"
    preferences: Dict[str, float]
    category_stats: List[CategoryStat] = []

class InteractionCounts(BaseModel):
    likes: int = 0
    comments: int = 0
    shares: int = 0

class EngagementStats(BaseModel):
    total_videos_watched: int = 0
    avg_completion_rate: float = 0.0
    avg_engagement_score: float = 0.0
    total_watch_time: float = 0.0
    interactions: InteractionCounts = InteractionCounts()


# Feed responses
class FeedVideo(BaseModel):
    id: str
    source: VideoSource
    title: str = ""
    description: str = ""
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    category: str
    tags: List[str] = []
    creator: str = ""
    duration_seconds: float = 0.0
    published_at: Optional[datetime] = None
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    share_count: int = 0

class RecommendedVideo(FeedVideo):
    predicted_engagement: float

class RecommendedFeedResponse(BaseModel):
    status: str = "success"
    session_id: str
    videos: List[RecommendedVideo] = []
    disengagement: DisengagementAssessment
    preferences: Dict[str, float]

class Pagination(BaseModel):
    current: int
    page_size: int
    has_more: bool
    total: int

class SourceCounts(BaseModel):
    uploaded: int = 0
    external: int = 0

class UnifiedFeedResponse(BaseModel):
    status: str = "success"
    videos: List[FeedVideo] = []
    pagination: Pagination
    source_counts: SourceCounts


# Error responses
class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None

# API status
class HealthCheck(BaseModel):
    status: str
    version: str
    database_status: str
