from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from .database import ExternalVideo, Video

UPLOADED = "uploaded"
EXTERNAL = "external"


@dataclass(frozen=True)
class CandidateVideo:
    """Source-agnostic projection of a catalog entry, built per request for ranking."""
    id: str
    source: str
    category: str
    duration_seconds: float = 0.0
    published_at: Optional[datetime] = None
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    share_count: int = 0
    engagement_rate: float = 0.0
    completion_rate: float = 0.0
    title: str = ""
    description: str = ""
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    creator: str = ""
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_uploaded(video: Video) -> CandidateVideo:
    creator = video.creator.username if video.creator is not None else "Unknown"
    return CandidateVideo(
        id=str(video.id),
        source=UPLOADED,
        category=video.category or "other",
        duration_seconds=float(video.duration or 0.0),
        published_at=video.published_at or video.uploaded_at or video.created_at,
        view_count=int(video.views or 0),
        like_count=int(video.like_count or 0),
        comment_count=int(video.comment_count or 0),
        share_count=int(video.shares or 0),
        engagement_rate=float(video.engagement_rate or 0.0),
        completion_rate=float(video.completion_rate or 0.0),
        title=video.title or "",
        description=video.description or "",
        video_url=video.video_url,
        thumbnail_url=video.thumbnail_url,
        creator=creator,
        tags=list(video.tags or []),
    )


def normalize_external(video: ExternalVideo) -> CandidateVideo:
    # The external index carries no like/comment/share signals
    return CandidateVideo(
        id=video.video_id,
        source=EXTERNAL,
        category=video.subject or "education",
        duration_seconds=float(video.duration or 0.0),
        published_at=video.published_at,
        view_count=int(video.view_count or 0),
        title=video.title or "",
        description=video.description or "",
        video_url=video.video_url,
        thumbnail_url=video.thumbnail_url,
        creator=video.channel_title or "YouTube Creator",
    )
