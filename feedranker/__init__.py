"""
Video Feed Ranking Engine

Turns per-video watch behavior into engagement scores, category preferences
and in-session disengagement signals, and uses them to assemble ranked,
diversity-constrained feeds from uploaded and externally indexed videos.
"""

from .database import Base, engine, SessionLocal, get_db, User, Video, ExternalVideo, Engagement, ViewingHistory
from .engagement import EngagementRecorder, compute_engagement_score
from .recommendation_engine import RecommendationEngine
from .errors import FeedError, NotFound, ValidationFailure, DegradedDependency, ConfigurationError
from .schemas import EngagementEvent, TrackResponse, BatchResponse, DisengagementAssessment, \
    RecommendedFeedResponse, UnifiedFeedResponse, FeedVideo, HealthCheck

__version__ = "0.1.0"
