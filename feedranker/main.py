from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime, timezone
import logging
import uuid
import uvicorn

from . import __version__, schemas
from .config import settings
from .database import (
    get_db,
    init_db,
    ExternalVideo as ORMExternalVideo,
    User as ORMUser,
    Video as ORMVideo,
)
from .engagement import EngagementRecorder
from .errors import FeedError
from .preferences import get_category_stats, get_engagement_stats
from .recommendation_engine import RecommendationEngine

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title="Video Feed Ranking API",
    description="Engagement tracking, disengagement-aware recommendations and a unified cross-source feed",
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Engine and recorder factories (no global caching to avoid stale DB sessions)
def get_recommendation_engine(db: Session = Depends(get_db)):
    return RecommendationEngine(db)

def get_engagement_recorder(db: Session = Depends(get_db)):
    return EngagementRecorder(db)


@app.exception_handler(FeedError)
async def feed_error_handler(request: Request, exc: FeedError):
    return JSONResponse(status_code=exc.status, content={"detail": str(exc), "code": exc.code})


@app.on_event("startup")
async def startup_event():
    """Create any missing tables on startup."""
    logger.info("Starting up the feed ranking service...")
    try:
        init_db()
        logger.info("Database schema ready.")
    except Exception as e:
        logger.error(f"Error initializing database: {e}")

@app.get("/", tags=["Root"])
async def root():
    """Root endpoint to check if the API is running."""
    return {
        "message": "Welcome to the Video Feed Ranking API",
        "status": "running",
        "endpoints": [
            {"path": "/docs", "description": "API documentation"},
            {"path": "/feed", "description": "Unified ranked feed across uploaded and external videos"},
            {"path": "/recommendations/feed", "description": "Personalized, disengagement-aware recommendations"},
            {"path": "/engagement/track", "description": "Track one engagement event"},
            {"path": "/engagement/batch", "description": "Track a batch of engagement events"},
        ]
    }

@app.get("/health", response_model=schemas.HealthCheck, tags=["Root"])
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database_status = "ok"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database_status = "unavailable"
    return {
        "status": "ok" if database_status == "ok" else "degraded",
        "version": __version__,
        "database_status": database_status,
    }


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# =============================
# Local Data Management Endpoints
# =============================

@app.post("/local/users", response_model=schemas.User, tags=["Local Data"])
def create_user(user: schemas.UserCreate, db: Session = Depends(get_db)):
    existing = db.query(ORMUser).filter(ORMUser.username == user.username).first()
    if existing:
        existing.display_name = user.display_name or existing.display_name
        existing.interests = list(user.interests)
        db.commit()
        db.refresh(existing)
        return existing
    obj = ORMUser(username=user.username, display_name=user.display_name, interests=list(user.interests))
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

@app.post("/local/videos", response_model=schemas.Video, tags=["Local Data"])
def create_video(video: schemas.VideoCreate, db: Session = Depends(get_db)):
    if video.creator_id is not None and db.get(ORMUser, video.creator_id) is None:
        raise HTTPException(status_code=400, detail="creator_id does not exist")

    obj = ORMVideo(**video.model_dump(exclude={"published_at"}))
    obj.published_at = _naive_utc(video.published_at)
    # Engagement rate: interactions per hundred views
    if video.views > 0:
        obj.engagement_rate = (video.like_count + video.comment_count + video.shares) / video.views * 100
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

@app.post("/local/external-videos", response_model=schemas.ExternalVideo, tags=["Local Data"])
def create_external_video(video: schemas.ExternalVideoCreate, db: Session = Depends(get_db)):
    # Upsert by external video id
    obj = db.query(ORMExternalVideo).filter(ORMExternalVideo.video_id == video.video_id).first()
    if obj is None:
        obj = ORMExternalVideo(video_id=video.video_id)
        db.add(obj)
    for field, value in video.model_dump(exclude={"video_id", "published_at"}).items():
        setattr(obj, field, value)
    obj.published_at = _naive_utc(video.published_at)
    db.commit()
    db.refresh(obj)
    return obj


# =============================
# Engagement Endpoints
# =============================

@app.post("/engagement/track", response_model=schemas.TrackResponse, tags=["Engagement"])
def track_engagement(
    event: schemas.EngagementEvent,
    user_id: int = Query(..., description="Acting user id"),
    recorder: EngagementRecorder = Depends(get_engagement_recorder),
):
    """
    Track a single engagement event (watch time, skip, replay, interactions).

    Repeated events for the same video and session update one record.
    """
    return recorder.record(user_id, event)

@app.post("/engagement/batch", response_model=schemas.BatchResponse, tags=["Engagement"])
def track_engagement_batch(
    batch: schemas.EngagementBatchRequest,
    user_id: int = Query(..., description="Acting user id"),
    recorder: EngagementRecorder = Depends(get_engagement_recorder),
):
    """Track several events at once; each item succeeds or fails on its own."""
    return recorder.record_batch(user_id, batch.events)


# =============================
# Recommendation Endpoints
# =============================

@app.get("/recommendations/feed", response_model=schemas.RecommendedFeedResponse, tags=["Recommendations"])
def get_recommendations(
    user_id: int = Query(..., description="User id to get recommendations for"),
    session_id: Optional[str] = Query(None, description="Viewing session token; generated when omitted"),
    limit: int = Query(20, ge=1, le=100, description="Number of videos to return"),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
):
    """
    Get personalized video recommendations for a user.

    - **user_id**: User to get recommendations for
    - **session_id**: Viewing session used for disengagement detection
    - **limit**: Number of videos (max 100)
    """
    current_session = session_id or str(uuid.uuid4())
    try:
        return engine.get_recommended_feed(user_id, current_session, limit)
    except FeedError:
        raise
    except Exception as e:
        logger.error(f"Error generating recommendations: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get recommendations")

@app.get("/engagement/preferences", response_model=schemas.PreferencesResponse, tags=["Engagement"])
@app.get("/recommendations/preferences", response_model=schemas.PreferencesResponse, tags=["Recommendations"])
def get_preferences(
    user_id: int = Query(..., description="Acting user id"),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
    db: Session = Depends(get_db),
):
    return {
        "preferences": engine.get_preferences(user_id),
        "category_stats": get_category_stats(db, user_id),
    }

@app.get("/recommendations/disengagement-check", response_model=schemas.DisengagementAssessment, tags=["Recommendations"])
def disengagement_check(
    user_id: int = Query(..., description="Acting user id"),
    session_id: str = Query(..., min_length=1, description="Viewing session token"),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
):
    return engine.get_disengagement(user_id, session_id)

@app.get("/recommendations/stats", response_model=schemas.EngagementStats, tags=["Recommendations"])
def engagement_stats(
    user_id: int = Query(..., description="Acting user id"),
    db: Session = Depends(get_db),
):
    return get_engagement_stats(db, user_id)


# =============================
# Unified Feed
# =============================

@app.get("/feed", response_model=schemas.UnifiedFeedResponse, tags=["Feed"])
def get_unified_feed(
    user_id: Optional[int] = Query(None, description="Optional user id for personalization"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Number of items per page"),
    category: Optional[str] = Query(None, description="Restrict to one category or subject"),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
):
    """
    Ranked feed mixing creator uploads and externally indexed videos.

    Anonymous callers get non-personalized ranking.
    """
    try:
        return engine.get_unified_feed(user_id=user_id, page=page, page_size=page_size, category=category or None)
    except FeedError:
        raise
    except Exception as e:
        logger.error(f"Unified feed error: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load feed")

if __name__ == "__main__":
    uvicorn.run("feedranker.main:app", host="0.0.0.0", port=8000, reload=True)
