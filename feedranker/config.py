import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


class Settings:
    def __init__(self):
        self.env = os.getenv("ENV", "development")
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./feedranker.db")
        cors = os.getenv("CORS_ORIGINS", "*")
        self.cors_origins = [o.strip() for o in cors.split(",") if o.strip()]

        # Seed for the feed's shuffle/jitter generator; unset means fresh entropy per request
        self.random_seed = _optional_int("FEED_RANDOM_SEED")

        # Engagement ingestion
        self.batch_max_workers = int(os.getenv("BATCH_MAX_WORKERS", "8"))
        self.viewing_history_limit = int(os.getenv("VIEWING_HISTORY_LIMIT", "200"))
        self.completed_threshold = float(os.getenv("COMPLETED_THRESHOLD", "90"))

        # Preference aggregation
        self.preference_window = int(os.getenv("PREFERENCE_WINDOW", "50"))
        self.stats_window = int(os.getenv("STATS_WINDOW", "100"))

        # Disengagement policy
        self.disengage_window = int(os.getenv("DISENGAGE_WINDOW", "5"))
        self.disengage_min_events = int(os.getenv("DISENGAGE_MIN_EVENTS", "3"))
        self.disengage_very_low_completion = float(os.getenv("DISENGAGE_VERY_LOW_COMPLETION", "20"))
        self.disengage_low_completion = float(os.getenv("DISENGAGE_LOW_COMPLETION", "40"))
        self.disengage_skip_rate = float(os.getenv("DISENGAGE_SKIP_RATE", "0.6"))
        self.disengage_low_engagement = float(os.getenv("DISENGAGE_LOW_ENGAGEMENT", "30"))
        self.disengage_rapid_scroll_seconds = float(os.getenv("DISENGAGE_RAPID_SCROLL_SECONDS", "10"))
        self.disengage_threshold = float(os.getenv("DISENGAGE_THRESHOLD", "30"))

        # Recommendation composer
        self.exclude_recent = int(os.getenv("EXCLUDE_RECENT", "30"))
        self.entertainment_cap = float(os.getenv("ENTERTAINMENT_CAP", "0.7"))
        self.entertainment_min_views = int(os.getenv("ENTERTAINMENT_MIN_VIEWS", "1000"))
        self.recovery_max_duration = float(os.getenv("RECOVERY_MAX_DURATION", "180"))

        # Unified feed
        self.uploaded_candidate_cap = int(os.getenv("UPLOADED_CANDIDATE_CAP", "200"))
        self.external_candidate_cap = int(os.getenv("EXTERNAL_CANDIDATE_CAP", "300"))
        self.viewed_window = int(os.getenv("VIEWED_WINDOW", "100"))
        self.viewed_penalty = float(os.getenv("VIEWED_PENALTY", "0.3"))
        self.max_jitter = float(os.getenv("MAX_JITTER", "5"))
        # Shortest same-category run the diversity pass breaks up
        self.category_run_limit = int(os.getenv("CATEGORY_RUN_LIMIT", "3"))


settings = Settings()
