import os
from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    """Application settings."""
    # Base settings
    DEBUG: bool = False

    # CORS settings
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",  # Frontend development server
        "http://localhost:8000",  # Backend server
    ]

    # Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./social_graph.db")

    # Header the HTTP adapter reads the acting user from
    USER_ID_HEADER: str = os.getenv("USER_ID_HEADER", "X-User-ID")

    # Engagement counter reconciliation
    COUNTER_STALENESS_SECONDS: float = float(os.getenv("COUNTER_STALENESS_SECONDS", "30"))
    CONSUMED_EVENT_CACHE_SIZE: int = int(os.getenv("CONSUMED_EVENT_CACHE_SIZE", "5000"))

    # Friend request emails
    NOTIFICATIONS_ENABLED: bool = os.getenv("NOTIFICATIONS_ENABLED", "true").lower() == "true"
    SITE_URL: str = os.getenv("SITE_URL", "https://tradersjournal.pro")

    # Email settings
    EMAIL_PROVIDER: str = os.getenv("EMAIL_PROVIDER", "logging")  # mailgun | logging
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "noreply@tradersjournal.pro")
    EMAIL_FROM_NAME: str = os.getenv("EMAIL_FROM_NAME", "Trader's Journal")

    # Mailgun settings
    MAILGUN_API_KEY: str = os.getenv("MAILGUN_API_KEY", "")
    MAILGUN_DOMAIN: str = os.getenv("MAILGUN_DOMAIN", "tradersjournal.pro")
    MAILGUN_BASE_URL: str = os.getenv("MAILGUN_BASE_URL", "https://api.mailgun.net")

    class Config:
        env_file = ".env"
        case_sensitive = True

# Create settings instance
settings = Settings()

# Tables whose row changes are published on the change feed
WATCHED_TABLES = (
    "friend_requests",
    "friendships",
    "trade_setups",
    "trade_setup_likes",
    "trade_setup_comments",
    "comment_reactions",
)
