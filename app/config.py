from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_NAME: str = "County Activities Portal"
    ORG_NAME: str = "Nakuru County"
    ORG_TAGLINE: str = "County of Unlimited Opportunities"
    DEBUG: bool = False
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/portal.db"
    SECRET_KEY: str = "change-me-portal-session-key"

    # Demo role switching is for walkthroughs only, never grants writes
    ALLOW_DEMO_ROLE: bool = False
    ADMIN_ROLES: list[str] = ["admin", "System Administrator"]
    MIN_PASSWORD_LENGTH: int = 8
    BOOTSTRAP_ADMIN_EMAIL: str = ""
    BOOTSTRAP_ADMIN_PASSWORD: str = ""

    # Live activity views
    RECENT_FEED_LIMIT: int = 15
    RECENT_FEED_POLL_SECONDS: int = 60
    ADMIN_FEED_POLL_SECONDS: int = 30
    STATS_RECOMPUTE_SECONDS: int = 60
    REALTIME_RECONNECT_SECONDS: float = 3.0
    ACTIVE_USER_WINDOW_HOURS: int = 24

    # Kenya has no DST, a fixed offset is enough for local dates
    UTC_OFFSET_HOURS: int = 3

    # Reports
    REPORT_DATE_FORMAT: str = "%d/%m/%Y"
    PDF_RENDER_TIMEOUT_SECONDS: int = 30

    # Email provider (Resend compatible)
    EMAIL_API_URL: str = "https://api.resend.com/emails"
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "Nakuru County <onboarding@resend.dev>"
    REMINDER_INTERVAL_MINUTES: int = 5
    REMINDER_LEAD_MINUTES: int = 60

    ACTIVITY_TYPES_SEED_PATH: str = "./data/activity_types.yaml"


settings = Settings()
