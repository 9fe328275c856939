# workscore/config.py
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    DATABASE_URL: str = Field("sqlite+aiosqlite:///./workscore.db")
    SQL_ECHO: bool = Field(False)
    LOG_LEVEL: str = Field("INFO")

    # Shared secret the external scheduler sends as a bearer token
    CRON_SECRET_TOKEN: str = Field("change-me-in-production")

    # Queue / fan-out limits
    RECALC_BATCH_SIZE: int = Field(100)
    FANOUT_CONCURRENCY: int = Field(10)
    QUEUE_STALE_AFTER_MINUTES: int = Field(30)

    # Scoring penalties
    REVISION_PENALTY: int = Field(5)
    FREE_REVISIONS: int = Field(1)
    QUALITY_DEFECT_PENALTY: int = Field(100)

    # Intelligence defaults
    CHRONIC_LOOKBACK_DAYS: int = Field(30)
    CHRONIC_THRESHOLD_PERCENT: float = Field(30.0)
    TREND_WINDOW_DAYS: int = Field(7)
    TREND_NOISE_MARGIN: float = Field(5.0)
    RISK_PERSIST_MIN_SCORE: int = Field(40)
    ROLLUP_WEEKDAY: int = Field(0)  # 0 = Monday

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        url = self.DATABASE_URL
        # Ensure asyncpg is used
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url


settings = Settings()
