from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    app_env: str = Field(default="dev", alias="APP_ENV")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")
    cors_origins: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    database_url: str = Field(default="sqlite:///./tracker.db", alias="DATABASE_URL")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    rq_queue_ingest: str = Field(default="ingest", alias="RQ_QUEUE_INGEST")
    rq_queue_sync: str = Field(default="sync", alias="RQ_QUEUE_SYNC")

    groq_api_key: str = Field(default="", alias="GROQ_API_KEY")
    extraction_model: str = Field(default="llama-3.3-70b-versatile", alias="EXTRACTION_MODEL")
    extraction_temperature: float = Field(default=0.1, alias="EXTRACTION_TEMPERATURE")

    # Resolution
    context_video_limit: int = Field(default=20, alias="CONTEXT_VIDEO_LIMIT")
    min_identification_confidence: float = Field(default=0.5, alias="MIN_IDENTIFICATION_CONFIDENCE")
    # MONTH_FIRST or DAY_FIRST, only consulted for ambiguous numeric dates
    date_order: str = Field(default="MONTH_FIRST", alias="DATE_ORDER")

    # Spreadsheet import
    import_sample_rows: int = Field(default=3, alias="IMPORT_SAMPLE_ROWS")
    import_default_platform: str = Field(default="youtube", alias="IMPORT_DEFAULT_PLATFORM")
    import_row_delay_ms: int = Field(default=0, alias="IMPORT_ROW_DELAY_MS")

    # Platforms shown as columns in the spreadsheet view and export
    tracked_platforms: str = Field(default="youtube,tiktok,instagram", alias="TRACKED_PLATFORMS")

    # Scheduler / sync
    poll_interval_seconds: int = Field(default=600, alias="POLL_INTERVAL_SECONDS")
    stale_processing_minutes: int = Field(default=15, alias="STALE_PROCESSING_MINUTES")
    sync_probe_durations: bool = Field(default=False, alias="SYNC_PROBE_DURATIONS")

    whisper_model: str = Field(default="base", alias="WHISPER_MODEL")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_structured: bool = Field(default=False, alias="LOG_STRUCTURED")

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
