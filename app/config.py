"""Application configuration using Pydantic Settings."""
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    app_name: str = "LMS Attendance"
    debug: bool = False
    log_level: str = "INFO"

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "lms"

    # CORS (comma-separated origins, e.g. "https://portal.example.com,https://admin.example.com")
    cors_origins: str = "http://localhost:3000"

    # Record queries
    default_page_size: int = 10
    max_page_size: int = 100

    # Export
    export_date_format: str = "%d/%m/%Y"
    export_timestamp_format: str = "%Y-%m-%d %H:%M:%S"
    export_sheet_name: str = "Attendance"
    export_author: str = "LMS Portal"

    @model_validator(mode="after")
    def _validate_page_sizes(self):
        if self.default_page_size < 1 or self.max_page_size < 1:
            raise ValueError("DEFAULT_PAGE_SIZE and MAX_PAGE_SIZE must be positive")
        if self.default_page_size > self.max_page_size:
            raise ValueError("DEFAULT_PAGE_SIZE cannot exceed MAX_PAGE_SIZE")
        return self


settings = Settings()
