"""
Configuration management using pydantic-settings.
Reads from .env file and environment variables.
"""

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from reportlab.lib.units import mm

from paperscan.compositor import HEADER_MIN_HEIGHT, PAGE_SIZES


class Settings(BaseSettings):
    """Application configuration"""

    # Defaults used when a request does not specify them
    default_quality: Literal["low", "medium", "high"] = "medium"
    default_mode: Literal["original", "grayscale", "document_contrast", "shadow_removal"] = "original"

    # Page layout (points are 1/72 inch)
    page_size: Literal["a4", "letter"] = "a4"
    page_margin_mm: float = 10.0
    header_band_height: float = 96.0

    # Per-image work can run on a thread pool; 1 keeps it strictly sequential
    max_workers: int = 1

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Upload Limits
    max_images: int = 100
    max_file_size_mb: int = 25

    # Background jobs
    max_concurrent_jobs: int = 1
    job_retention_minutes: int = 15

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    @model_validator(mode="after")
    def check_page_layout(self) -> "Settings":
        """Header band and margins must leave room for the image."""
        page_width, page_height = PAGE_SIZES[self.page_size]
        if self.page_margin_mm < 0 or 2 * self.page_margin_mm * mm >= page_width:
            raise ValueError(f"page_margin_mm={self.page_margin_mm} leaves no width on a {self.page_size} page")
        if not HEADER_MIN_HEIGHT <= self.header_band_height < page_height / 2:
            raise ValueError(
                f"header_band_height must be between {HEADER_MIN_HEIGHT:g}pt and half the "
                f"{self.page_size} page height ({page_height / 2:.0f}pt), got {self.header_band_height:g}"
            )
        return self


# Global settings instance
settings = Settings()
