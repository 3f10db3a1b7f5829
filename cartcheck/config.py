"""Configuration management from environment variables."""
import os
from pathlib import Path
from dotenv import load_dotenv

from cartcheck.errors import ConfigurationError

# Load .env file
load_dotenv()

# Project root
PROJECT_ROOT = Path(__file__).parent.parent


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration."""

    # Storefront
    BASE_URL: str = os.getenv("BASE_URL", "https://www.kinseysinc.com")
    USERNAME: str | None = os.getenv("USERNAME")
    PASSWORD: str | None = os.getenv("PASSWORD")

    # Input
    UPC_FILE: str = os.getenv("UPC_FILE", str(PROJECT_ROOT / "data" / "upcs.txt"))
    BATCH_SIZE: int = int(os.getenv("BATCH_SIZE", "250"))
    DEDUPLICATE: bool = _get_bool("DEDUPLICATE", True)

    # Output
    OUTPUT_DIR: str = os.getenv("OUTPUT_DIR", "ScrapingOutputResults")
    SCREENSHOT_DIR: str = os.getenv("SCREENSHOT_DIR", f"{OUTPUT_DIR}/screenshots")
    CHECKPOINT_FILE: str = os.getenv("CHECKPOINT_FILE", f"{OUTPUT_DIR}/progress/checkpoint.txt")
    METRICS_FILE: str = os.getenv("METRICS_FILE", f"{OUTPUT_DIR}/progress/metrics.jsonl")
    SCREENSHOTS_ENABLED: bool = _get_bool("SCREENSHOTS_ENABLED", True)

    # Recovery
    RETRY_COUNT: int = int(os.getenv("RETRY_COUNT", "1"))
    RETRY_SLEEP_MS: int = int(os.getenv("RETRY_SLEEP_MS", "1500"))
    BLOCKED_BACKOFF_MS: int = int(os.getenv("BLOCKED_BACKOFF_MS", "5000"))
    SEARCH_TIMEOUT: float = float(os.getenv("SEARCH_TIMEOUT", "45"))

    # Scheduling: "sequential" or "parallel"
    EXECUTION_MODE: str = os.getenv("EXECUTION_MODE", "sequential")
    MAX_PARALLEL_BATCHES: int = int(os.getenv("MAX_PARALLEL_BATCHES", "0"))

    # Browser
    HEADLESS: bool = _get_bool("HEADLESS", False)
    WINDOW_ZOOM: float = float(os.getenv("WINDOW_ZOOM", "0.5"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # API Security
    API_KEY: str | None = os.getenv("API_KEY")

    def validate(self, require_credentials: bool = True) -> None:
        """Validate required configuration."""
        errors = []
        if not self.BASE_URL:
            errors.append("BASE_URL is required")
        if require_credentials and (not self.USERNAME or not self.PASSWORD):
            errors.append("USERNAME/PASSWORD are required")
        if self.BATCH_SIZE < 1:
            errors.append("BATCH_SIZE must be a positive integer")
        if self.RETRY_COUNT < 0:
            errors.append("RETRY_COUNT must not be negative")
        if self.EXECUTION_MODE not in ("sequential", "parallel"):
            errors.append("EXECUTION_MODE must be 'sequential' or 'parallel'")
        if errors:
            raise ConfigurationError(f"Configuration errors: {', '.join(errors)}")


config = Config()
