# ============================================================================
# Workflow Transfer - Application Configuration
# ============================================================================
"""
Application configuration module using Pydantic Settings.

This module defines the environment-driven configuration for workflow
transfers, including:
- Source and target n8n instance credentials
- HTTP client behaviour (timeouts, rate limiting, caching)
- Batch engine defaults (concurrency, retries, rollback threshold)
- Deduplication and reporting defaults

Environment Variables:
    SOURCE_N8N_URL, SOURCE_N8N_API_KEY, TARGET_N8N_URL, TARGET_N8N_API_KEY
    and one variable per field below (case-insensitive). A ``.env`` file in
    the working directory is read as well.

Usage:
    from workflow_transfer.config import settings
    timeout = settings.request_timeout
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # =========================================================================
    # INSTANCE CREDENTIALS
    # =========================================================================
    source_n8n_url: Optional[str] = Field(default=None, description="Source n8n base URL")
    source_n8n_api_key: Optional[str] = Field(default=None, description="Source n8n API key")
    target_n8n_url: Optional[str] = Field(default=None, description="Target n8n base URL")
    target_n8n_api_key: Optional[str] = Field(default=None, description="Target n8n API key")
    api_key_header: str = Field(default="X-N8N-API-KEY", description="Header carrying the API key")

    # =========================================================================
    # HTTP CLIENT
    # =========================================================================
    request_timeout: float = Field(default=10.0, description="Timeout (s) for each remote call")
    max_requests_per_second: float = Field(default=10.0, description="Client-side rate limit; 0 disables")
    cache_ttl_seconds: float = Field(default=300.0, description="TTL for cached remote reads")

    # =========================================================================
    # BATCH ENGINE DEFAULTS
    # =========================================================================
    concurrency_limit: int = Field(default=3, description="Parallel mutation workers")
    retry_max_attempts: int = Field(default=3, description="Attempts per item including the first")
    retry_base_delay: float = Field(default=1.0, description="Initial backoff delay (s)")
    retry_max_delay: float = Field(default=5.0, description="Backoff ceiling (s)")
    rollback_threshold: float = Field(default=0.5, description="Abort when success rate drops below this")
    fuzzy_threshold: float = Field(default=0.85, description="Name similarity treated as duplicate")

    # =========================================================================
    # LOGGING / REPORTING
    # =========================================================================
    log_level: str = Field(default="INFO", description="Root log level for commands")
    report_dir: str = Field(default="reports", description="Directory for transfer reports")
    config_file: Optional[str] = Field(default=None, description="Optional YAML config path")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def report_path(self) -> Path:
        return Path(self.report_dir)


# Global settings instance (imported elsewhere)
settings = Settings()
