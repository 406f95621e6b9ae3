"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal
from urllib.parse import quote

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="comment-api", description="Application name")
    version: str = Field(default="dev", description="Build version")
    stage: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Deployment stage"
    )

    # API Server
    host: str = Field(default="0.0.0.0", description="API host")
    port: int = Field(default=8080, description="API port")

    # Key-value store (Redis/Valkey)
    redis_addr: str = Field(
        default="localhost:6379", description="Store address (host:port)"
    )
    redis_password: str = Field(default="", description="Store password")
    redis_db: int = Field(default=0, description="Store logical database index")
    redis_max_connections: int = Field(default=10, description="Max connections")
    redis_socket_timeout: float = Field(default=5.0, description="Socket timeout")
    redis_socket_connect_timeout: float = Field(
        default=5.0, description="Connect timeout"
    )
    redis_health_check_interval: int = Field(
        default=30, description="Health check interval"
    )

    # Comment storage
    storage_layout: Literal["fields", "record"] = Field(
        default="fields",
        description="fields: one key per comment field; record: one JSON key per comment",
    )

    # Admin authentication
    admin_token: str = Field(
        default="", description="Shared admin secret (generated if empty)"
    )
    auth_enabled: bool = Field(default=True, description="Protect admin routes")

    # Widget
    public_api_url: str = Field(default="", description="Widget API URL override")
    domain: str = Field(default="", description="Public domain for the widget API")
    js_template_path: str = Field(
        default="./templates/comment-widget.js.tmpl",
        description="Widget template file",
    )
    admin_panel_path: str = Field(
        default="./templates/admin.html", description="Admin panel HTML file"
    )
    static_dir: str = Field(default="./static", description="Static asset root")
    template_reload_interval: float = Field(
        default=2.0, description="Template hot-reload poll interval (seconds)"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Include caller info"
    )
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file (10MB default)"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )
    log_requests: bool = Field(
        default=True, description="Log HTTP request start/finish"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths to exclude from request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="CORS origins")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        description="Allowed methods",
    )
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")
    cors_max_age: int = Field(default=600, description="CORS max age")

    @property
    def redis_url(self) -> str:
        """Connection URL assembled from address, password and database."""
        auth = f":{quote(self.redis_password, safe='')}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_addr}/{self.redis_db}"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.stage == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.stage == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
