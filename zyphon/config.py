"""Zyphon configuration management.

Configuration sources (in priority order):
1. Config file (config.yaml), passed to ``Settings`` as init kwargs
2. Environment variables (ZYPHON_ prefix, ``__`` for nesting)
3. Defaults
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000


class DatabaseConfig(BaseModel):
    """Database configuration."""

    # Any async SQLAlchemy URL, e.g. postgresql+asyncpg://
    url: str = "sqlite+aiosqlite:///./zyphon.db"
    echo: bool = False


class LoggingConfig(BaseModel):
    """Structured logging configuration."""

    level: str = "INFO"
    json_output: bool = True


class SecurityConfig(BaseModel):
    """Credential hashing and admin session configuration."""

    # Server-side secret mixed into every API key hash.
    # MUST be overridden in production (ZYPHON_SECURITY__KEY_PEPPER).
    key_pepper: str = "dev-pepper-change-in-production"

    # Admin console session tokens (issued by the portal login flow)
    admin_jwt_secret: str = "dev-admin-secret-change-in-production"
    admin_jwt_algorithm: str = "HS256"
    admin_cookie_name: str = "auth-token"
    admin_role: str = "ADMIN"


class GatewayConfig(BaseModel):
    """External gateway request limits and CORS."""

    # Empty = no Access-Control-Allow-Origin header (server-to-server only)
    allowed_origins: list[str] = Field(default_factory=list)

    max_pdf_payload_bytes: int = 100 * 1024
    max_image_prompt_length: int = 1000
    max_design_text_length: int = 500
    chat_history_token_budget: int = 900


class RateLimitRule(BaseModel):
    """Fixed-window limit for one endpoint class."""

    max_requests: int = Field(gt=0)
    window_seconds: float = Field(gt=0)


class ChatRateLimit(RateLimitRule):
    max_requests: int = Field(default=60, gt=0)
    window_seconds: float = Field(default=60, gt=0)


class DesignSpecRateLimit(RateLimitRule):
    max_requests: int = Field(default=60, gt=0)
    window_seconds: float = Field(default=60, gt=0)


class ImageRateLimit(RateLimitRule):
    max_requests: int = Field(default=10, gt=0)
    window_seconds: float = Field(default=3600, gt=0)


class PdfRateLimit(RateLimitRule):
    max_requests: int = Field(default=30, gt=0)
    window_seconds: float = Field(default=3600, gt=0)


class RateLimitConfig(BaseModel):
    """Per-endpoint-class rate limits, keyed by (API key, client IP)."""

    chat: ChatRateLimit = Field(default_factory=ChatRateLimit)
    design_spec: DesignSpecRateLimit = Field(default_factory=DesignSpecRateLimit)
    image: ImageRateLimit = Field(default_factory=ImageRateLimit)
    pdf: PdfRateLimit = Field(default_factory=PdfRateLimit)

    # How often expired windows are purged from the in-process store
    sweep_interval_seconds: float = 60.0

    def rule_for(self, endpoint_class: str) -> RateLimitRule:
        """Get the rule for an endpoint class."""
        rule = getattr(self, endpoint_class, None)
        if not isinstance(rule, RateLimitRule):
            raise ValueError(f"Unknown rate limit class: {endpoint_class}")
        return rule


class LLMConfig(BaseModel):
    """OpenAI-compatible chat completion backend."""

    base_url: str = "https://api.groq.com/openai/v1"
    api_key: str | None = None
    chat_model: str = "llama-3.3-70b-versatile"
    design_model: str = "llama-3.3-70b-versatile"
    temperature: float = 0.7
    timeout: float = 60.0
    system_prompt: str = (
        "You are Zyphon, the teaching assistant of an online learning platform. "
        "Answer clearly and concisely."
    )


class ImageProviderConfig(BaseModel):
    """Replicate-style prediction API for image generation."""

    api_url: str = "https://api.replicate.com/v1/predictions"
    api_token: str | None = None
    model_version: str = (
        "39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b"
    )
    poll_interval: float = 1.0
    poll_timeout: float = 90.0


class PdfRendererConfig(BaseModel):
    """Remote PDF rendering service."""

    url: str | None = None
    timeout: float = 30.0


class StorageConfig(BaseModel):
    """Object storage for generated artifacts."""

    backend: Literal["local", "blob"] = "local"

    # local backend
    local_root: str = "./uploads"
    public_base_url: str = "/uploads"

    # blob backend (HTTP PUT API)
    blob_api_url: str | None = None
    blob_token: str | None = None


class Settings(BaseSettings):
    """Zyphon application settings."""

    model_config = SettingsConfigDict(
        env_prefix="ZYPHON_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    rate_limits: RateLimitConfig = Field(default_factory=RateLimitConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    image: ImageProviderConfig = Field(default_factory=ImageProviderConfig)
    pdf: PdfRendererConfig = Field(default_factory=PdfRendererConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def _load_config_file() -> dict:
    """Load configuration from YAML file if exists.

    Looks for config file in order:
    1. ZYPHON_CONFIG_FILE environment variable
    2. ./config.yaml
    3. /etc/zyphon/config.yaml
    """
    config_paths = [
        os.environ.get("ZYPHON_CONFIG_FILE"),
        Path("config.yaml"),
        Path("/etc/zyphon/config.yaml"),
    ]

    for path in config_paths:
        if path is None:
            continue
        path = Path(path)
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}

    return {}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Values from the YAML config file win over environment variables;
    env fills whatever the file leaves unset, then defaults apply.
    """
    file_config = _load_config_file()
    return Settings(**file_config)
