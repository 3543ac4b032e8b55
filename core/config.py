"""Centralized configuration management with validation."""
import os
from dataclasses import dataclass, field
from typing import Optional, List
from pathlib import Path

from dotenv import load_dotenv


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


def _mask_secret(value: str, visible_chars: int = 4) -> str:
    """Mask a secret value for logging, showing only first few chars."""
    if not value:
        return "<empty>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class FeedConfig:
    """Member spreadsheet (CSV export) configuration."""
    csv_url: str = ""
    timeout_seconds: float = 10.0
    retry_attempts: int = 2
    cache_ttl_seconds: int = 300
    default_maintenance_amount: float = 5000.0

    def validate(self) -> List[str]:
        """Validate feed configuration, return list of errors."""
        errors = []
        if not self.csv_url:
            errors.append("FEED_CSV_URL is required")
        elif not self.csv_url.startswith(("http://", "https://")):
            errors.append("FEED_CSV_URL must be an http(s) URL")
        if self.timeout_seconds <= 0:
            errors.append("FEED_TIMEOUT_SECONDS must be positive")
        if self.retry_attempts < 1:
            errors.append("FEED_RETRY_ATTEMPTS must be at least 1")
        if self.cache_ttl_seconds < 0:
            errors.append("FEED_CACHE_TTL_SECONDS cannot be negative")
        if self.default_maintenance_amount < 0:
            errors.append("DEFAULT_MAINTENANCE_AMOUNT cannot be negative")
        return errors

    def __repr__(self) -> str:
        # The export URL embeds the spreadsheet id
        return (f"FeedConfig(csv_url={_mask_secret(self.csv_url, 24)}, "
                f"timeout={self.timeout_seconds}, cache_ttl={self.cache_ttl_seconds})")


@dataclass
class RateLimitConfig:
    """Per-client request limits for unauthenticated endpoints."""
    max_requests: int = 5
    window_seconds: int = 60

    def validate(self) -> List[str]:
        errors = []
        if self.max_requests < 1:
            errors.append("RATE_LIMIT_MAX_REQUESTS must be at least 1")
        if self.window_seconds < 1:
            errors.append("RATE_LIMIT_WINDOW_SECONDS must be at least 1")
        return errors


@dataclass
class AuthConfig:
    """Bearer token configuration."""
    jwt_secret: str = ""
    expiration_hours: int = 24
    environment: str = "development"

    def validate(self) -> List[str]:
        """Validate auth configuration, return list of errors."""
        errors = []
        if self.environment != "development" and not self.jwt_secret:
            errors.append("JWT_SECRET_KEY is required outside development")
        if self.expiration_hours < 1:
            errors.append("JWT_EXPIRATION_HOURS must be at least 1")
        return errors

    def __repr__(self) -> str:
        return (f"AuthConfig(jwt_secret={_mask_secret(self.jwt_secret)}, "
                f"expiration_hours={self.expiration_hours}, environment={self.environment})")


@dataclass
class CorsConfig:
    """Allowed browser origins."""
    allowed_origins: List[str] = field(default_factory=lambda: [
        "http://localhost:5173",
        "http://localhost:8080",
    ])

    def validate(self) -> List[str]:
        if not self.allowed_origins:
            return ["ALLOWED_ORIGINS must list at least one origin"]
        return []


@dataclass
class StorageConfig:
    """Storage/persistence configuration."""
    database_path: str = "data/society.db"

    def validate(self) -> List[str]:
        """Validate storage configuration, return list of errors."""
        errors = []
        # Ensure parent directory exists or can be created
        db_parent = Path(self.database_path).parent
        if str(db_parent) != "." and not db_parent.exists():
            try:
                db_parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Cannot create database directory: {e}")
        return errors


@dataclass
class AppConfig:
    """Main application configuration."""
    feed: FeedConfig = field(default_factory=FeedConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    cors: CorsConfig = field(default_factory=CorsConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    # Runtime settings
    log_level: str = "INFO"
    log_format: str = "text"  # "json" or "text"

    def validate(self, require_feed: bool = True) -> None:
        """Validate all configuration, raise ConfigurationError if invalid."""
        errors = []

        if require_feed:
            errors.extend(self.feed.validate())

        errors.extend(self.rate_limit.validate())
        errors.extend(self.auth.validate())
        errors.extend(self.cors.validate())
        errors.extend(self.storage.validate())

        if self.log_format not in ("json", "text"):
            errors.append(f"Unknown LOG_FORMAT: {self.log_format}")

        if errors:
            raise ConfigurationError("Configuration errors:\n  - " + "\n  - ".join(errors))

    def __repr__(self) -> str:
        return (f"AppConfig(\n  feed={self.feed},\n  rate_limit={self.rate_limit},\n  "
                f"auth={self.auth},\n  cors={self.cors},\n  storage={self.storage},\n  "
                f"log_level={self.log_level}\n)")


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables."""

    # Load .env file if present
    load_dotenv()

    cors = CorsConfig()
    if os.getenv("ALLOWED_ORIGINS"):
        cors = CorsConfig(allowed_origins=_split_csv(os.getenv("ALLOWED_ORIGINS", "")))

    config = AppConfig(
        feed=FeedConfig(
            csv_url=os.getenv("FEED_CSV_URL", ""),
            timeout_seconds=float(os.getenv("FEED_TIMEOUT_SECONDS", "10")),
            retry_attempts=int(os.getenv("FEED_RETRY_ATTEMPTS", "2")),
            cache_ttl_seconds=int(os.getenv("FEED_CACHE_TTL_SECONDS", "300")),
            default_maintenance_amount=float(os.getenv("DEFAULT_MAINTENANCE_AMOUNT", "5000")),
        ),
        rate_limit=RateLimitConfig(
            max_requests=int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "5")),
            window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60")),
        ),
        auth=AuthConfig(
            jwt_secret=os.getenv("JWT_SECRET_KEY", ""),
            expiration_hours=int(os.getenv("JWT_EXPIRATION_HOURS", "24")),
            environment=os.getenv("ENVIRONMENT", "development"),
        ),
        cors=cors,
        storage=StorageConfig(
            database_path=os.getenv("DATABASE_PATH", "data/society.db"),
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_format=os.getenv("LOG_FORMAT", "text"),
    )

    return config


# Singleton config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config_from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
