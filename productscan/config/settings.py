"""
==============================================================================
Application Settings Module
==============================================================================

Typed configuration for the verification scanner, loaded with Pydantic
Settings and shared through a cached accessor.

Configuration Priority (highest to lowest):
------------------------------------------
1. Environment variables
2. .env file
3. Default values

Scan Timing:
-----------
- decode_settle_ms:      delay between a decode callback and its lookup
- status_reset_seconds:  how long success/error stays on screen
- scanner_message_seconds: lifetime of the "scanner not found" notice

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Module logger
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_name: Display name for the service
        app_env: Environment mode (development/staging/production)
        debug: Verbose logging and SQL echo
        database_url: SQLAlchemy connection string
        jwt_secret_key: Secret used to sign access/refresh tokens
        products_file: JSON fixture used to seed the product table
        decode_settle_ms: Debounce delay before a decoded value is looked up
        status_reset_seconds: Delay before success/error returns to idle
        capture_fps: Frame sampling rate for the decode engine
        detection_box_size: Edge of the square detection window in pixels
        capture_aspect_ratio: Viewfinder aspect ratio sent to the browser
        capture_backend: "browser" (frames pushed by the client) or "device"
        camera_probe_limit: Device indices probed by the local engine
        scanner_message_seconds: Lifetime of transient scanner-panel notices
        batch_max_rows: Upper bound on serials read from one spreadsheet
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================
    app_name: str = Field(
        default="Product Verification Scanner",
        description="Display name for the application"
    )

    app_env: str = Field(
        default="development",
        description="Environment mode: development, staging, production"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug logging and SQL echo"
    )

    host: str = Field(default="0.0.0.0", description="Server bind address")

    port: int = Field(default=8000, ge=1, le=65535, description="Server port")

    # =========================================================================
    # DATABASE SETTINGS
    # =========================================================================
    database_url: str = Field(
        default="sqlite:///./storage/db/scanner.db",
        description="SQLAlchemy database connection string"
    )

    # =========================================================================
    # AUTHENTICATION SETTINGS
    # =========================================================================
    jwt_secret_key: str = Field(
        default="change-this-in-production",
        min_length=16,
        description="Secret key for JWT token signing"
    )

    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    access_token_expire_minutes: int = Field(default=30, ge=1, le=1440)

    refresh_token_expire_days: int = Field(default=7, ge=1, le=90)

    default_admin_username: str = Field(default="admin", min_length=3, max_length=50)

    default_admin_password: str = Field(default="admin123", min_length=6)

    # =========================================================================
    # SCAN SESSION SETTINGS
    # =========================================================================
    decode_settle_ms: int = Field(
        default=300,
        ge=0,
        le=5000,
        description="Delay between a decode callback and the product lookup"
    )

    status_reset_seconds: float = Field(
        default=2.0,
        gt=0,
        le=60,
        description="Seconds before success/error returns to idle"
    )

    capture_fps: int = Field(default=10, ge=1, le=60, description="Frames sampled per second")

    detection_box_size: int = Field(
        default=300,
        ge=50,
        le=2000,
        description="Edge of the square detection window in pixels"
    )

    capture_aspect_ratio: float = Field(default=1.0, gt=0, le=4)

    capture_backend: str = Field(
        default="browser",
        description="Decode engine: browser (client frames) or device (local OpenCV)"
    )

    camera_probe_limit: int = Field(
        default=5,
        ge=1,
        le=32,
        description="Device indices probed when enumerating local cameras"
    )

    scanner_message_seconds: float = Field(
        default=3.0,
        gt=0,
        le=60,
        description="Lifetime of the transient scanner search notice"
    )

    batch_max_rows: int = Field(default=5000, ge=1, le=100000)

    # =========================================================================
    # FILE PATH SETTINGS
    # =========================================================================
    products_file: str = Field(
        default="data/products.json",
        description="JSON fixture used to seed the products table"
    )

    cors_origins: str = Field(
        default='["*"]',
        description="Allowed CORS origins as JSON array string"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        """Normalize the environment name, falling back to development."""
        valid_envs = {"development", "staging", "production"}
        normalized = value.lower().strip()

        if normalized not in valid_envs:
            logger.warning(
                f"Unknown environment '{value}', defaulting to 'development'"
            )
            return "development"

        return normalized

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, value: str) -> str:
        supported = {"HS256", "HS384", "HS512"}

        if value.upper() not in supported:
            raise ValueError(
                f"Unsupported JWT algorithm: {value}. "
                f"Supported: {', '.join(sorted(supported))}"
            )

        return value.upper()

    @field_validator("capture_backend")
    @classmethod
    def validate_capture_backend(cls, value: str) -> str:
        normalized = value.lower().strip()
        if normalized not in {"browser", "device"}:
            raise ValueError(
                f"Unsupported capture backend: {value}. Use 'browser' or 'device'"
            )
        return normalized

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def decode_settle_seconds(self) -> float:
        """Debounce delay in seconds."""
        return self.decode_settle_ms / 1000.0

    @property
    def products_path(self) -> Path:
        return Path(self.products_file)

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS origins from JSON string to list.

        Returns:
            List of allowed origin strings
        """
        try:
            origins = json.loads(self.cors_origins)
            if isinstance(origins, list):
                return origins
            return ["*"]
        except json.JSONDecodeError:
            logger.warning(
                f"Invalid CORS origins JSON: {self.cors_origins}, "
                "defaulting to ['*']"
            )
            return ["*"]

    @property
    def access_token_expire_seconds(self) -> int:
        return self.access_token_expire_minutes * 60

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================
    def get_database_path(self) -> Optional[Path]:
        """
        Extract the database file path for file-backed SQLite URLs.

        Returns:
            Path to the database file, or None for in-memory/other databases
        """
        if self.database_url.startswith("sqlite:///"):
            db_path = self.database_url.replace("sqlite:///", "")
            if db_path.startswith("./"):
                db_path = db_path[2:]
            if db_path and db_path != ":memory:":
                return Path(db_path)
        return None

    def ensure_directories(self) -> None:
        """Create the SQLite database directory when one is configured."""
        db_path = self.get_database_path()
        if db_path:
            db_path.parent.mkdir(parents=True, exist_ok=True)

        logger.debug("Required directories created/verified")

    def __repr__(self) -> str:
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"app_env={self.app_env!r}, "
            f"capture_backend={self.capture_backend!r}, "
            f"debug={self.debug})"
        )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    Returns:
        Cached Settings instance
    """
    settings = Settings()
    settings.ensure_directories()

    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")

    return settings
