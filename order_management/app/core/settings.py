"""
Order Management Service configuration
"""

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load from order_management/.env
SERVICE_DIR = Path(__file__).parent.parent.parent
ENV_FILE = SERVICE_DIR / ".env"


class OrderManagementSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env file
    )

    # Application
    APP_NAME: str = "Order Management API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Database
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40

    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    TOKEN_EXPIRE_DAYS: int = 7
    COOKIE_SECURE: Optional[bool] = None
    # Blocked users are only rejected at login unless this is enabled
    AUTH_REJECT_BLOCKED_USERS: bool = False

    # Listings
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # Order images
    MAX_ORDER_IMAGES: int = 5
    STORAGE_BACKEND: Literal["local", "s3"] = "local"
    UPLOAD_DIR: str = str(SERVICE_DIR / "uploads")
    S3_BUCKET_NAME: Optional[str] = None
    S3_REGION: Optional[str] = None
    S3_ACCESS_KEY_ID: Optional[str] = None
    S3_SECRET_ACCESS_KEY: Optional[str] = None
    S3_ENDPOINT_URL: Optional[str] = None
    S3_URL_EXPIRES_SECONDS: int = 3600

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: List[str] = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]
    CORS_HEADERS: List[str] = ["Content-Type", "Authorization"]

    # Logging
    LOG_LEVEL: str = "INFO"

    @model_validator(mode="after")
    def default_cookie_secure(self) -> "OrderManagementSettings":
        if self.COOKIE_SECURE is None:
            self.COOKIE_SECURE = self.ENVIRONMENT.lower() == "production"
        return self

    @property
    def token_max_age_seconds(self) -> int:
        return self.TOKEN_EXPIRE_DAYS * 24 * 60 * 60


# Create a singleton instance
_settings_instance: Optional[OrderManagementSettings] = None


def get_settings() -> OrderManagementSettings:
    """Get settings singleton instance"""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = OrderManagementSettings()  # type: ignore[call-arg]
    return _settings_instance
