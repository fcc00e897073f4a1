"""Configuration settings for the face identity service."""
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    These settings are loaded from environment variables with the following precedence:
    1. Environment variables
    2. .env file
    3. Default values

    Attributes:
        MATCH_THRESHOLD: Maximum Euclidean distance for a verification match
        REGISTRATION_MATCH_THRESHOLD: Distance used by the duplicate-face check on
            registration. Falls back to MATCH_THRESHOLD when unset.
        IDENTITY_STORE: Store backend, either "memory" or "sql"
        JWT_SECRET: Secret used to sign session credentials
    """
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",  # No prefix for environment variables
        env_nested_delimiter="__"  # Use double underscore for nested settings
    )

    # Core Settings
    PROJECT_NAME: str = "Face Identity Service"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"

    # CORS Settings
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins(self) -> List[str]:
        """Get list of allowed origins."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Face Recognition Settings
    MIN_FACE_CONFIDENCE: float = 0.6
    MODEL_CACHE_DIR: str = ".model_cache"
    MAX_IMAGE_PIXELS: int = 1920 * 1080  # ~2MP (Full HD)
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024  # 10MB upload limit
    MODEL_PATH: str = "buffalo_l"
    DESCRIPTOR_DIMENSION: int = 512  # buffalo_l embedding size
    EXTRACTOR_TIMEOUT_SECONDS: float = 10.0

    # Identity matching settings
    MATCH_THRESHOLD: float = 0.5
    REGISTRATION_MATCH_THRESHOLD: Optional[float] = None
    QUARANTINE_LIST_LIMIT: int = 50

    @property
    def registration_match_threshold(self) -> float:
        """Threshold for the duplicate-face check on registration."""
        if self.REGISTRATION_MATCH_THRESHOLD is None:
            return self.MATCH_THRESHOLD
        return self.REGISTRATION_MATCH_THRESHOLD

    # Identity store settings
    IDENTITY_STORE: str = "memory"
    DATABASE_URL: str = "sqlite+aiosqlite:///./faceid.db"
    DATABASE_ECHO: bool = False

    # Credential settings
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    CREDENTIAL_TTL_DAYS: int = 7

    # Avatar rendered for registered identities
    AVATAR_URL_TEMPLATE: str = (
        "https://ui-avatars.com/api/?name={name}&background=7f0df2&color=fff"
    )

    # Optional settings with defaults
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

settings = Settings()
