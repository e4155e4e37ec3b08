"""Configuration settings for the face identity engine."""
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    These settings are loaded from environment variables with the following precedence:
    1. Environment variables
    2. .env file
    3. Default values

    Attributes:
        EMBEDDING_DIM: Length of the face embeddings produced by the detector model
        THRESHOLD_SINGLE_SAMPLE: Match radius for identities with one sample
        THRESHOLD_FEW_SAMPLES: Match radius for identities with 2-3 samples
        THRESHOLD_MANY_SAMPLES: Match radius for identities with 4 or more samples
        MATCH_FAILURE_POLICY: How a face is labelled when matching cannot be computed
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
    PROJECT_NAME: str = "Face Identity Engine"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"

    # Detection Settings
    MODEL_PATH: str = "buffalo_l"
    MODEL_CACHE_DIR: str = ".model_cache"
    MAX_FACES_PER_IMAGE: int = 20
    # Fast, lower-recall tier
    FAST_DET_SIZE: int = 416
    FAST_DET_THRESHOLD: float = 0.5
    # Slower, higher-recall tier, only used when the fast tier finds nothing
    RECALL_DET_SIZE: int = 640
    RECALL_DET_THRESHOLD: float = 0.5

    # Matching Settings
    # Output length of the MODEL_PATH recognition model; buffalo_l emits 512
    EMBEDDING_DIM: int = 512
    THRESHOLD_SINGLE_SAMPLE: float = 0.45
    THRESHOLD_FEW_SAMPLES: float = 0.50
    THRESHOLD_MANY_SAMPLES: float = 0.55
    MATCH_FAILURE_POLICY: Literal["hash", "unidentified"] = "hash"
    MATCH_FALLBACK_MODULUS: int = 5

    # Thumbnail Settings
    THUMBNAIL_PADDING: float = 0.2
    THUMBNAIL_MAX_SIZE: int = 200
    THUMBNAIL_JPEG_QUALITY: int = 85
    THUMBNAIL_PREFIX: str = "faces"

    # Background reprocessing
    REPROCESS_COOLDOWN_SECONDS: float = 1.0

    # Database Settings
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "facematch"
    POSTGRES_POOL_SIZE: int = 5
    POSTGRES_MAX_OVERFLOW: int = 10
    POSTGRES_POOL_TIMEOUT: int = 30

    @property
    def database_url(self) -> str:
        """Get the async database URL, preferring an explicit DATABASE_URL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # AWS Settings
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    AWS_S3_BUCKET: str = ""

    # Optional settings with defaults
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

settings = Settings()
