"""
Application settings and configuration.
"""
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict
from typing import List
from dotenv import load_dotenv

# Load .env file explicitly
load_dotenv()

class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ========== FastAPI Settings ==========
    APP_NAME: str = "YardScape AI"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "AI landscape design from a single yard photo"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: List[str] = ["*"]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: List[str] = ["*"]
    CORS_HEADERS: List[str] = ["*"]

    # API
    API_PREFIX: str = ""
    UI_PATH: str = "/studio"

    # ========== Vision / Image Generation Backend ==========
    OPENAI_API_KEY: str | None = Field(None, validation_alias="OPENAI_API_KEY")
    API_BASE_URL: str = Field("https://api.openai.com", validation_alias="API_BASE_URL")

    VISION_MODEL: str = "gpt-4o"
    IMAGE_MODEL: str = "gpt-4o-image"
    ANALYSIS_TEMPERATURE: float = 0.7
    ANALYSIS_MAX_TOKENS: int = 1000
    REQUEST_TIMEOUT: float = 120.0

    # ========== Media Host (Cloudinary) ==========
    CLOUDINARY_CLOUD_NAME: str | None = Field(None, validation_alias="CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_API_KEY: str | None = Field(None, validation_alias="CLOUDINARY_API_KEY")
    CLOUDINARY_API_SECRET: str | None = Field(None, validation_alias="CLOUDINARY_API_SECRET")
    CLOUDINARY_UPLOAD_PRESET: str | None = Field(None, validation_alias="CLOUDINARY_UPLOAD_PRESET")
    CLOUDINARY_UPLOAD_URL: str = "https://api.cloudinary.com/v1_1"

    # Advisory only, shown in the UI; the media host enforces its own limit
    MAX_UPLOAD_MB: int = 10

    # ========== Studio UI ==========
    PREVIEW_DIR: str | None = Field(None, validation_alias="PREVIEW_DIR")
    # When set, the studio talks to the HTTP shim instead of calling services in-process
    SHIM_BASE_URL: str | None = Field(None, validation_alias="SHIM_BASE_URL")

    model_config = ConfigDict(
            env_file=".env",
            env_file_encoding="utf-8",
            case_sensitive=False,
            extra="ignore"
        )
# Create settings instance
settings = Settings()
