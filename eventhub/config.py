from pydantic import Field
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./eventhub.db"

    # Authentication
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    # Application
    log_level: str = "INFO"

    # CORS
    cors_origins: str = ""  # Comma-separated allowed origins (empty = allow all)

    # Rate limiting
    rate_limit_enabled: bool = True
    purchase_rate_limit: str = "20/minute"

    # Purchases
    price_tolerance: float = 0.01
    confirmation_code_length: int = Field(default=12, ge=8, le=32)  # Column is String(32)
    confirmation_code_attempts: int = 5

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
