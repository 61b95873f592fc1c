"""
Application configuration management with environment-based settings.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Main application settings."""

    # ============= Application Settings =============
    APP_NAME: str = "SMSI Training Platform"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Cybersecurity awareness training API"
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")
    API_PREFIX: str = "/api"

    # ============= Database Settings =============
    DATABASE_URL: str = Field(default="sqlite:///./smsi.db")
    DATABASE_ECHO: bool = False

    # ============= Security Settings =============
    JWT_SECRET: SecretStr = Field(default="your-super-secret-jwt-key-change-in-production")
    JWT_ALGORITHM: str = "HS256"  # only HS256; the edge verifier implements nothing else
    JWT_EXPIRES_DAYS: int = 7
    AUTH_COOKIE_NAME: str = "auth-token"
    BCRYPT_ROUNDS: int = 12

    PASSWORD_MIN_LENGTH: int = 8
    PASSWORD_REQUIRE_UPPERCASE: bool = True
    PASSWORD_REQUIRE_LOWERCASE: bool = True
    PASSWORD_REQUIRE_NUMBERS: bool = True
    PASSWORD_REQUIRE_SPECIAL: bool = True

    # Honour X-Forwarded-For / X-Real-IP; disable when clients reach the app directly
    TRUST_PROXY_HEADERS: bool = True

    # Path prefixes guarded by the edge verifier before routing
    EDGE_PROTECTED_PATHS: List[str] = ["/dashboard"]
    EDGE_ADMIN_PATHS: List[str] = ["/admin"]

    # CORS Settings
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True

    # ============= Rate Limiting =============
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_BACKEND: str = "memory"  # memory or redis
    REDIS_URL: Optional[str] = "redis://localhost:6379/0"

    # ============= Logging Settings =============
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def only_hs256(cls, v: str) -> str:
        if v != "HS256":
            raise ValueError("JWT_ALGORITHM must be HS256")
        return v

    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT.lower() == "production"

    def jwt_secret(self) -> str:
        return self.JWT_SECRET.get_secret_value()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Export settings instance
settings = get_settings()
