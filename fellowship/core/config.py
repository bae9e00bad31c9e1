from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    # Tokens are issued by the external identity provider; we only verify them.
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    identity_audience: Optional[str] = Field(None, alias="IDENTITY_AUDIENCE")
    identity_issuer: Optional[str] = Field(None, alias="IDENTITY_ISSUER")
    login_url: str = Field("/api/auth/login", alias="LOGIN_URL")

    # When false, exceeding the source balance on an allocation is only reported back as a warning.
    strict_budget_enforcement: bool = Field(False, alias="STRICT_BUDGET_ENFORCEMENT")
    invitation_ttl_days: int = Field(7, alias="INVITATION_TTL_DAYS")
    default_currency: str = Field("USD", alias="DEFAULT_CURRENCY")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
