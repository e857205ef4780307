from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    PROJECT_NAME: str = "SaleReady"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"

    # Database
    SUPABASE_URL: Optional[str] = Field(None, env="SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(None, env="SUPABASE_SERVICE_ROLE_KEY")
    SUPABASE_ANON_KEY: Optional[str] = Field(None, env="SUPABASE_ANON_KEY")
    SUPABASE_JWT_SECRET: Optional[str] = Field(None, env="SUPABASE_JWT_SECRET")

    # Security
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://localhost:8000",
        ]
    )

    # Billing
    STRIPE_SECRET_KEY: Optional[str] = Field(None, env="STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET: Optional[str] = Field(None, env="STRIPE_WEBHOOK_SECRET")
    SITE_URL: str = Field("", env="SITE_URL")

    # External APIs
    ANTHROPIC_API_KEY: Optional[str] = Field(None, env="ANTHROPIC_API_KEY")
    ANALYSIS_MODEL: str = Field("claude-sonnet-4-5", env="ANALYSIS_MODEL")
    ANALYSIS_MAX_TOKENS: int = Field(8000, env="ANALYSIS_MAX_TOKENS")
    YTJ_API_BASE_URL: str = Field(
        "https://avoindata.prh.fi/opendata-ytj-api/v3", env="YTJ_API_BASE_URL"
    )
    HTTP_TIMEOUT_SECONDS: float = Field(15.0, env="HTTP_TIMEOUT_SECONDS")

    # Queues
    REDIS_URL: Optional[str] = Field(None, env="REDIS_URL")
    SALES_ANALYSIS_QUEUE: str = "sales_analysis_queue"
    POST_DD_ANALYSIS_QUEUE: str = "post_dd_analysis_queue"
    DCF_ANALYSIS_QUEUE: str = "dcf_analysis_queue"
    VALUATION_DOCUMENTS_QUEUE: str = "valuation_document_analysis_queue"
    QUEUE_POLL_SECONDS: float = Field(30.0, env="QUEUE_POLL_SECONDS")
    READINESS_COMPLETION_THRESHOLD: float = Field(0.75, env="READINESS_COMPLETION_THRESHOLD")

    # Logging
    LOG_LEVEL: str = Field("INFO", env="LOG_LEVEL")
    LOG_JSON: bool = Field(False, env="LOG_JSON")
    LOG_DIR: Optional[str] = Field(None, env="LOG_DIR")

    # Environment
    ENVIRONMENT: str = Field("development", env="ENVIRONMENT")
    DEBUG: bool = Field(True, env="DEBUG")

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env


settings = Settings()
