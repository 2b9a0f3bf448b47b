"""
Application configuration with environment variables.
"""
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "FacilityOps Sourcing"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    POSTGRES_USER: str = "facilityops"
    POSTGRES_PASSWORD: str = "facilityops"
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "facilityops"
    DATABASE_URL: Optional[str] = Field(None, validate_default=True)

    # Per-connection limits so a stuck lock never blocks a request forever
    DB_STATEMENT_TIMEOUT_MS: int = 15000
    DB_LOCK_TIMEOUT_MS: int = 5000

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Demo seeding - MUST be false in production
    SEED_DEMO: bool = False

    # =========================================
    # Sourcing (RFQ) rules
    # =========================================

    RFQ_MIN_INVITED_SUPPLIERS: int = 3
    RFQ_MIN_QUOTES_FOR_BENCHMARK: int = 2

    # Evaluation weights applied to new RFQs (plain integers, need not sum to 100)
    RFQ_DEFAULT_PRICE_WEIGHT: int = 40
    RFQ_DEFAULT_QUALITY_WEIGHT: int = 30
    RFQ_DEFAULT_DELIVERY_WEIGHT: int = 15
    RFQ_DEFAULT_COMPLIANCE_WEIGHT: int = 15

    RFQ_DEFAULT_CURRENCY: str = "DKK"
    RFQ_DEFAULT_VALIDITY_DAYS: int = 30

    # Human-readable numbering, e.g. RFQ-0001 / QT-0001
    RFQ_NUMBER_PREFIX: str = "RFQ"
    QUOTE_NUMBER_PREFIX: str = "QT"

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def assemble_db_url(cls, v: Optional[str], info) -> str:
        if isinstance(v, str) and v:
            return v

        data = info.data
        user = data.get("POSTGRES_USER", "facilityops")
        password = data.get("POSTGRES_PASSWORD", "facilityops")
        host = data.get("POSTGRES_HOST", "postgres")
        port = data.get("POSTGRES_PORT", "5432")
        db = data.get("POSTGRES_DB", "facilityops")

        return f"postgresql://{user}:{password}@{host}:{port}/{db}"

    @field_validator('SEED_DEMO')
    @classmethod
    def validate_seed_demo(cls, v: bool, info) -> bool:
        """Prevent demo seeding in production."""
        if v and not info.data.get("DEBUG", False):
            raise ValueError(
                "SEED_DEMO=true is not allowed when DEBUG=false. "
                "Demo seeding creates placeholder suppliers."
            )
        return v

    @field_validator('POSTGRES_PASSWORD')
    @classmethod
    def validate_postgres_password(cls, v: str, info) -> str:
        """Reject default database password in production."""
        weak = {"facilityops", "postgres", "password", "changeme", ""}
        if v in weak and not info.data.get("DEBUG", False):
            raise ValueError(
                "POSTGRES_PASSWORD is set to a default value. "
                "Set a strong database password for production."
            )
        return v

    @field_validator(
        'RFQ_DEFAULT_PRICE_WEIGHT',
        'RFQ_DEFAULT_QUALITY_WEIGHT',
        'RFQ_DEFAULT_DELIVERY_WEIGHT',
        'RFQ_DEFAULT_COMPLIANCE_WEIGHT',
    )
    @classmethod
    def validate_default_weight(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Evaluation weights must be non-negative integers")
        return v


settings = Settings()
