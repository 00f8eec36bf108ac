"""
Application configuration.

All configuration is loaded from environment variables.
The gateway token in particular must never live in code.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Clinic Payments"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/clinic_payments"
    )

    # Payment gateway
    PAYMENT_GATEWAY_URL: str = os.getenv(
        "PAYMENT_GATEWAY_URL",
        "https://pay.payphonetodoesposible.com/api/button/Prepare"
    )
    PAYMENT_GATEWAY_TOKEN: str = os.getenv("PAYMENT_GATEWAY_TOKEN", "")
    PAYMENT_GATEWAY_TIMEOUT: float = float(
        os.getenv("PAYMENT_GATEWAY_TIMEOUT", "15")
    )
    PAYMENT_COUNTRY_CODE: str = os.getenv("PAYMENT_COUNTRY_CODE", "593")

    # Base URL the gateway uses to call us back
    PUBLIC_BASE_URL: str = os.getenv(
        "PUBLIC_BASE_URL", "http://localhost:8000"
    ).rstrip("/")

    # Object detection (mocked)
    MODEL_VERSION: str = os.getenv("MODEL_VERSION", "YOLOv8n")
    MODEL_TTL_SECONDS: int = int(os.getenv("MODEL_TTL_SECONDS", "3600"))
    INFERENCE_SIMULATED_DELAY: float = float(
        os.getenv("INFERENCE_SIMULATED_DELAY", "0")
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    @property
    def response_url(self) -> str:
        return f"{self.PUBLIC_BASE_URL}/payments/webhook"

    @property
    def cancel_url(self) -> str:
        return f"{self.PUBLIC_BASE_URL}/payments/cancel"


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    The Settings object is built once per process, so
    environment variables are read a single time.
    """
    return Settings()
