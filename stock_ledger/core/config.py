# stock_ledger/core/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import validator
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from .env"""

    # === Database ===
    DATABASE_URL: str

    @validator("DATABASE_URL")
    def validate_database_url(cls, v):
        """Ensure database URL is safe for current environment"""
        env = os.getenv("ENVIRONMENT", "development").lower()
        if env == "production" and "localhost" in v:
            raise ValueError("🚨 Production environment cannot use localhost database!")
        return v

    # === Redis / Celery ===
    REDIS_URL: str
    CELERY_BROKER_URL: str
    CELERY_RESULT_BACKEND: str

    # === CORS ===
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    ALLOWED_METHODS: List[str] = ["*"]
    ALLOWED_HEADERS: List[str] = ["*"]

    # === System ===
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # === Reconciliation ===
    SOURCE_TIMEOUT_SECONDS: float = 10.0
    SUMMARY_BATCH_SIZE: int = 5
    SUMMARY_SNAPSHOT_KEY: str = "stock_reconciliation:snapshot"
    SUMMARY_REFRESH_INTERVAL_SECONDS: float = 900.0
    PENDING_POSTING_RETRY_SECONDS: float = 600.0

    # === Expiry postings ===
    # Disposal without a loss amount is rejected when True, recorded with no
    # financial entry when False.
    REQUIRE_LOSS_AMOUNT: bool = True
    POST_NET_LOSS_ON_MANUAL_SALE: bool = False
    MANUAL_SALE_CATEGORY: str = "Manual Sale"
    EXPIRED_PRODUCTS_CATEGORY: str = "Expired Products"

    # === Order import ===
    EXCLUDE_ON_HOLD_ORDERS: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Create a global settings instance
settings = Settings()
