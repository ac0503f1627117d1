"""
Application settings

Read once from the environment at process start and passed explicitly to the
app factory. The CORS policy is fixed here and is not configurable.
"""

import logging
import os
from typing import Optional, Tuple

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

ALLOWED_ORIGINS: Tuple[str, ...] = (
    "https://app-book-reviews-front.vercel.app",
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:4200",
)
TRUSTED_ORIGIN_SUFFIX = ".vercel.app"

MAX_BODY_BYTES = 10 * 1024 * 1024


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    environment: str = "development"
    database_url: Optional[str] = None
    database_name: str = "ecommerce"
    port: int = 3001
    basic_user: Optional[str] = None
    basic_pass: Optional[str] = None
    log_level: str = "INFO"

    allowed_origins: Tuple[str, ...] = ALLOWED_ORIGINS
    trusted_origin_suffix: str = TRUSTED_ORIGIN_SUFFIX
    allowed_methods: Tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "OPTIONS")
    allowed_headers: Tuple[str, ...] = ("Content-Type", "Authorization")
    max_body_bytes: int = Field(MAX_BODY_BYTES, gt=0)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def basic_auth_enabled(self) -> bool:
        return bool(self.basic_user) and bool(self.basic_pass)


def load_settings() -> Settings:
    environment = os.getenv("ENVIRONMENT", "development")
    if environment != "production":
        load_dotenv(find_dotenv(usecwd=True))

    return Settings(
        environment=environment,
        database_url=os.getenv("MONGODB_URI") or os.getenv("DATABASE_URL"),
        database_name=os.getenv("DATABASE_NAME", "ecommerce"),
        port=int(os.getenv("PORT", 3001)),
        basic_user=os.getenv("BASIC_USER") or None,
        basic_pass=os.getenv("BASIC_PASS") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
