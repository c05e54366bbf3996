import logging
import os
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# Make sure you have a .env file (or real env vars) with PAYSTACK_SECRET_KEY etc.
load_dotenv()

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: str = "sqlite:///./booking.db"
    paystack_secret_key: str = ""
    paystack_base_url: str = "https://api.paystack.co"
    payment_gateway: Literal["paystack", "sandbox"] = "paystack"
    callback_base_url: str = "http://localhost:5173"
    currency: str = "NGN"
    gateway_timeout: float = 10.0
    gateway_retries: int = 2
    reference_prefix: str = "DV"
    reference_attempts: int = 5
    log_level: str = "INFO"

    def callback_url(self, booking_id: str) -> str:
        return f"{self.callback_base_url.rstrip('/')}/booking/confirm/{booking_id}"


@lru_cache
def get_settings() -> Settings:
    """
    Build Settings from the process environment.
    Cached: the environment is read once per process.
    """
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./booking.db"),
        paystack_secret_key=os.getenv("PAYSTACK_SECRET_KEY", ""),
        paystack_base_url=os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co"),
        payment_gateway=os.getenv("PAYMENT_GATEWAY", "paystack"),
        callback_base_url=os.getenv("CLIENT_URL", "http://localhost:5173"),
        currency=os.getenv("CURRENCY", "NGN"),
        gateway_timeout=float(os.getenv("GATEWAY_TIMEOUT", "10")),
        gateway_retries=int(os.getenv("GATEWAY_RETRIES", "2")),
        reference_prefix=os.getenv("REFERENCE_PREFIX", "DV"),
        reference_attempts=int(os.getenv("REFERENCE_ATTEMPTS", "5")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
