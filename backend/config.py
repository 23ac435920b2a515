# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./storefront.db"

    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: str = "http://localhost:5173"

    # Basket rules
    # Check stock against existing line quantity + increment (False: increment only)
    BASKET_STOCK_CHECK_CUMULATIVE: bool = True
    # Attempts when two first-time adds race on the one-basket-per-user constraint
    BASKET_UPSERT_MAX_ATTEMPTS: int = 3

    # Orders are placed independently of the basket; stock deduction is opt-in
    ORDER_DEDUCTS_STOCK: bool = False

    # Deadline for a single unit of work against the store
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra = "ignore"

settings = Settings()
