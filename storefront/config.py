from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    BACKEND_URL: str = "http://127.0.0.1:8001"
    REQUEST_TIMEOUT_SECONDS: float = 15.0
    DATABASE_URL: str = "sqlite:///./storefront.db"
    STORAGE_BACKEND: str = "sql"  # sql | file | memory
    STORAGE_FILE: str = "./storefront_slots.json"
    CART_SLOT: str = "cart"
    TOKEN_SLOT: str = "admin_token"
    PAYMENT_KEY_ID: str = ""
    PAYMENT_CURRENCY: str = "INR"
    STORE_NAME: str = "Everything Store"
    CHECKOUT_ATTEMPT_TTL_SECONDS: int = 1800
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
