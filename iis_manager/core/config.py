"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "IIS Manager API"
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = ["*"]

    # Audit database
    DATABASE_URL: str = "sqlite:///./audit.db"
    AUDIT_DEFAULT_LIMIT: int = 50
    AUDIT_MAX_LIMIT: int = 1000

    # Management gateway
    GATEWAY_BACKEND: str = "appcmd"  # appcmd | inventory
    APPCMD_PATH: str = r"C:\Windows\System32\inetsrv\appcmd.exe"
    APPCMD_TIMEOUT_SECONDS: float = 30.0
    INVENTORY_FILE: str = "./inventory.json"

    # CLI
    API_URL: str = "http://localhost:8000/api"
    API_TIMEOUT_SECONDS: Optional[float] = 60.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


settings = Settings()
