from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    APP_NAME: str = "OD Tracker"
    AUTH_MODE: Literal["firebase", "mock"] = "mock"
    STORAGE_BACKEND: Literal["supabase", "memory"] = "memory"

    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    FIREBASE_CREDENTIALS_PATH: str = "./firebase-credentials.json"

    CORS_ORIGINS: str = "http://localhost:3000"

    EMAILJS_SERVICE_ID: str = ""
    EMAILJS_PUBLIC_KEY: str = ""
    EMAILJS_PRIVATE_KEY: str = ""
    EMAILJS_TEMPLATE_ID: str = ""

    INSTITUTION_NAME: str = "INSTITUTION NAME"
    LETTER_DIR: str = "uploads/od_letters"

    # Seed values for the admin-editable system settings
    AUTO_FORWARD_TIMEOUT_MINUTES: int = 30
    AUTO_FORWARD_ENABLED: bool = True
    NOTIFICATION_ENABLED: bool = True

    AUTO_FORWARD_SWEEP_INTERVAL_SECONDS: int = 60
    AUTO_FORWARD_SWEEP_ON_STARTUP: bool = True

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
