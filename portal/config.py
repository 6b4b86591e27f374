from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Student Portal"
    APP_VERSION: str = "1.0.0"

    SECRET_KEY: str = "dev-secret-key-change-me"
    DATABASE_URL: str = "sqlite:///portal.db"
    SQL_ECHO: bool = False

    # Auth tokens issued by the backend
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12
    AUTH_COOKIE_NAME: str = "portal_access_token"
    SESSION_COOKIE_SAMESITE: Literal["lax", "strict", "none"] = "lax"
    SESSION_COOKIE_SECURE: bool = False

    # Blob storage
    STORAGE_DIR: str = "storage"
    STORAGE_URL_PREFIX: str = "/storage"
    PROFILE_PHOTO_BUCKET: str = "student-profile-photos"
    MAX_PHOTO_BYTES: int = 2 * 1024 * 1024
    ALLOWED_IMAGE_EXTS: set[str] = {"png", "jpg", "jpeg", "webp", "gif"}

    DEFAULT_STUDENT_PASSWORD: str = "password"

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


settings = Settings()
