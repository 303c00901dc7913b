from typing import List, Optional, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json


def _split_list(v: Union[str, List[str]]) -> Union[List[str], str]:
    if isinstance(v, str) and v.startswith("["):
        return json.loads(v)
    elif isinstance(v, str):
        return [i.strip() for i in v.split(",") if i.strip()]
    return v


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    # Application
    APP_NAME: str = "Cabinet"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    API_V1_PREFIX: str = "/api/v1"

    # Database
    DB_USER: str
    DB_PASSWORD: str
    DB_NAME: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    @property
    def DATABASE_URL(self) -> str:
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # Redis
    REDIS_PASSWORD: str = ""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    @property
    def REDIS_URL(self) -> str:
        return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/0"

    # MinIO
    MINIO_ROOT_USER: str
    MINIO_ROOT_PASSWORD: str
    MINIO_BUCKET_NAME: str = "cabinet-files"
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_SECURE: bool = False
    # Base used for permanent public links; defaults to the endpoint itself
    MINIO_PUBLIC_URL: Optional[str] = None

    # JWT
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # CORS
    BACKEND_CORS_ORIGINS: Union[List[str], str] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        return _split_list(v)

    # File Upload
    MAX_FILE_SIZE_MB: int = 10
    ALLOWED_EXTENSIONS: Union[List[str], str] = [
        ".jpeg", ".jpg", ".png", ".gif", ".pdf", ".doc", ".docx", ".txt",
        ".zip", ".mp4", ".mov", ".avi", ".mp3", ".wav",
    ]
    ALLOWED_MIME_TYPES: Union[List[str], str] = [
        "image/jpeg", "image/png", "image/gif", "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain", "application/zip", "application/x-zip-compressed",
        "video/mp4", "video/quicktime", "video/x-msvideo",
        "audio/mpeg", "audio/wav", "audio/x-wav",
    ]
    STRICT_UPLOAD_FOLDER: bool = False
    LEGACY_UPLOAD_DIR: str = "uploads"

    @field_validator("ALLOWED_EXTENSIONS", "ALLOWED_MIME_TYPES", mode="before")
    @classmethod
    def assemble_allow_lists(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        return _split_list(v)

    @property
    def MAX_FILE_SIZE_BYTES(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024

    # Folders & sharing
    MAX_FOLDER_DEPTH: int = 256
    PREVIEW_URL_EXPIRE_SECONDS: int = 3600
    SHARE_CACHE_TTL: int = 3600


settings = Settings()
