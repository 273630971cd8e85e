import os
from typing import Annotated
from typing import Literal

from dotenv import load_dotenv
from pydantic import AnyHttpUrl
from pydantic import Field
from pydantic import TypeAdapter
from pydantic import model_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    PROJECT_NAME: Annotated[
        str, Field(default="Vibe Loop Audio API", validation_alias="PROJECT_NAME")
    ]
    APP_NAME: str = "vibe-loop"
    LOG_LEVEL: Annotated[str, Field(default="INFO", validation_alias="LOG_LEVEL")]
    DEBUG: bool = False

    # JSON list of accepted CORS origins
    CORS_ORIGINS: list[AnyHttpUrl] = TypeAdapter(list[AnyHttpUrl]).validate_json(
        os.getenv("CORS_ORIGINS", "[]")
    )

    # Access tokens
    SECRET_KEY: Annotated[str, Field(validation_alias="SECRET_KEY", min_length=32)]
    ALGORITHM: Annotated[str, Field(default="HS256", validation_alias="ALGORITHM")]
    ACCESS_TOKEN_EXPIRE_MINUTES: Annotated[
        int, Field(default=7 * 24 * 60, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    ]
    TOKEN_TYPE: Annotated[str, Field(default="bearer", validation_alias="TOKEN_TYPE")]
    TOKEN_ISSUER: str = "vibe-loop"
    TOKEN_AUDIENCE: str = "vibe-loop-users"
    BCRYPT_ROUNDS: Annotated[int, Field(default=12, ge=4, le=31)]

    # Postgres
    POSTGRES_HOST: Annotated[str, Field(default="localhost", validation_alias="POSTGRES_HOST")]
    POSTGRES_USER: Annotated[str, Field(default="postgres", validation_alias="POSTGRES_USER")]
    POSTGRES_PASSWORD: Annotated[
        str, Field(default="postgres", validation_alias="POSTGRES_PASSWORD")
    ]
    POSTGRES_PORT: Annotated[
        int, Field(default=5432, validation_alias="POSTGRES_PORT", gt=1024, lt=65536)
    ]
    POSTGRES_DB: Annotated[str, Field(default="vibe_loop", validation_alias="POSTGRES_DB")]
    # Full SQLAlchemy async URL; overrides the Postgres parts when set
    DATABASE_URL: str | None = None
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 1800
    DB_CONNECT_TIMEOUT: int = 10

    # Storage
    STORAGE_BACKEND: Literal["local", "s3"] = "local"
    STORAGE_PATH: str = "./uploads"
    STATIC_URL_PREFIX: str = "/uploads"
    STAGING_PATH: str = "./staging"
    S3_BUCKET_NAME: str | None = None
    S3_REGION: str | None = None
    S3_ENDPOINT_URL: str | None = None
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_FORCE_PATH_STYLE: bool = False
    S3_PUBLIC_BASE_URL: str | None = None

    # Uploads
    MAX_UPLOAD_SIZE: Annotated[int, Field(default=10 * 1024 * 1024, gt=0)]
    ALLOWED_EXTENSIONS: list[str] = [
        ".mp3",
        ".wav",
        ".ogg",
        ".m4a",
        ".aac",
        ".flac",
        ".webm",
    ]

    # Rate limiting
    REDIS_URL: str = "redis://localhost:6379"
    GLOBAL_RATE_LIMIT_TIMES: int = 100
    AUTH_RATE_LIMIT_TIMES: int = 10
    AUTH_RATE_LIMIT_MINUTES: int = 15
    UPLOAD_RATE_LIMIT_TIMES: int = 5
    UPLOAD_RATE_LIMIT_MINUTES: int = 1

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    @model_validator(mode="after")
    def check_storage_backend(self) -> "Settings":
        if self.STORAGE_BACKEND == "s3" and not self.S3_BUCKET_NAME:
            raise ValueError("S3_BUCKET_NAME is required when STORAGE_BACKEND=s3")
        return self

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        user = self.POSTGRES_USER
        password = self.POSTGRES_PASSWORD
        host = self.POSTGRES_HOST
        port = self.POSTGRES_PORT
        db = self.POSTGRES_DB
        return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"


settings = Settings()
