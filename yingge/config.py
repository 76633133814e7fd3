from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):
    APP_NAME: str = "Yingge Asset Library"
    CORS_ALLOW_ORIGINS: str = "*"
    DATA_DIR: str = "data"
    DATABASE_URL_ASYNC: str = "sqlite+aiosqlite:///./yingge.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 0
    DB_ECHO: bool = False
    PROCESSING_MAX_CONCURRENCY: int = 4
    THUMBNAIL_SIZE: int = 256
    AI_MAX_EDGE: int = 1536
    AI_JPEG_QUALITY: int = 85
    AI_REQUEST_TIMEOUT: float = 60.0
    AI_CALL_DEADLINE: float = 120.0  # seconds, applied around every provider call
    DEFAULT_PAGE_SIZE: int = 50
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env")

@lru_cache
def get_settings() -> Settings:
    return Settings()
