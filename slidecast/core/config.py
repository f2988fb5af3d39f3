from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "slidecast"

    # base64url-encoded HMAC-SHA256 key; empty => ephemeral per-process key
    HMAC_KEY: str = ""

    STORAGE_BACKEND: str = "auto"  # auto | memory | redis
    REDIS_URL: str = ""
    REDIS_KEY_PREFIX: str = "slidecast"

    TOPIC_TTL_DAYS: int = 30
    WS_SEND_QUEUE_SIZE: int = 256

    API_PREFIX: str = ""
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8000"

    HOST: str = "0.0.0.0"
    PORT: int = 8000

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def topic_ttl_seconds(self) -> int:
        return max(1, int(self.TOPIC_TTL_DAYS)) * 24 * 60 * 60

settings = Settings()
