from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="GHER_", extra="ignore")

    # Streams are copied to the response in chunks of this many bytes
    stream_chunk_size: int = Field(default=64 * 1024, gt=0)

    # Text bodies
    text_encoding: str = "utf-8"
    text_decode_errors: str = "replace"

    # Response media types
    text_media_type: str = "text/plain; charset=utf-8"
    json_media_type: str = "application/json"
    stream_media_type: str = "application/octet-stream"

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
