from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        protected_namespaces=(),
    )

    env: Literal["local", "prod", "test"] = Field(default="local", alias="ENV")
    debug: bool = Field(default=True, alias="DEBUG")

    # Both must be non-blank before any URL is issued.
    secret_key: str = Field(default="", alias="SECRET_KEY")
    node_endpoint: str = Field(default="", alias="NODE_ENDPOINT")


@lru_cache
def get_settings() -> Settings:
    return Settings()
