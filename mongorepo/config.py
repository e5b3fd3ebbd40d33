"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class ConnectionSettings(BaseModel):
    """Where a repository's collection lives."""

    url: str
    collection_name: str | None = None
    username: str | None = None
    password: SecretStr | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Only the MongoDB URI schemes are accepted."""
        v = v.strip()
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError("Connection URL must start with mongodb:// or mongodb+srv://")
        return v

    @field_validator("collection_name")
    @classmethod
    def validate_collection_name(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("Collection name cannot be empty")
        return v

    @model_validator(mode="after")
    def validate_credentials(self) -> "ConnectionSettings":
        """Username and password come as a pair."""
        if (self.username is None) != (self.password is None):
            raise ValueError("username and password must be given together")
        return self


class Settings(BaseSettings):
    """Process-level defaults, read from ``MONGOREPO_*`` variables or ``.env``."""

    mongo_url: str = "mongodb://localhost:27017/mongorepo"
    username: str | None = None
    password: SecretStr | None = None

    environment: str = Field(default="development", description="development | staging | production")
    log_level: str = Field(default="INFO", description="Logging level")
    logfire_token: str = ""

    model_config = SettingsConfigDict(
        env_prefix="MONGOREPO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    def connection(self, collection_name: str | None = None) -> ConnectionSettings:
        """Default connection, optionally pinned to ``collection_name``."""
        return ConnectionSettings(
            url=self.mongo_url,
            collection_name=collection_name,
            username=self.username,
            password=self.password,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    return Settings()
