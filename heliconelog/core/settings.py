from __future__ import annotations
import os
from typing import Any, Dict
from dotenv import load_dotenv, find_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env early and override any preexisting/empty values
load_dotenv(
    os.getenv("ENV_FILE") or find_dotenv(usecwd=True) or ".env",
    override=True,
)

DEFAULT_HELICONE_LOG_URL = "https://api.us.hconeai.com/custom/v1/log"


def _mask(v: str | None) -> str:
    if not v:
        return ""
    if len(v) <= 8:
        return "***"
    return f"{v[:4]}...{v[-4:]}"


class Settings(BaseSettings):
    # read .env with case-insensitive keys
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
    )

    # Helicone async logging; empty key disables telemetry
    HELICONE_API_KEY: str = Field("")
    HELICONE_LOG_URL: str = Field(DEFAULT_HELICONE_LOG_URL)
    HELICONE_TIMEOUT_S: float = Field(10.0)

    # OpenAI assistants
    OPENAI_API_KEY: str = Field("")
    OPENAI_API_BASE: str = Field("https://api.openai.com")
    OPENAI_MODEL: str = Field("gpt-4o-mini")
    OPENAI_POLL_INTERVAL_S: float = Field(1.0)
    OPENAI_POLL_TIMEOUT_S: float = Field(120.0)

    # sqlite vendor metrics; empty disables
    METRICS_DB_PATH: str = Field("")

    LOG_LEVEL: str = Field("INFO")

    @field_validator("HELICONE_API_KEY", "OPENAI_API_KEY", "METRICS_DB_PATH", mode="before")
    @classmethod
    def _strip(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("HELICONE_LOG_URL", mode="before")
    @classmethod
    def _default_url(cls, v):
        s = str(v or "").strip()
        return s or DEFAULT_HELICONE_LOG_URL

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _upper_level(cls, v):
        return (str(v or "INFO").strip() or "INFO").upper()

    def as_dict(self) -> Dict[str, Any]:
        """Plain snapshot for debug output; secrets are masked."""
        return {
            "HELICONE_API_KEY": _mask(self.HELICONE_API_KEY),
            "HELICONE_LOG_URL": self.HELICONE_LOG_URL,
            "HELICONE_TIMEOUT_S": self.HELICONE_TIMEOUT_S,
            "OPENAI_API_KEY": _mask(self.OPENAI_API_KEY),
            "OPENAI_API_BASE": self.OPENAI_API_BASE,
            "OPENAI_MODEL": self.OPENAI_MODEL,
            "OPENAI_POLL_INTERVAL_S": self.OPENAI_POLL_INTERVAL_S,
            "OPENAI_POLL_TIMEOUT_S": self.OPENAI_POLL_TIMEOUT_S,
            "METRICS_DB_PATH": self.METRICS_DB_PATH,
            "LOG_LEVEL": self.LOG_LEVEL,
        }


# Create settings instance
settings = Settings()
