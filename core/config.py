"""
Runtime configuration read from environment variables (.env supported)
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "management" / "flows.yaml"


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


@dataclass(frozen=True)
class Settings:
    llm_provider: str = "openai"
    openai_model: str = "gpt-4o-mini"
    gemini_model: str = "gemini-1.5-flash"
    azure_openai_endpoint: Optional[str] = None
    azure_openai_deployment: Optional[str] = None
    azure_openai_api_version: str = "2024-02-15-preview"
    azure_openai_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    temperature: float = 0.7
    flow_timeout_seconds: float = 30.0
    retry_backoff_seconds: float = 1.0
    catalog_path: str = str(DEFAULT_CATALOG_PATH)
    log_dir: str = "logs"
    speech_key: Optional[str] = None
    speech_region: Optional[str] = None
    speech_language: str = "en-US"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment

        Environment Variables:
        - LLM_PROVIDER: "openai" (default), "azure", or "gemini"
        - OPENAI_MODEL / GEMINI_MODEL
        - AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_DEPLOYMENT_NAME,
          AZURE_OPENAI_API_VERSION, AZURE_OPENAI_API_KEY
        - GOOGLE_API_KEY
        - LLM_TEMPERATURE
        - FLOW_TIMEOUT_SECONDS, FLOW_RETRY_BACKOFF_SECONDS
        - FLOW_CATALOG_PATH, LOG_DIR
        - AZURE_SPEECH_KEY, AZURE_SPEECH_REGION, SPEECH_LANGUAGE
        """
        return cls(
            llm_provider=os.getenv("LLM_PROVIDER", "openai").lower(),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
            azure_openai_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT"),
            azure_openai_deployment=os.getenv("AZURE_OPENAI_DEPLOYMENT_NAME"),
            azure_openai_api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
            azure_openai_api_key=os.getenv("AZURE_OPENAI_API_KEY"),
            google_api_key=os.getenv("GOOGLE_API_KEY"),
            temperature=_float_env("LLM_TEMPERATURE", 0.7),
            flow_timeout_seconds=_float_env("FLOW_TIMEOUT_SECONDS", 30.0),
            retry_backoff_seconds=_float_env("FLOW_RETRY_BACKOFF_SECONDS", 1.0),
            catalog_path=os.getenv("FLOW_CATALOG_PATH", str(DEFAULT_CATALOG_PATH)),
            log_dir=os.getenv("LOG_DIR", "logs"),
            speech_key=os.getenv("AZURE_SPEECH_KEY"),
            speech_region=os.getenv("AZURE_SPEECH_REGION"),
            speech_language=os.getenv("SPEECH_LANGUAGE", "en-US"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
