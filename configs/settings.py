from __future__ import annotations

import os
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()


# Per-environment defaults. Individual env vars override these.
_PROFILES = {
    "development": {
        "session_ttl_seconds": 3600,
        "session_sweep_seconds": 300,
        "log_level": "DEBUG",
        "cors_origins": [
            "http://localhost:8080",
            "http://localhost:3000",
            "http://127.0.0.1:8080",
        ],
    },
    "production": {
        "session_ttl_seconds": 1800,
        "session_sweep_seconds": 600,
        "log_level": "INFO",
        "cors_origins": ["http://localhost:8080"],
    },
}


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


class Settings:
    """
    Central configuration for the tutor chat backend.

    Values are loaded once from environment variables (with defaults taken
    from the active APP_ENV profile) and then exposed via typed properties.
    """

    def __init__(self) -> None:
        self._app_env = os.getenv("APP_ENV", "development").strip().lower()
        profile = _PROFILES.get(self._app_env, _PROFILES["development"])

        # LLM / model configuration
        self._llm_api_key = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
        self._llm_base_url = os.getenv("LLM_BASE_URL") or None
        self._llm_model = os.getenv("LLM_MODEL", "gpt-4.1-mini")
        self._llm_timeout_seconds = float(_int_env("LLM_TIMEOUT_SECONDS", 25))

        # Session store
        self._session_ttl_seconds = _int_env(
            "SESSION_TTL_SECONDS", profile["session_ttl_seconds"]
        )
        self._session_sweep_seconds = _int_env(
            "SESSION_SWEEP_SECONDS", profile["session_sweep_seconds"]
        )
        self._session_history_cap = _int_env("SESSION_HISTORY_CAP", 20)

        # Topic boundary keywords (optional JSON file)
        self._topic_keywords_file = os.getenv("TOPIC_KEYWORDS_FILE") or None

        # Logging
        self._log_level = os.getenv("LOG_LEVEL", profile["log_level"]).upper()
        self._log_dir = os.getenv("LOG_DIR", "runtime/data/logs")

        # CORS
        origins = os.getenv("CORS_ORIGINS")
        if origins:
            self._cors_origins = [o.strip() for o in origins.split(",") if o.strip()]
        else:
            self._cors_origins = list(profile["cors_origins"])

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    @property
    def app_env(self) -> str:
        return self._app_env

    # ------------------------------------------------------------------
    # LLM settings
    # ------------------------------------------------------------------

    @property
    def llm_api_key(self) -> str:
        if not self._llm_api_key:
            raise RuntimeError(
                "LLM_API_KEY is not set. Please export it in your environment "
                "or define it in a .env file."
            )
        return self._llm_api_key

    @property
    def has_llm_api_key(self) -> bool:
        return bool(self._llm_api_key)

    @property
    def llm_base_url(self) -> Optional[str]:
        return self._llm_base_url

    @property
    def llm_model(self) -> str:
        return self._llm_model

    @property
    def llm_timeout_seconds(self) -> float:
        return self._llm_timeout_seconds

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @property
    def session_ttl_seconds(self) -> int:
        return self._session_ttl_seconds

    @property
    def session_sweep_seconds(self) -> int:
        return self._session_sweep_seconds

    @property
    def session_history_cap(self) -> int:
        return self._session_history_cap

    # ------------------------------------------------------------------
    # Prompting / logging / HTTP
    # ------------------------------------------------------------------

    @property
    def topic_keywords_file(self) -> Optional[str]:
        return self._topic_keywords_file

    @property
    def log_level(self) -> str:
        return self._log_level

    @property
    def log_dir(self) -> Optional[str]:
        return self._log_dir or None

    @property
    def cors_origins(self) -> List[str]:
        return list(self._cors_origins)


settings = Settings()
