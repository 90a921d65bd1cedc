from __future__ import annotations

from dataclasses import dataclass

from pydantic_settings import BaseSettings

from app.services.errors import ConfigurationError


class Settings(BaseSettings):
    # Firecrawl search
    firecrawl_api_key: str = ""
    firecrawl_base_url: str = "https://api.firecrawl.dev"
    search_timeout_seconds: float = 20.0
    search_snippet_chars: int = 500

    # AI gateway (OpenAI-compatible chat completions)
    ai_api_key: str = ""
    ai_base_url: str = "https://ai.gateway.lovable.dev/v1"
    ai_model: str = "google/gemini-2.0-flash-exp"
    ai_timeout_seconds: float = 90.0
    solver_structured_action: bool = True

    # Prompt context
    context_max_results: int = 5

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_anon_key: str = ""  # only needed when require_auth is on
    require_auth: bool = False

    # App
    cors_origins: str = "http://localhost:5173"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


@dataclass(frozen=True)
class PipelineCredentials:
    """Provider credentials an analysis run cannot start without."""

    search_api_key: str
    ai_api_key: str
    storage_url: str
    storage_service_key: str

    @classmethod
    def from_settings(cls, source: Settings) -> "PipelineCredentials":
        return cls(
            search_api_key=source.firecrawl_api_key.strip(),
            ai_api_key=source.ai_api_key.strip(),
            storage_url=source.supabase_url.strip(),
            storage_service_key=source.supabase_service_role_key.strip(),
        )

    def validate(self) -> None:
        missing = [
            env_name
            for env_name, value in (
                ("FIRECRAWL_API_KEY", self.search_api_key),
                ("AI_API_KEY", self.ai_api_key),
                ("SUPABASE_URL", self.storage_url),
                ("SUPABASE_SERVICE_ROLE_KEY", self.storage_service_key),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")


settings = Settings()
