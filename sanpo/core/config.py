from typing import List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "Sanpo Guide API"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    NOMINATIM_URL: str = "https://nominatim.openstreetmap.org/search"
    NOMINATIM_USER_AGENT: str = "sanpo-guide/0.1"
    GEOCODING_RESULT_LIMIT: int = 5

    VALHALLA_URL: str = "https://valhalla1.openstreetmap.de/route"
    VALHALLA_COSTING: str = "pedestrian"
    POLYLINE_PRECISION: int = 6

    IMAGERY_EXPORT_URL: str = (
        "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/export"
    )
    IMAGERY_SIZE_PX: int = 1024
    IMAGERY_PADDING_RATIO: float = 0.1

    OPENAI_API_KEY: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    LLM_PROVIDER: str = "anthropic"
    LLM_MODEL: str = "claude-sonnet-4-20250514"
    LLM_MAX_TOKENS: int = 1500
    LLM_TEMPERATURE: float = 0.7

    REQUEST_TIMEOUT: int = 30
    MAX_RETRIES: int = 3

    # Product policy
    MAX_ROUTE_DURATION_SECONDS: float = 3600
    GEOCODING_CANDIDATE_RANK: int = 0

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    @field_validator("LLM_PROVIDER")
    @classmethod
    def check_llm_provider(cls, v: str) -> str:
        v = v.lower()
        if v not in ("anthropic", "openai"):
            raise ValueError(f"Unsupported LLM provider: {v}")
        return v


settings = Settings()
