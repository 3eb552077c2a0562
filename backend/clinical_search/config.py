"""Application configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

REQUIRED_FIELDS = (
    "elasticsearch_url",
    "elasticsearch_username",
    "elasticsearch_password",
    "embedding_api_key",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    debug: bool = False

    # Elasticsearch
    elasticsearch_url: str = ""
    elasticsearch_username: str = ""
    elasticsearch_password: str = ""
    elasticsearch_verify_certs: bool = True
    index_refresh: str = "wait_for"
    knn_num_candidates: int = 100

    # Embeddings
    # "huggingface" calls the inference API over httpx; "google" uses google-genai.
    embedding_provider: str = "huggingface"
    embedding_api_key: str = ""
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_url: str = (
        "https://router.huggingface.co/hf-inference/models/{model}"
        "/pipeline/feature-extraction"
    )
    embedding_dimensions: int = 384
    gcp_project_id: str = ""
    gcp_location: str = "us-central1"

    # Timeouts and retries
    request_timeout: float = 10.0
    retry_attempts: int = 3
    retry_backoff: float = 0.5
    retry_backoff_max: float = 4.0

    def missing_required(self) -> list[str]:
        """Env var names of required settings that are unset or blank."""
        return [
            name.upper()
            for name in REQUIRED_FIELDS
            if not str(getattr(self, name)).strip()
        ]


settings = Settings()
