from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "SiteFlow API"
    app_env: str = "local"
    app_debug: bool = True
    api_port: int = 8000
    database_url: str = "sqlite+pysqlite:///./siteflow.db"
    document_store_backend: str = "memory"
    jwt_secret: str = "replace-me"
    jwt_algorithm: str = "HS256"
    metrics_enabled: bool = False
    otel_enabled: bool = False
    otel_service_name: str = "siteflow-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_console_exporter: bool = False
    app_version: str = "0.1.0"

    workflow_dedup_window_seconds: int = 300
    invoice_due_days: int = 30
    currency_symbol: str = "R"

    message_max_subject_length: int = 200
    message_min_content_length: int = 1
    message_max_content_length: int = 5000
    max_messages_per_hour: int = 50
    max_messages_per_day: int = 200
    spam_detection_threshold: int = 2
    spam_time_window_minutes: int = 10
    spam_similarity_threshold: float = 0.8

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()
