from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TACTICA_", env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./tactica.db"
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:8000", "http://127.0.0.1:8000"]

    # Requests per client address per window
    rate_limit_window_seconds: int = 60
    rate_limit_tick: int = 80
    rate_limit_use_skill: int = 120
    rate_limit_start: int = 30

    idempotency_ttl_seconds: int = 15

    # Combat board defaults
    board_width: int = 12
    board_height: int = 8


settings = Settings()
