from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = ""
    environment: str = "dev"
    # CORS settings
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]
    # Recompute settings
    recompute_debounce_seconds: float = 1.5  # Quiescence window before a broadsheet pass runs
    persist_computed_snapshots: bool = False  # Derived grades are always re-derivable; persisting is optional
    # Broadsheet cache settings
    broadsheet_cache_size: int = 256
    broadsheet_cache_ttl: int = 600  # 10 minutes


class LoggingSettings(BaseSettings):
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # "text" or "json"
    ENV: str = "dev"  # dev | staging | prod

    class Config:
        env_prefix = "APP_"


logging_settings = LoggingSettings()

settings = Settings()  # type: ignore
