from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    mongodb_uri: str = "mongodb://localhost:27017/anima"
    db_name: str | None = None
    auth_enabled: bool = True
    session_ttl_seconds: int = 60 * 60 * 8
    session_cookie_name: str = "anima_session"
    max_image_bytes: int = 2 * 1024 * 1024
    cors_origins: str = "*"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        extra="ignore",
    )

settings = Settings()
