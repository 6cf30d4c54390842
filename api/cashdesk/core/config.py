from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./cashdesk.db"
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 1440

    sheets_webhook_url: str | None = None
    sheets_timeout_seconds: float = 10.0

    business_name: str = "CASH REGISTER"
    occasional_customer_name: str = "Occasional customer"
    currency: str = "USD"
    default_category: str = "General"
    default_min_stock: int = 5

    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CASHDESK_",
    )


settings = Settings()
