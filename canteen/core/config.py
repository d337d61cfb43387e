from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # --- Service ---
    PROJECT_NAME: str = "Canteen_Orders"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # --- Storage ---
    DATABASE_URL: str = "sqlite:///./canteen.db"
    DB_MAX_RETRIES: int = 10
    DB_RETRY_SECONDS: float = 3

    # --- Broadcast fan-out between workers (optional) ---
    REDIS_URL: str | None = None
    REDIS_CHANNEL: str = "canteen:rooms"
    SOCKET_QUEUE_SIZE: int = 100

    # --- Security ---
    STAFF_TOKEN: str = "dev-staff-token-change-me"
    PAYMENT_WEBHOOK_SECRET: str = "dev-payment-secret-change-me"

    # --- Order pipeline ---
    # Order numbers restart every day at midnight in this timezone
    TIMEZONE: str = "Asia/Kolkata"
    AUTO_PREPARE_ON_PAYMENT: bool = True

    # --- Customer notifications (disabled when missing) ---
    TWILIO_ACCOUNT_SID: str | None = None
    TWILIO_AUTH_TOKEN: str | None = None
    TWILIO_FROM_NUMBER: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
