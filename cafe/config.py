from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    SUPABASE_URL: str
    SUPABASE_KEY: str
    SUPABASE_SERVICE_KEY: str

    REDIS_URL: str = "redis://localhost:6379"

    FRONTEND_URL: str = "http://localhost:3000"

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Staff keys are checked on the server, never shipped to the browser
    KITCHEN_API_KEY: str
    ADMIN_API_KEY: str

    CAFE_TIMEZONE: str = "Asia/Kolkata"
    CURRENCY_SYMBOL: str = "₹"

    SESSION_COOKIE_NAME: str = "session_id"
    SESSION_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 365
    SESSION_TTL_SECONDS: int = 60 * 60 * 24 * 30

    ORDER_RATE_LIMIT: int = 10
    ORDER_RATE_WINDOW: int = 60

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = ".env"

settings = Settings()
