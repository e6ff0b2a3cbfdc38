from decouple import config, Csv

class Settings:
    # Database Configuration
    DATABASE_URL: str = config("DATABASE_URL", default="sqlite:///./marketplace.db")

    # Security Configuration
    SECRET_KEY: str = config("SECRET_KEY", default="your-secret-key-here-change-in-production")
    ALGORITHM: str = config("ALGORITHM", default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = config("ACCESS_TOKEN_EXPIRE_MINUTES", default=60, cast=int)

    # Marketplace Configuration
    DEFAULT_CURRENCY: str = config("DEFAULT_CURRENCY", default="EUR")

    # Product status sync (outbox retry worker)
    PRODUCT_SYNC_INTERVAL_SECONDS: int = config("PRODUCT_SYNC_INTERVAL_SECONDS", default=30, cast=int)
    PRODUCT_SYNC_MAX_ATTEMPTS: int = config("PRODUCT_SYNC_MAX_ATTEMPTS", default=5, cast=int)

    # CORS Configuration
    CORS_ORIGINS: list = config(
        "CORS_ORIGINS",
        default="http://localhost:8081,http://localhost:19006,http://localhost:3000",
        cast=Csv()
    )

    # Environment
    ENVIRONMENT: str = config("ENVIRONMENT", default="development")
    DEBUG: bool = config("DEBUG", default=True, cast=bool)

    # Logging
    LOG_LEVEL: str = config("LOG_LEVEL", default="INFO")

settings = Settings()
