from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://hopebridge:hopebridge_secret@db:5432/hopebridge"
    JWT_SECRET: str = "hopebridge-jwt-secret-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 480
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    CREATE_TABLES_ON_STARTUP: bool = True
    NOTIFICATION_SWEEP_MINUTES: int = 60
    NOTIFICATION_RETENTION_DAYS: int = 30

    class Config:
        env_file = ".env"


settings = Settings()
