from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):

    DATABASE_URL: str = "sqlite:///./library_admin.db"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Email
    MAIL_USERNAME: str = ""
    MAIL_PASSWORD: str = ""
    MAIL_FROM: str = "onboarding@library.local"
    MAIL_FROM_NAME: str = "A.P. Ramakrishnan Library"
    MAIL_PORT: int = 587
    MAIL_SERVER: str = "localhost"
    MAIL_TIMEOUT: float = 10.0

    # Links in outgoing emails point here when the request has no Origin
    SITE_URL: str = "http://localhost:5173"

    INVITATION_EXPIRE_HOURS: int = 72
    RESET_PASSWORD_EXPIRE_HOURS: int = 1

    LOGIN_MAX_FAILED_ATTEMPTS: int = 5
    LOGIN_LOCKOUT_MINUTES: int = 5

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache
def get_settings():
    return Settings()
