from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'invoices_user'
    POSTGRES_PASSWORD: str = 'invoices_pass'
    POSTGRES_DB: str = 'invoices_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432

    # Full async URL override (tests point this at sqlite+aiosqlite)
    DATABASE_URL: Optional[str] = None

    # Dashboard
    INVOICES_PATH: str = '/dashboard/invoices'
    CURRENCY_MINOR_UNITS: int = 100  # cents per major unit

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Rendered views kept in memory (least recently used are evicted)
    VIEW_CACHE_MAX_ENTRIES: int = 64

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("INVOICES_PATH")
    @classmethod
    def normalize_invoices_path(cls, v):
        return "/" + v.strip().strip("/")

settings = Settings()
