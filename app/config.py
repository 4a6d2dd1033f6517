from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel
import os

# Carga el .env automáticamente
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "development")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./finance.db")
    sql_echo: bool = _env_bool("SQL_ECHO")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")

    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    # Shared secret for the cron-triggered sweep endpoint
    cron_secret: Optional[str] = os.getenv("CRON_SECRET")


# Instancia global de settings
settings = Settings()
