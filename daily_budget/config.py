from dotenv import load_dotenv
from pydantic import BaseModel
import os

# Load .env automatically
load_dotenv()


class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "development")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./daily_budget.db")
    sql_echo: bool = os.getenv("SQL_ECHO", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")

    # Calendar day boundaries are resolved in the user's zone, this one when unset
    default_timezone: str = os.getenv("DEFAULT_TIMEZONE", "UTC")
    lookup_cache_ttl_seconds: float = float(os.getenv("LOOKUP_CACHE_TTL_SECONDS", "60"))

    # Names given to the engine-generated deposits
    auto_savings_name: str = os.getenv("AUTO_SAVINGS_NAME", "Automatic savings")
    auto_goals_name: str = os.getenv("AUTO_GOALS_NAME", "Automatic goals")


# Global settings instance
settings = Settings()
