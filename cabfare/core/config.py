from pathlib import Path
from pydantic_settings import BaseSettings
from functools import lru_cache

PACKAGE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    app_env: str = "development"
    log_level: str = "INFO"
    tariff_config_path: str = str(PACKAGE_DIR / "data" / "jersey_2025.json")
    new_relic_config_file: str = str(PACKAGE_DIR / "newrelic.ini")

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()
