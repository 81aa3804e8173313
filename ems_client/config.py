# ems_client/config.py
import logging
from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()


class ClientSettings(BaseSettings):
    """Client settings"""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Server connection
    SERVER_URL: str = "http://localhost:8000"
    API_TOKEN: Optional[str] = None
    AUTH_USERNAME: str = "admin"
    AUTH_PASSWORD: str = "admin123"

    # CSV file settings
    CSV_FILE_PATH: str = "employee_data.csv"
    CSV_DELIMITER: str = ","
    CSV_ENCODING: str = "utf-8"

    # Processing settings
    BATCH_SIZE: int = 50
    MAX_RETRIES: int = 3
    RETRY_DELAY: float = 1.0
    TIMEOUT: float = 10.0
    MAX_WORKERS: int = 5

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "client.log"


def configure_logging(settings: ClientSettings) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE))

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


settings = ClientSettings()
