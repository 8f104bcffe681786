# Application Configuration using Pydantic BaseSettings
import logging
from typing import List, Optional

from pydantic_settings import BaseSettings

class AppSettings(BaseSettings):
    # MongoDB
    MONGO_DETAILS: str = "mongodb://mongo:27017"
    DB_NAME: str = "customer_case_db"
    CASES_COLLECTION: str = "cases"
    ORGANIZATIONS_COLLECTION: str = "organizations"
    INDIVIDUALS_COLLECTION: str = "individuals"

    # Active case guard
    # When True the store rejects a second open case per customer through a
    # partial unique index, otherwise creation is serialized in-process.
    ENFORCE_OPEN_CASE_INDEX: bool = True

    # Contact resolution
    CONTACT_PREVIEW_FIELDS: List[str] = ["email", "mobile_phone"]

    # Observability
    LOG_LEVEL: str = "INFO"
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: Optional[str] = None
    OTEL_EXPORTER_OTLP_METRICS_ENDPOINT: Optional[str] = None
    SERVICE_NAME_API: str = "customer-case-api"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

# Instantiate settings to be imported by other modules
settings = AppSettings()

logger = logging.getLogger(__name__)
# Avoid logging sensitive details if any are present in future settings.
logger.info("Application settings module initialized.")
