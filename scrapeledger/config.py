from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()


def _optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    return int(raw)


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    store_name: str
    stored_ids_store_name: str
    dataset_name: str
    retailer_name: str
    market: str
    site: str
    reviews_days_back: int
    reviews_months_back: int | None
    new_product_months_back: int
    persist_interval_seconds: float
    max_persist_retries: int
    retry_backoff_seconds: float
    is_at_home: bool
    run_id: str
    notify_webhook_url: str
    notify_timeout_seconds: float


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "scrapeledger"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./scrapeledger.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        store_name=os.getenv("STORE_NAME", "default"),
        stored_ids_store_name=os.getenv("STORED_IDS_STORE_NAME", "stored-product-ids"),
        dataset_name=os.getenv("DATASET_NAME", "default"),
        retailer_name=os.getenv("RETAILER_NAME", ""),
        market=os.getenv("MARKET", ""),
        site=os.getenv("SITE", ""),
        reviews_days_back=int(os.getenv("REVIEWS_DAYS_BACK", "7")),
        reviews_months_back=_optional_int("REVIEWS_MONTHS_BACK"),
        new_product_months_back=int(os.getenv("NEW_PRODUCT_MONTHS_BACK", "24")),
        persist_interval_seconds=float(os.getenv("PERSIST_INTERVAL_SECONDS", "60")),
        max_persist_retries=int(os.getenv("MAX_PERSIST_RETRIES", "2")),
        retry_backoff_seconds=float(os.getenv("RETRY_BACKOFF_SECONDS", "1")),
        is_at_home=_flag("IS_AT_HOME"),
        run_id=os.getenv("RUN_ID", ""),
        notify_webhook_url=os.getenv("NOTIFY_WEBHOOK_URL", ""),
        notify_timeout_seconds=float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "10")),
    )
