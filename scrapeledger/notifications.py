import logging

import requests

from scrapeledger.config import Settings
from scrapeledger.schemas import RunEnvironment


logger = logging.getLogger(__name__)


def build_message(retailer_name: str, env: RunEnvironment, categories: list[str]) -> dict[str, str]:
    category_label = "categories" if len(categories) > 1 else "category"
    category_list = ", ".join(categories)
    html = (
        "Hello! <br /><br />"
        f"Scraping successfully finished for the retailer <b>{retailer_name}</b> "
        f"and {category_label}: <b>{category_list}</b>.<br /><br />"
        f"Run: {env.run_id}<br />"
        f"Dataset: {env.dataset_id}<br />"
    )
    return {
        "subject": f"Data ready for {retailer_name} and {category_label}: {category_list}",
        "html": html,
    }


def notify_run_finished(settings: Settings, retailer_name: str, env: RunEnvironment, categories: list[str]) -> bool:
    """Best-effort completion notice. Returns True only when the webhook accepted it."""
    if not settings.is_at_home or not settings.notify_webhook_url:
        return False

    try:
        response = requests.post(
            settings.notify_webhook_url,
            json=build_message(retailer_name, env, categories),
            timeout=settings.notify_timeout_seconds,
        )
        response.raise_for_status()
    except requests.RequestException:
        logger.exception("run notification failed", extra={"run_id": env.run_id, "dataset_id": env.dataset_id})
        return False

    logger.info("run notification sent", extra={"run_id": env.run_id, "status_code": response.status_code})
    return True
