"""Trigger runner - periodically calling the workflow checks of the API."""

import time
from datetime import date, datetime
from typing import Dict, List, Optional

import pytz
import requests

from configs import settings
from leadflow.logger_config import get_logger

logger = get_logger("trigger.runner")

ADMIN_HEADERS = {"X-User-Role": "admin", "X-User-Name": "trigger-runner"}

EVERY_CYCLE: List[str] = ["idle-leads", "reassign-idle-leads"]
DAILY: List[str] = ["birthdays", "follow-up-reminders"]


def call_trigger(name: str, timeout: int = 30) -> Optional[Dict]:
    """
    Call one trigger endpoint and return its JSON body.

    Args:
        name (str): Trigger path under /triggers.
        timeout (int): Request timeout in seconds.

    Returns:
        The decoded response, or None when the call failed.
    """
    url = f"http://{settings.BACKEND_HOST}{settings.ROOT_PATH_BACKEND}/triggers/{name}"
    try:
        response = requests.post(url, headers=ADMIN_HEADERS, timeout=timeout)
        response.raise_for_status()
        body = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("Trigger %s failed: %s", name, exc)
        return None
    logger.info("Trigger %s done: %s", name, body)
    return body


def due_triggers(today: date, last_daily_run: Optional[date]) -> List[str]:
    """Return the triggers to call this cycle; daily ones only once per local day."""
    if last_daily_run != today:
        return EVERY_CYCLE + DAILY
    return list(EVERY_CYCLE)


def run(interval_seconds: int = settings.TRIGGER_INTERVAL_SECONDS) -> None:
    """Call the triggers forever, sleeping `interval_seconds` between cycles."""
    tz = pytz.timezone(settings.TIMEZONE)
    last_daily_run: Optional[date] = None
    logger.info("Starting trigger runner every %d seconds.", interval_seconds)
    while True:
        today = datetime.now(tz).date()
        triggers = due_triggers(today, last_daily_run)
        for name in triggers:
            call_trigger(name)
        if any(name in DAILY for name in triggers):
            last_daily_run = today
        time.sleep(interval_seconds)


if __name__ == "__main__":
    run()
