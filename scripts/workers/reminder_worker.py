#!/usr/bin/env python3
"""
Reminder worker: one pass of booking reminders and review requests.

Meant for cron or a scheduled machine when the API runs with
REMINDERS_ENABLED=false. Prints the run summary as JSON.

Environment:
  - SQLALCHEMY_DATABASE_URL (from app config)
  - SMTP_* / TWILIO_* for outgoing email and SMS
  - REMINDER_WORKER_LOOP=1 to keep running every REMINDER_INTERVAL_SECONDS

Exit codes: 0 when every due reminder went out, 1 when the run crashed,
2 when some reminders could not be sent.
"""
from __future__ import annotations

import json
import logging
import os
import sys
import time

from app.core.config import settings
from app.core.observability import setup_logging
from app.database import engine
from app.db_utils import ensure_notification_schema
from app.utils.notifications import alert_scheduler_failure, run_reminder_maintenance_once

logger = logging.getLogger("reminder_worker")


def run_once() -> int:
    try:
        summary = run_reminder_maintenance_once()
    except Exception as exc:
        alert_scheduler_failure(exc)
        return 1
    print(json.dumps(summary, default=str))
    return 0 if summary.get("failed", 0) == 0 else 2


def main() -> int:
    setup_logging()
    ensure_notification_schema(engine)
    if os.getenv("REMINDER_WORKER_LOOP") != "1":
        return run_once()
    interval = max(30, settings.REMINDER_INTERVAL_SECONDS)
    logger.info("Reminder worker looping every %ss", interval)
    while True:
        run_once()
        time.sleep(interval)


if __name__ == "__main__":
    sys.exit(main())
