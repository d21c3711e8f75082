"""Application settings read from the environment.

Values are resolved once at import time; override them with environment
variables before the application starts.
"""

import os

LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.path.dirname(__file__), "..", "logs"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# How many days ahead the reminder scheduler requests alerts for.
REMINDER_WINDOW_DAYS = int(os.getenv("REMINDER_WINDOW_DAYS", "7"))

# A day counts toward the adherence streak at or above this completion rate.
STREAK_THRESHOLD = float(os.getenv("STREAK_THRESHOLD", "0.8"))
STREAK_LOOKBACK_DAYS = int(os.getenv("STREAK_LOOKBACK_DAYS", "30"))

# Initial authorization state of the in-process notification center.
NOTIFICATIONS_AUTHORIZED = os.getenv("NOTIFICATIONS_AUTHORIZED", "true").lower() in ("1", "true", "yes")
