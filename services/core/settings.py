"""
Family Accord Configuration
Single source of truth for environment-driven settings
"""
import os

# =========================
# Storage
# =========================

DATABASE_URL = os.getenv("DATABASE_URL")

# =========================
# Notifications (fire-and-forget sink)
# =========================

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL")
NOTIFICATION_URL = os.getenv("NOTIFICATION_URL")
NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "5"))

# =========================
# HTTP
# =========================

# Comma-separated
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:8000"
)

# =========================
# Logging
# =========================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("LOG_FILE") or None

# =========================
# Agreements
# =========================

# Agreements whose review date falls within this many days are "upcoming"
REVIEW_WINDOW_DAYS = int(os.getenv("REVIEW_WINDOW_DAYS", "14"))
