import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./subscriptions.db")
    API_PREFIX = data.get("API_PREFIX", "/api/v1")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")

    # Payment gateway (Razorpay)
    RAZORPAY_KEY_ID = data.get("RAZORPAY_KEY_ID", "")
    RAZORPAY_KEY_SECRET = data.get("RAZORPAY_KEY_SECRET", "")
    RAZORPAY_WEBHOOK_SECRET = data.get("RAZORPAY_WEBHOOK_SECRET", "")
    RAZORPAY_API_URL = data.get("RAZORPAY_API_URL", "https://api.razorpay.com/v1")
    DEFAULT_CURRENCY = data.get("DEFAULT_CURRENCY", "INR")

    # Notifications
    FRONTEND_URL = data.get("FRONTEND_URL", "http://localhost:3000")
    NOTIFICATION_WEBHOOK_URL = data.get("NOTIFICATION_WEBHOOK_URL", None)
    NOTIFICATION_TIMEOUT_SECONDS = float(data.get("NOTIFICATION_TIMEOUT_SECONDS", 10.0))

    # Reconciliation scheduler
    SCHEDULER_ENABLED = bool(data.get("SCHEDULER_ENABLED", True))
    ARCHIVE_AFTER_DAYS = int(data.get("ARCHIVE_AFTER_DAYS", 30))
    FAILED_PAYMENT_LOOKBACK_DAYS = int(data.get("FAILED_PAYMENT_LOOKBACK_DAYS", 3))
    RENEWAL_REMINDER_DAYS = list(data.get("RENEWAL_REMINDER_DAYS", [7, 3, 1]))
