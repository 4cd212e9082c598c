# coffee_stand/config.py
import os
from dotenv import load_dotenv

load_dotenv()

# Spreadsheet
GOOGLE_SHEET_ID = os.getenv("GOOGLE_SHEET_ID")
GOOGLE_SHEET_NAME = os.getenv("GOOGLE_SHEET_NAME")  # products worksheet, title only
GOOGLE_USERS_SHEET_NAME = os.getenv("GOOGLE_USERS_SHEET_NAME", "users")
GOOGLE_HISTORY_SHEET_NAME = os.getenv("GOOGLE_HISTORY_SHEET_NAME", "history")
GOOGLE_SERVICE_ACCOUNT_EMAIL = os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL")
GOOGLE_PRIVATE_KEY = os.getenv("GOOGLE_PRIVATE_KEY")
GOOGLE_SHEETS_API_KEY = os.getenv("GOOGLE_SHEETS_API_KEY")

# Session
SESSION_PASSWORD = os.getenv("SESSION_PASSWORD") or os.getenv("FLASK_SECRET_KEY", "dev-key")
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "coffee-app-session")
SESSION_MAX_AGE_DAYS = int(os.getenv("SESSION_MAX_AGE_DAYS", "7"))
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "0") == "1"
MIN_SESSION_PASSWORD_LENGTH = 32

SITE_NAME = os.getenv("SITE_NAME", "Coffee Stand")
CURRENCY = os.getenv("CURRENCY", "RUB")

# Notifications
SLACK_WEBHOOK_URL = os.getenv("SLACK_WEBHOOK_URL")
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
ALERT_EMAIL_TO = os.getenv("ALERT_EMAIL_TO")

LOG_FILE = os.getenv("LOG_FILE", "app.log")
PORT = int(os.getenv("PORT", "3000"))


def private_key():
    # keys pasted into .env usually carry literal "\n" sequences
    if not GOOGLE_PRIVATE_KEY:
        return None
    return GOOGLE_PRIVATE_KEY.replace("\\n", "\n")


def service_account_configured() -> bool:
    return bool(GOOGLE_SERVICE_ACCOUNT_EMAIL and private_key())


def sheets_configured() -> bool:
    return bool(GOOGLE_SHEET_ID and GOOGLE_SHEET_NAME)
