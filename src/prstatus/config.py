import os
import dotenv
import logging

dotenv.load_dotenv()

APPLICATION_KEY = "github-pr-status"

OVERRIDE_LOGGING = logging.getLevelName(os.environ.get("OVERRIDE_LOGGING", "WARNING"))

POLL_INTERVAL = int(os.environ.get("POLL_INTERVAL", 300))

NOTIFICATION_FILTERS = [
    reason.strip()
    for reason in os.environ.get(
        "NOTIFICATION_FILTERS", "review_requested,mention"
    ).split(",")
    if reason.strip() != ""
]

TOKEN_ENV_VAR = os.environ.get("TOKEN_ENV_VAR", "GITHUB_TOKEN")

GITHUB_GRAPHQL_URL = os.environ.get(
    "GITHUB_GRAPHQL_URL", "https://api.github.com/graphql"
)
GITHUB_NOTIFICATIONS_URL = os.environ.get(
    "GITHUB_NOTIFICATIONS_URL", "https://api.github.com/notifications"
)

USER_AGENT = os.environ.get("USER_AGENT", "prstatus")

TELEGRAM_TOKEN = os.environ.get("TELEGRAM_TOKEN")
TELEGRAM_CHAT_ID = os.environ.get("TELEGRAM_CHAT_ID")

WEB_HOST = os.environ.get("WEB_HOST", "127.0.0.1")
WEB_PORT = int(os.environ.get("WEB_PORT", 8080))
