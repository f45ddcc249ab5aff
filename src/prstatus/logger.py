import logging

import notifiers.logging

from prstatus import config


def get_log_handlers(logger):
    if config.TELEGRAM_TOKEN is None:
        return []
    handler = notifiers.logging.NotificationHandler(
        "telegram",
        defaults={
            "token": config.TELEGRAM_TOKEN,
            "chat_id": config.TELEGRAM_CHAT_ID,
        },
    )
    handler.setLevel(logging.WARNING)
    logger.addHandler(handler)
    return [handler]


def configure_logging(level=None) -> logging.Logger:
    logging.basicConfig(
        format="%(asctime)s %(name)s %(levelname)s - %(message)s", level=logging.INFO
    )
    level = config.OVERRIDE_LOGGING if level is None else level
    logging.getLogger().setLevel(level)
    logger = logging.getLogger("prstatus")
    logger.setLevel(level)
    get_log_handlers(logger)
    return logger
