import logging

import requests

from .config import Credentials
from .constants import APP_NAME, TELEGRAM_API

logger = logging.getLogger(APP_NAME)


class Notifier:
    """Base notification channel. Delivers nothing."""

    def send(self, text: str) -> bool:
        """Delivers a formatted message.

        Args:
            text (str): The message body (HTML subset).

        Returns:
            bool: True if the message was accepted by the channel.
        """
        logger.info("Notification credentials missing. Skipping message.")
        return False


class TelegramNotifier(Notifier):
    """Delivers messages through the Telegram Bot API."""

    def __init__(
        self,
        token: str,
        chat_id: str,
        timeout: int = 10,
        session: requests.Session | None = None,
    ):
        self.token = token
        self.chat_id = chat_id
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, text: str) -> bool:
        """Posts `text` to the configured chat.

        Delivery errors are logged and never raised or retried.
        """
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
            "link_preview_options": {"is_disabled": True},
        }
        try:
            resp = self.session.post(
                f"{TELEGRAM_API}/bot{self.token}/sendMessage",
                json=payload,
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            # Error text may embed the request URL, which carries the token.
            logger.error(
                f"Failed to send notification: {str(e).replace(self.token, '***')}"
            )
            return False

        logger.info("Notification sent.")
        return True


def get_notifier(credentials: Credentials, timeout: int = 10) -> Notifier:
    """Factory returning the channel the credentials allow.

    Args:
        credentials (Credentials): Process credentials.
        timeout (int): Seconds allowed per delivery.

    Returns:
        Notifier: A TelegramNotifier, or the silent base Notifier when the
        bot token or chat id is missing.
    """
    if credentials.can_notify:
        return TelegramNotifier(
            credentials.notify_token, credentials.notify_recipient, timeout=timeout
        )
    return Notifier()
