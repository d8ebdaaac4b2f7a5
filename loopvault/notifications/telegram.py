"""Telegram channel — alerts go to an unmuted bot, logs to a quiet one."""
from __future__ import annotations

import html
import logging
import ssl

import aiohttp
import certifi

from ..config import TelegramConfig

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"


def render_html(message: str, subject: str = "") -> str:
    """Escape ``message`` for HTML parse mode and prepend a bold subject."""
    body = html.escape(message, quote=False)
    if subject:
        return f"<b>{html.escape(subject, quote=False)}</b>\n\n{body}"
    return body


class TelegramNotifier:
    """Posts keeper messages through the Bot API."""

    def __init__(self, config: TelegramConfig) -> None:
        self.alert_bot_token = config.alert_bot_token
        self.log_bot_token = config.log_bot_token
        self.chat_id = config.chat_id

    async def _post(self, text: str, bot_token: str, silent: bool) -> bool:
        if not bot_token or not self.chat_id:
            logger.warning("Telegram bot token or chat id missing, skipping")
            return False

        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_notification": silent,
        }
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(
                f"{API_BASE}/bot{bot_token}/sendMessage", json=payload
            ) as response:
                if response.status != 200:
                    logger.error("Telegram API returned HTTP %s", response.status)
                    return False
                return True

    async def send_alert(self, message: str, subject: str = "") -> bool:
        sent = await self._post(
            render_html(message, subject), self.alert_bot_token, silent=False
        )
        if sent:
            logger.info("Telegram alert delivered")
        return sent

    async def send_log(self, message: str, silent: bool = True) -> bool:
        sent = await self._post(render_html(message), self.log_bot_token, silent)
        if sent:
            logger.debug("Telegram log delivered")
        return sent
