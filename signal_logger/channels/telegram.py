"""
telegram.py — Telegram Bot API channel.

Delivery mechanism:
    • POST {api_url}/bot{token}/sendMessage with parse_mode=MarkdownV2
    • One message per delivery; labels, error and context become rows
    • bot_token / chat_id can be overridden per call through
      providers={"telegram": {"bot_token": ..., "chat_id": ...}}

Missing credentials raise ValueError and non-2xx responses raise
httpx.HTTPStatusError; the engine records both as failed outcomes.
"""

from __future__ import annotations

import json
import logging
import re
import traceback
from typing import Any, Dict, List, Optional

import httpx

from signal_logger.core.config import settings
from signal_logger.engine.models import LogLabel, Severity
from signal_logger.utils.pluralization import describe_duplicates

logger = logging.getLogger(__name__)

_MARKDOWN_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")

SYMBOLS = {
    Severity.DEBUG:   "🐞",
    Severity.LOG:     "",
    Severity.INFO:    "ℹ️",
    Severity.WARN:    "⚠️",
    Severity.ERROR:   "❗️",
    Severity.SUCCESS: "✅",
}

DEFAULT_TITLES = {
    Severity.DEBUG:   "Debug",
    Severity.INFO:    "Information",
    Severity.WARN:    "Warning",
    Severity.ERROR:   "An error occurred",
    Severity.SUCCESS: "Success",
}


def escape_markdown(text: str) -> str:
    """Escape MarkdownV2 special characters."""
    return _MARKDOWN_SPECIAL.sub(r"\\\1", text)


def _code_escape(text: str) -> str:
    # Inside pre/code entities only ` and \ must be escaped
    return text.replace("\\", "\\\\").replace("`", "\\`")


def _stringify(value: Any) -> str:
    if isinstance(value, BaseException):
        return "".join(
            traceback.format_exception(type(value), value, value.__traceback__)
        ).rstrip()
    return json.dumps(value, indent=2, default=str, ensure_ascii=False)


class TelegramChannel:
    """Sends deliveries to a Telegram chat through a bot."""

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        *,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        enabled: Optional[bool] = None,
    ):
        self.enabled = enabled
        self._bot_token = bot_token or settings.TELEGRAM_BOT_TOKEN
        self._chat_id = chat_id or settings.TELEGRAM_CHAT_ID
        self._api_url = (api_url or settings.TELEGRAM_API_URL).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self._http_client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._owns_client and self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    # ── Severity operations ──

    async def debug(self, delivery: Dict[str, Any]) -> None:
        await self._deliver(Severity.DEBUG, delivery)

    async def log(self, delivery: Dict[str, Any]) -> None:
        await self._deliver(Severity.LOG, delivery)

    async def info(self, delivery: Dict[str, Any]) -> None:
        await self._deliver(Severity.INFO, delivery)

    async def warn(self, delivery: Dict[str, Any]) -> None:
        await self._deliver(Severity.WARN, delivery)

    async def error(self, delivery: Dict[str, Any]) -> None:
        await self._deliver(Severity.ERROR, delivery)

    async def success(self, delivery: Dict[str, Any]) -> None:
        await self._deliver(Severity.SUCCESS, delivery)

    # ── Rendering ──

    def render(self, kind: Severity, delivery: Dict[str, Any]) -> str:
        """Build the MarkdownV2 text for one delivery."""
        template = delivery.get("template")
        symbol = SYMBOLS.get(kind, "")
        rows: List[Optional[str]] = []

        duplicates = describe_duplicates(delivery.get("number_of_calls"))
        if duplicates:
            rows.append(f"_{escape_markdown(duplicates)}_\n")

        if template is None:
            body = " ".join(
                m if isinstance(m, str) else _stringify(m)
                for m in delivery.get("messages", [])
            )
            rows.append(" ".join(p for p in (symbol, escape_markdown(body)) if p))
            rows.extend(self._label_rows(delivery.get("labels") or []))
            return "\n".join(r for r in rows if r)

        title = template.get("title") or DEFAULT_TITLES.get(kind)
        if title:
            rows.append(
                " ".join(p for p in (symbol, f"*{escape_markdown(str(title))}*") if p)
                + "\n"
            )
        for key in ("text", "description"):
            if template.get(key):
                rows.append(escape_markdown(str(template[key])) + "\n")

        rows.extend(self._label_rows(template.get("labels") or []))

        if template.get("error") is not None:
            rows.append("\n" + self._json_row("Error", template["error"]))
        if template.get("context"):
            rows.append(self._json_row("Context", template["context"]))

        return "\n".join(r for r in rows if r)

    def _label_rows(self, labels: List[Any]) -> List[str]:
        rows = []
        for raw in labels:
            label = LogLabel.coerce(raw)
            rows.append(
                f"*{escape_markdown(str(label.name))}:* "
                f"`{_code_escape(str(label.value))}`"
            )
        return rows

    def _json_row(self, title: str, value: Any) -> str:
        return "\n".join([
            f"*{escape_markdown(title)}:*",
            "```json",
            _code_escape(_stringify(value)),
            "```",
        ])

    # ── Transport ──

    async def _deliver(self, kind: Severity, delivery: Dict[str, Any]) -> None:
        await self.send_message(
            self.render(kind, delivery),
            bot_token=delivery.get("bot_token"),
            chat_id=delivery.get("chat_id"),
        )

    async def send_message(
        self,
        text: str,
        *,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """POST one MarkdownV2 message; return the Bot API response body."""
        token = bot_token or self._bot_token
        chat = chat_id or self._chat_id

        if not token:
            raise ValueError("Telegram bot token is not defined")
        if not chat:
            raise ValueError("Telegram chat id is not defined")

        client = await self._get_client()
        response = await client.post(
            f"{self._api_url}/bot{token}/sendMessage",
            json={"chat_id": chat, "parse_mode": "MarkdownV2", "text": text},
        )
        response.raise_for_status()

        logger.debug("Telegram message sent to chat %s", chat)
        return response.json()
