#!/usr/bin/env python3
"""
Notification Sink

Fans each (subject, body) pair out to every configured channel:
- Email over SMTP
- Telegram bot messages
- Discord webhook posts

A failing channel is logged and skipped; delivery never raises to the
scanning engine.
"""

import html
import logging
import smtplib
from email.message import EmailMessage
from typing import List, Optional

import requests

logger = logging.getLogger(__name__)

TELEGRAM_MAX_MESSAGE_LENGTH = 4096
TELEGRAM_MAX_SUBJECT_LENGTH = 256
DISCORD_MAX_CONTENT_LENGTH = 2000
REQUEST_TIMEOUT_S = 10


class NotificationError(Exception):
    """Raised by a channel when a message could not be delivered"""
    pass


TRUNCATION_SUFFIX = "\n... (truncated)"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - len(TRUNCATION_SUFFIX)] + TRUNCATION_SUFFIX


def escape_truncated(text: str, limit: int) -> str:
    """HTML-escape text and cut it to limit characters without splitting an entity"""
    escaped = html.escape(text)
    if len(escaped) <= limit:
        return escaped
    cut = text[:max(0, limit - len(TRUNCATION_SUFFIX))]
    escaped = html.escape(cut)
    # an entity is at most 6 characters, so shrink the raw slice in proportion
    while cut and len(escaped) + len(TRUNCATION_SUFFIX) > limit:
        overflow = len(escaped) + len(TRUNCATION_SUFFIX) - limit
        cut = cut[:len(cut) - max(1, overflow // 6)]
        escaped = html.escape(cut)
    return escaped + TRUNCATION_SUFFIX


class EmailChannel:
    name = "Email"

    def __init__(self, sender: str, recipient: str, smtp_host: str, smtp_port: int,
                 smtp_user: str, smtp_password: str, timeout_s: int = 30):
        self.sender = sender
        self.recipient = recipient
        self.smtp_host = smtp_host
        self.smtp_port = int(smtp_port)
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.timeout_s = timeout_s

    def describe(self) -> str:
        return f"Email ({self.recipient})"

    def build_message(self, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message['Subject'] = subject
        message['From'] = self.sender
        message['To'] = self.recipient
        message.set_content(body)
        message.add_alternative(html.escape(body).replace("\n", "<br>"), subtype='html')
        return message

    def _connect(self) -> smtplib.SMTP:
        # port 465 is implicit TLS, everything else upgrades with STARTTLS
        if self.smtp_port == 465:
            return smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=self.timeout_s)
        server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout_s)
        try:
            server.starttls()
        except Exception:
            server.close()
            raise
        return server

    def send(self, subject: str, body: str):
        message = self.build_message(subject, body)
        try:
            with self._connect() as server:
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"SMTP delivery to {self.recipient} failed: {exc}") from exc
        logger.info(f"Email sent to {self.recipient}")


class TelegramChannel:
    name = "Telegram"

    def __init__(self, bot_token: str, chat_id: str):
        self.bot_token = bot_token
        self.chat_id = chat_id

    def describe(self) -> str:
        return f"Telegram (Chat ID: {self.chat_id})"

    def format_text(self, subject: str, body: str) -> str:
        header = f"<b>{escape_truncated(subject, TELEGRAM_MAX_SUBJECT_LENGTH)}</b>\n\n"
        return header + escape_truncated(body, TELEGRAM_MAX_MESSAGE_LENGTH - len(header))

    def send(self, subject: str, body: str):
        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": self.format_text(subject, body),
            "parse_mode": "HTML",
            "disable_web_page_preview": False,
        }
        # request errors carry the URL, which contains the bot token
        try:
            response = requests.post(url, json=payload, timeout=REQUEST_TIMEOUT_S)
            response.raise_for_status()
        except requests.exceptions.Timeout:
            raise NotificationError("Telegram request timed out") from None
        except requests.exceptions.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else "unknown"
            raise NotificationError(f"Telegram HTTP error: {status_code}") from None
        except requests.exceptions.RequestException:
            raise NotificationError("Telegram request failed") from None

        message_id = None
        try:
            message_id = response.json().get("result", {}).get("message_id")
        except ValueError:
            pass
        logger.info(f"Telegram message sent (message_id: {message_id})")


class DiscordChannel:
    name = "Discord"

    def __init__(self, webhook_url: str, username: Optional[str] = None):
        self.webhook_url = webhook_url
        self.username = username

    def describe(self) -> str:
        return "Discord (webhook)"

    def send(self, subject: str, body: str):
        payload = {"content": truncate(f"**{subject}**\n{body}", DISCORD_MAX_CONTENT_LENGTH)}
        if self.username:
            payload["username"] = self.username
        try:
            response = requests.post(self.webhook_url, json=payload, timeout=REQUEST_TIMEOUT_S)
        except requests.exceptions.RequestException as exc:
            raise NotificationError(f"Discord webhook request failed: {exc.__class__.__name__}") from None
        if response.status_code >= 400:
            raise NotificationError(
                f"Discord webhook returned status {response.status_code}: {response.text[:200]}"
            )
        logger.info("Discord alert sent")


class NotificationSink:
    def __init__(self, channels: Optional[List] = None):
        self.channels = list(channels or [])

    def __len__(self) -> int:
        return len(self.channels)

    def describe(self) -> str:
        return ", ".join(channel.describe() for channel in self.channels) or "none"

    def deliver(self, subject: str, body: str) -> int:
        """Send to every channel; returns how many accepted the message"""
        delivered = 0
        for channel in self.channels:
            try:
                channel.send(subject, body)
                delivered += 1
            except NotificationError as exc:
                logger.error(f"Failed to send {channel.name} notification: {exc}")
            except Exception as exc:
                logger.exception(f"Unexpected error sending {channel.name} notification: {exc}")
        if self.channels and not delivered:
            logger.warning(f"Notification '{subject}' was not delivered to any channel")
        return delivered
