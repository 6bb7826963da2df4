import os
import sys
from pathlib import Path

import pytest

# modules live flat under src/
SRC_DIR = Path(__file__).resolve().parent.parent / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

CONFIG_ENV_VARS = [
    "ACTIVE_CONFIG",
    "EVM_RPC_URL",
    "AVALANCHE_RPC_URL",
    "WATCH_ADDRESSES",
    "CONTRACT_ADDRESSES",
    "CONTRACT_ADDRESS",
    "POLL_INTERVAL",
    "EMAIL_FROM",
    "EMAIL_TO",
    "EMAIL_SMTP_HOST",
    "EMAIL_SMTP_PORT",
    "EMAIL_SMTP_USER",
    "EMAIL_SMTP_PASSWORD",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
    "DISCORD_WEBHOOK_URL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's .env and shell settings out of the tests"""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
