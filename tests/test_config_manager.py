import json

import pytest

from config_manager import (
    DEFAULT_RPC_URL,
    DEFAULT_WATCH_ADDRESSES,
    ConfigManager,
)
from fakes import ADDR_A, ADDR_B


def write_config(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    return str(path)


PROFILE_CONFIG = {
    "configs": {
        "mainnet": {
            "display_name": "Mainnet",
            "evm_rpc_urls": ["https://rpc-1.example", "https://rpc-2.example"],
            "watch_addresses": [ADDR_A],
            "notifications": {
                "telegram": {"bot_token": "${TEST_BOT_TOKEN}", "chat_id": "42"},
            },
        },
        "testnet": {
            "evm_rpc_url": "https://testnet.example",
            "watch_addresses": f"{ADDR_B},{ADDR_A}",
            "network_name": "Fuji",
        },
    },
    "defaults": {"poll_interval": 30},
    "monitoring": {"max_blocks_per_cycle": 50, "block_batch_size": 5, "catchup_delay": 2},
}


class TestEnvironmentOnly:

    def test_defaults_without_config_file(self, tmp_path):
        manager = ConfigManager(config_file=str(tmp_path / "missing.json"))

        assert manager.get_active_config_name() == "environment"
        assert manager.get_evm_rpc_urls() == [DEFAULT_RPC_URL]
        assert manager.get_watch_addresses() == DEFAULT_WATCH_ADDRESSES
        assert manager.get_poll_interval() == 60
        assert manager.get_max_blocks_per_cycle() == 100
        assert manager.get_block_batch_size() == 10
        assert manager.get_catchup_delay() == 1
        assert manager.get_network_name() == "Avalanche C-Chain"
        assert manager.get_currency_symbol() == "AVAX"

    def test_environment_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CONTRACT_ADDRESSES", f" {ADDR_A} , {ADDR_B}")
        monkeypatch.setenv("AVALANCHE_RPC_URL", "https://custom.example")
        monkeypatch.setenv("POLL_INTERVAL", "15")
        manager = ConfigManager(config_file=str(tmp_path / "missing.json"))

        assert manager.get_watch_addresses() == [ADDR_A, ADDR_B]
        assert manager.get_evm_rpc_url() == "https://custom.example"
        assert manager.get_poll_interval() == 15

    def test_watch_addresses_take_precedence_over_legacy_names(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WATCH_ADDRESSES", ADDR_B)
        monkeypatch.setenv("CONTRACT_ADDRESS", ADDR_A)
        manager = ConfigManager(config_file=str(tmp_path / "missing.json"))

        assert manager.get_watch_addresses() == [ADDR_B]

    def test_email_requires_all_fields(self, tmp_path, monkeypatch):
        manager = ConfigManager(config_file=str(tmp_path / "missing.json"))
        monkeypatch.setenv("EMAIL_FROM", "bot@example.com")
        monkeypatch.setenv("EMAIL_TO", "ops@example.com")
        monkeypatch.setenv("EMAIL_SMTP_HOST", "smtp.example.com")
        monkeypatch.setenv("EMAIL_SMTP_USER", "bot")

        assert manager.get_email_settings() is None

        monkeypatch.setenv("EMAIL_SMTP_PASSWORD", "pw")
        settings = manager.get_email_settings()
        assert settings["smtp_port"] == 587
        assert settings["recipient"] == "ops@example.com"

    def test_validation_requires_a_notification_channel(self, tmp_path, monkeypatch):
        manager = ConfigManager(config_file=str(tmp_path / "missing.json"))

        validation = manager.validate_config()
        assert validation["valid"] is False
        assert any("notification" in error for error in validation["errors"])

        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
        monkeypatch.setenv("TELEGRAM_CHAT_ID", "99")
        assert manager.validate_config()["valid"] is True

    def test_validation_rejects_malformed_addresses(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WATCH_ADDRESSES", "0x1234,not-an-address")
        monkeypatch.setenv("DISCORD_WEBHOOK_URL", "https://example.com/hook")
        manager = ConfigManager(config_file=str(tmp_path / "missing.json"))

        validation = manager.validate_config()

        assert validation["valid"] is False
        assert len([e for e in validation["errors"] if e.startswith("Invalid watch address")]) == 2
        assert validation["warnings"] == ["discord_webhook_url should be a Discord webhook URL"]

    def test_monitoring_settings_are_checked_without_channels(self, tmp_path, monkeypatch):
        manager = ConfigManager(config_file=str(tmp_path / "missing.json"))
        assert manager.validate_monitoring_settings() == []

        monkeypatch.setenv("WATCH_ADDRESSES", "0xdeadbeef")
        monkeypatch.setenv("POLL_INTERVAL", "0")

        assert manager.validate_monitoring_settings() == [
            "Invalid watch address: 0xdeadbeef",
            "poll_interval must be a positive integer",
        ]


class TestProfiles:

    def test_first_profile_is_default_and_env_vars_are_substituted(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_BOT_TOKEN", "999:token")
        manager = ConfigManager(config_file=write_config(tmp_path, PROFILE_CONFIG))

        assert manager.get_active_config_name() == "mainnet"
        assert manager.get_display_name() == "Mainnet"
        assert manager.get_evm_rpc_urls() == ["https://rpc-1.example", "https://rpc-2.example"]
        assert manager.get_watch_addresses() == [ADDR_A]
        assert manager.get_telegram_settings() == {"bot_token": "999:token", "chat_id": "42"}
        assert manager.get_poll_interval() == 30
        assert manager.get_max_blocks_per_cycle() == 50
        assert manager.get_block_batch_size() == 5
        assert manager.get_catchup_delay() == 2

    def test_profile_selected_by_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_BOT_TOKEN", "999:token")
        manager = ConfigManager(config_file=write_config(tmp_path, PROFILE_CONFIG), config_name_override="testnet")

        assert manager.get_evm_rpc_urls() == ["https://testnet.example"]
        assert manager.get_watch_addresses() == [ADDR_B, ADDR_A]
        assert manager.get_network_name() == "Fuji"
        assert manager.get_telegram_settings() is None

    def test_profile_selected_by_active_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_BOT_TOKEN", "999:token")
        monkeypatch.setenv("ACTIVE_CONFIG", "testnet")
        manager = ConfigManager(config_file=write_config(tmp_path, PROFILE_CONFIG))

        assert manager.get_active_config_name() == "testnet"
        assert manager.list_configs() == {"mainnet": "Mainnet", "testnet": "testnet"}

    def test_unknown_profile(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_BOT_TOKEN", "999:token")

        with pytest.raises(ValueError, match="not found"):
            ConfigManager(config_file=write_config(tmp_path, PROFILE_CONFIG), config_name_override="nope")

    def test_unset_substitution_variable(self, tmp_path):
        with pytest.raises(ValueError, match="TEST_BOT_TOKEN"):
            ConfigManager(config_file=write_config(tmp_path, PROFILE_CONFIG))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")

        with pytest.raises(ValueError, match="Invalid JSON"):
            ConfigManager(config_file=str(path))

    def test_validate_other_profile(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_BOT_TOKEN", "999:token")
        manager = ConfigManager(config_file=write_config(tmp_path, PROFILE_CONFIG))

        assert manager.validate_config()["valid"] is True
        other = manager.validate_config("testnet")
        assert other["valid"] is False
        assert other["config_name"] == "testnet"
        assert manager.validate_config("missing")["errors"] == ["Configuration not found"]
