#!/usr/bin/env python3
"""
Configuration Manager for Contract Activity Watch

Supports multiple monitor profiles with:
1. Environment variable substitution (${VAR} patterns)
2. Environment variable overrides for secrets and watch lists
3. Configuration validation
4. Environment-only operation when no config.json is present
"""

import os
import json
import re
import logging
from typing import Dict, Any, List, Optional
from pathlib import Path

logger = logging.getLogger(__name__)

# load environment variables from .env file
try:
    from dotenv import load_dotenv
    # look for .env file in the repository root
    env_path = Path(__file__).parent.parent / '.env'
    load_dotenv(env_path)
except ImportError:
    print("Warning: python-dotenv not installed. Install with: pip install python-dotenv")
except Exception as e:
    print(f"Warning: Could not load .env file: {e}")

DEFAULT_RPC_URL = 'https://api.avax.network/ext/bc/C/rpc'
DEFAULT_NETWORK_NAME = 'Avalanche C-Chain'
DEFAULT_CURRENCY_SYMBOL = 'AVAX'
DEFAULT_EXPLORER_TX_URL = 'https://snowtrace.io/tx/'
DEFAULT_WATCH_ADDRESSES = ['0x4dc1ce9b9f9EF00c144BfAD305f16c62293dC0E8']

ADDRESS_PATTERN = re.compile(r'^0x[0-9a-fA-F]{40}$')


def _first_env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value is not None and value.strip() != '':
            return value.strip()
    return None


def _is_http_url(s: str) -> bool:
    return isinstance(s, str) and s.startswith(('http://', 'https://'))


class ConfigManager:
    """Configuration manager supporting multiple monitor profiles"""

    def __init__(self, config_file: Optional[str] = None, config_name_override: Optional[str] = None):
        self.config_file = config_file or "config.json"
        self._config_data = None
        self._active_config_name = None
        self._active_config = None
        self._config_name_override = config_name_override
        self._load_config()
        self._load_active_config()

    def _load_config(self):
        """Load configuration from JSON file"""
        config_path = Path(__file__).parent.parent / self.config_file

        if not config_path.exists():
            logger.debug(f"Config file {config_path} not found, using environment variables only")
            self._config_data = {}
            return

        try:
            with open(config_path, 'r') as f:
                content = f.read()
                # substitute environment variables
                content = self._substitute_env_vars(content)
                self._config_data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file {config_path}: {e}")

    def _substitute_env_vars(self, content: str) -> str:
        """Substitute ${VAR} patterns with environment variables"""
        def replace_var(match):
            var_name = match.group(1)
            env_value = os.getenv(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable {var_name} is not set")
            return env_value

        # pattern to match ${VAR_NAME}
        pattern = r'\$\{([A-Z_][A-Z0-9_]*)\}'
        return re.sub(pattern, replace_var, content)

    def _load_active_config(self):
        """Load the active configuration based on override, ACTIVE_CONFIG env var, or default"""
        if self._config_name_override:
            self._active_config_name = self._config_name_override
        else:
            self._active_config_name = os.getenv('ACTIVE_CONFIG')

        configs = self.get_available_configs()

        if not self._active_config_name:
            if configs:
                self._active_config_name = list(configs.keys())[0]
                logger.debug(f"ACTIVE_CONFIG not set, using first available config: {self._active_config_name}")
            else:
                # environment-only mode
                self._active_config_name = 'environment'
                self._active_config = {}
                return

        if self._active_config_name not in configs:
            available = list(configs.keys())
            raise ValueError(f"Active config '{self._active_config_name}' not found. Available: {available}")

        self._active_config = configs[self._active_config_name]

    def get_available_configs(self) -> Dict[str, Any]:
        """Get all available configurations"""
        return self._config_data.get("configs", {})

    def get_active_config_name(self) -> str:
        """Get the name of the active configuration"""
        return self._active_config_name

    def list_configs(self) -> Dict[str, str]:
        """List all available configurations with display names"""
        configs = {}
        for name, config in self.get_available_configs().items():
            configs[name] = config.get('display_name', name)
        return configs

    def validate_config(self, config_name: Optional[str] = None) -> Dict[str, Any]:
        """Validate a configuration and return validation results"""
        name = config_name or self._active_config_name
        if config_name and config_name != self._active_config_name:
            if config_name not in self.get_available_configs():
                return {"valid": False, "errors": ["Configuration not found"], "warnings": [], "config_name": name}
            target = ConfigManager(self.config_file, config_name_override=config_name)
        else:
            target = self

        errors = target.validate_monitoring_settings()
        warnings = []

        if not (target.get_email_settings() or target.get_telegram_settings() or target.get_discord_webhook_url()):
            errors.append("No notification method configured (EMAIL_*, TELEGRAM_* or DISCORD_WEBHOOK_URL)")

        webhook = target.get_discord_webhook_url()
        if webhook and not webhook.startswith('https://discord.com/api/webhooks/'):
            warnings.append("discord_webhook_url should be a Discord webhook URL")

        return {
            "valid": len(errors) == 0,
            "errors": errors,
            "warnings": warnings,
            "config_name": name
        }

    def validate_monitoring_settings(self) -> List[str]:
        """Check watch addresses, RPC URLs and scan tunables; returns error messages"""
        errors = []

        addresses = self.get_watch_addresses()
        if not addresses:
            errors.append("No watch addresses configured (WATCH_ADDRESSES or watch_addresses)")
        for address in addresses:
            if not ADDRESS_PATTERN.match(address):
                errors.append(f"Invalid watch address: {address}")

        try:
            urls = self.get_evm_rpc_urls()
            if not all(_is_http_url(u) for u in urls):
                errors.append("evm_rpc_urls must be a non-empty list of HTTP/HTTPS URLs")
        except ValueError as e:
            errors.append(str(e))

        numeric_settings = {
            'poll_interval': self.get_poll_interval,
            'max_blocks_per_cycle': self.get_max_blocks_per_cycle,
            'block_batch_size': self.get_block_batch_size,
            'receipt_workers': self.get_receipt_workers,
        }
        for setting, getter in numeric_settings.items():
            try:
                if getter() < 1:
                    errors.append(f"{setting} must be a positive integer")
            except (TypeError, ValueError):
                errors.append(f"{setting} must be a positive integer")

        try:
            if self.get_catchup_delay() < 0:
                errors.append("catchup_delay must not be negative")
        except (TypeError, ValueError):
            errors.append("catchup_delay must be a number")

        return errors

    # configuration getters using active config

    def get_display_name(self) -> str:
        """Get display name for active configuration"""
        return self._active_config.get('display_name', self._active_config_name)

    def get_network_name(self) -> str:
        return self._active_config.get('network_name', DEFAULT_NETWORK_NAME)

    def get_currency_symbol(self) -> str:
        return self._active_config.get('currency_symbol', DEFAULT_CURRENCY_SYMBOL)

    def get_explorer_tx_url(self) -> str:
        return self._active_config.get('explorer_tx_url', DEFAULT_EXPLORER_TX_URL)

    def get_evm_rpc_urls(self) -> List[str]:
        """Get list of EVM RPC URLs in preference order"""
        env_url = _first_env('EVM_RPC_URL', 'AVALANCHE_RPC_URL')
        if env_url:
            return [u.strip() for u in env_url.split(',') if u.strip()]
        urls = self._active_config.get('evm_rpc_urls')
        if isinstance(urls, list) and urls:
            return urls
        url = self._active_config.get('evm_rpc_url')
        if isinstance(url, str) and url:
            return [url]
        if not self._active_config:
            return [DEFAULT_RPC_URL]
        raise ValueError("No EVM RPC URL(s) configured")

    def get_evm_rpc_url(self) -> str:
        """Get EVM RPC URL (primary)"""
        return self.get_evm_rpc_urls()[0]

    def get_rpc_preference_reset_minutes(self) -> int:
        """Get preference reset interval (minutes) for RPC selection (default 60)"""
        try:
            return int(self._active_config.get('rpc_preference_reset_minutes', 60))
        except (TypeError, ValueError):
            return 60

    def get_watch_addresses(self) -> List[str]:
        """Get watch addresses in configured order"""
        env_value = _first_env('WATCH_ADDRESSES', 'CONTRACT_ADDRESSES', 'CONTRACT_ADDRESS')
        if env_value:
            return [a.strip() for a in env_value.split(',') if a.strip()]
        addresses = self._active_config.get('watch_addresses')
        if isinstance(addresses, str):
            return [a.strip() for a in addresses.split(',') if a.strip()]
        if isinstance(addresses, list):
            return [str(a).strip() for a in addresses if str(a).strip()]
        return list(DEFAULT_WATCH_ADDRESSES)

    # notification channel settings; each returns None unless complete

    def _notifications(self) -> Dict[str, Any]:
        return self._active_config.get('notifications', {}) or {}

    def get_email_settings(self) -> Optional[Dict[str, Any]]:
        email = self._notifications().get('email', {}) or {}
        settings = {
            'sender': _first_env('EMAIL_FROM') or email.get('from'),
            'recipient': _first_env('EMAIL_TO') or email.get('to'),
            'smtp_host': _first_env('EMAIL_SMTP_HOST') or email.get('smtp_host'),
            'smtp_port': _first_env('EMAIL_SMTP_PORT') or email.get('smtp_port', 587),
            'smtp_user': _first_env('EMAIL_SMTP_USER') or email.get('smtp_user'),
            'smtp_password': _first_env('EMAIL_SMTP_PASSWORD') or email.get('smtp_password'),
        }
        required = ('sender', 'recipient', 'smtp_host', 'smtp_user', 'smtp_password')
        if not all(settings[key] for key in required):
            return None
        settings['smtp_port'] = int(settings['smtp_port'])
        return settings

    def get_telegram_settings(self) -> Optional[Dict[str, str]]:
        telegram = self._notifications().get('telegram', {}) or {}
        bot_token = _first_env('TELEGRAM_BOT_TOKEN') or telegram.get('bot_token')
        chat_id = _first_env('TELEGRAM_CHAT_ID') or telegram.get('chat_id')
        if not bot_token or not chat_id:
            return None
        return {'bot_token': bot_token, 'chat_id': str(chat_id)}

    def get_discord_webhook_url(self) -> Optional[str]:
        webhook = _first_env('DISCORD_WEBHOOK_URL') or self._notifications().get('discord_webhook_url')
        if webhook and webhook != "N/A":
            return webhook
        return None

    # defaults and monitoring config

    def get_defaults(self) -> Dict[str, Any]:
        """Get default values"""
        return self._config_data.get("defaults", {})

    def get_monitoring_config(self) -> Dict[str, Any]:
        """Get monitoring configuration"""
        return self._config_data.get("monitoring", {})

    def get_poll_interval(self) -> int:
        """Get poll interval in seconds"""
        env_value = _first_env('POLL_INTERVAL')
        if env_value:
            return int(env_value)
        return int(self.get_defaults().get('poll_interval', 60))

    def get_max_blocks_per_cycle(self) -> int:
        """Get the per-cycle block cap"""
        return int(self.get_monitoring_config().get('max_blocks_per_cycle', 100))

    def get_block_batch_size(self) -> int:
        """Get number of blocks fetched concurrently"""
        return int(self.get_monitoring_config().get('block_batch_size', 10))

    def get_catchup_delay(self) -> float:
        """Get delay in seconds before a catch-up cycle"""
        return float(self.get_monitoring_config().get('catchup_delay', 1))

    def get_receipt_workers(self) -> int:
        """Get max concurrent receipt lookups"""
        return int(self.get_monitoring_config().get('receipt_workers', 20))
