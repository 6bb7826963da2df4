#!/usr/bin/env python3
"""
Contract Monitor - watch an EVM chain for activity on a set of addresses

Polls the chain head, scans new blocks in bounded batches and sends a
notification (Email / Telegram / Discord) for every transaction sent to or
from a watched address.

Usage:
    contractwatch start [--once] [--interval 60]
    contractwatch check-config
    contractwatch probe [--blocks 100]
    contractwatch test-notify
    contractwatch config list|show|validate
"""

import argparse
import logging
import signal
import sys
from typing import Dict, List, Optional

from config_manager import ConfigManager
from batch_fetcher import BatchFetcher
from ledger_client import LedgerClient
from ledger_types import ConfigurationError, ConnectivityError, FetchError
from logger_utils import setup_logging
from matcher import match_results
from messages import format_time_et, format_value
from notifier import DiscordChannel, EmailChannel, NotificationSink, TelegramChannel
from rpc_failover import EVMProviderPool
from scan_scheduler import FAILED, ScanScheduler
from watch_set import WatchSet

logger = logging.getLogger(__name__)

DEFAULT_PROBE_BLOCKS = 100


def build_notification_sink(config_manager: ConfigManager) -> NotificationSink:
    """Create a sink with every fully configured channel"""
    channels = []

    email = config_manager.get_email_settings()
    if email:
        channels.append(EmailChannel(**email))

    telegram = config_manager.get_telegram_settings()
    if telegram:
        channels.append(TelegramChannel(**telegram))

    webhook = config_manager.get_discord_webhook_url()
    if webhook:
        channels.append(DiscordChannel(webhook, username="Contract Monitor"))

    return NotificationSink(channels)


class ContractMonitor:
    def __init__(self, config_manager: ConfigManager, sink: Optional[NotificationSink] = None,
                 ledger_client=None, poll_interval: Optional[int] = None):
        self.config_manager = config_manager

        errors = config_manager.validate_monitoring_settings()
        if poll_interval is not None and poll_interval < 1:
            errors.append("poll interval must be a positive integer")
        if errors:
            raise ConfigurationError("Invalid configuration: " + "; ".join(errors))

        self.watch_set = WatchSet(config_manager.get_watch_addresses())
        self.sink = sink if sink is not None else build_notification_sink(config_manager)

        if ledger_client is None:
            pool = EVMProviderPool(
                config_manager.get_evm_rpc_urls(),
                request_timeout_s=15,
                preference_reset_minutes=config_manager.get_rpc_preference_reset_minutes(),
            )
            ledger_client = LedgerClient(pool)
        self.ledger_client = ledger_client

        self.poll_interval = poll_interval if poll_interval is not None else config_manager.get_poll_interval()

        self.scheduler = ScanScheduler(
            ledger_client=self.ledger_client,
            watch_set=self.watch_set,
            sink=self.sink,
            network_name=config_manager.get_network_name(),
            currency_symbol=config_manager.get_currency_symbol(),
            explorer_tx_url=config_manager.get_explorer_tx_url(),
            poll_interval=self.poll_interval,
            max_blocks_per_cycle=config_manager.get_max_blocks_per_cycle(),
            block_batch_size=config_manager.get_block_batch_size(),
            catchup_delay=config_manager.get_catchup_delay(),
            receipt_workers=config_manager.get_receipt_workers(),
        )

    def require_channels(self):
        if not len(self.sink):
            raise ConfigurationError(
                "No notification method configured. Configure Email (EMAIL_*), "
                "Telegram (TELEGRAM_*) or Discord (DISCORD_WEBHOOK_URL)"
            )

    def _signal_handler(self, signum, frame):
        """Stop immediately; an in-flight cycle is abandoned"""
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        self.scheduler.stop()
        sys.exit(0)

    def install_signal_handlers(self):
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def log_banner(self):
        logger.info("=== Smart Contract Monitor Started ===")
        logger.info(f"Monitoring {len(self.watch_set)} contract(s):")
        for idx, address in enumerate(self.watch_set, 1):
            logger.info(f"  {idx}. {address}")
        logger.info(f"Network: {self.config_manager.get_network_name()}")
        logger.info(f"RPC URL: {self.config_manager.get_evm_rpc_url()}")
        logger.info(f"Poll interval: {self.poll_interval} seconds")
        logger.info(
            f"Blocks per cycle: {self.scheduler.max_blocks_per_cycle} "
            f"(batches of {self.scheduler.fetcher.batch_width})"
        )
        logger.info(f"Notifications: {self.sink.describe()}")
        logger.info("=" * 37)

    def run_continuous(self):
        self.require_channels()
        self.install_signal_handlers()
        self.log_banner()
        self.scheduler.run_forever()

    def run_once(self) -> bool:
        """Run a single cycle; returns False if the cycle failed"""
        self.require_channels()
        self.log_banner()
        result = self.scheduler.run_cycle()
        return result.status != FAILED

    def send_test_notification(self) -> int:
        self.require_channels()
        return self.sink.deliver(
            "Contract Monitor Test",
            f"Test notification for {len(self.watch_set)} watched contract(s) on "
            f"{self.config_manager.get_network_name()}\nSent at: {format_time_et()}",
        )

    def probe(self, blocks: int = DEFAULT_PROBE_BLOCKS) -> Dict[str, List]:
        """Check connectivity and scan recent blocks without notifying"""
        head = self.ledger_client.current_height()
        print("✓ Connected successfully")
        print(f"  Current block: {head}")
        try:
            print(f"  Chain ID: {self.ledger_client.chain_id()}")
        except ConnectivityError as e:
            print(f"  ⚠ Could not read chain ID: {e}")

        print(f"\nChecking {len(self.watch_set)} contract(s)...")
        for idx, address in enumerate(self.watch_set, 1):
            try:
                size = self.ledger_client.code_size(address)
            except FetchError as e:
                print(f"⚠ Could not fetch code for {address}: {e}")
                continue
            if size == 0:
                print(f"⚠ Warning: No contract code found at {address}")
                print("  This might be a regular address or the contract might not exist")
            else:
                print(f"✓ Contract {idx}: {address}")
                print(f"  Contract code size: {size} bytes")

        start = max(0, head - max(1, blocks) + 1)
        print(f"\nScanning last {head - start + 1} blocks for activity on monitored contracts...")
        fetcher = BatchFetcher(self.ledger_client, self.scheduler.fetcher.batch_width)
        events = match_results(fetcher.iter_range(start, head), self.watch_set)

        activity: Dict[str, List] = {address: [] for address in self.watch_set}
        for event in events:
            activity[event.address].append(event.transaction)

        currency = self.config_manager.get_currency_symbol()
        print("\n=== Activity Summary ===")
        for idx, address in enumerate(self.watch_set, 1):
            transactions = activity[address]
            print(f"\nContract {idx}: {address}")
            print(f"  Transactions found: {len(transactions)}")
            if transactions:
                latest = transactions[-1]
                print(f"  Most recent activity (block {latest.block_number}):")
                print(f"    Tx: {latest.tx_hash}")
                print(f"    From: {latest.sender}")
                print(f"    To: {latest.recipient or 'Contract Creation'}")
                print(f"    Value: {format_value(latest.value, currency)}")

        print(f"\nTotal transactions across all contracts: {len(events)}")
        if not events:
            print(f"\n⚠ No activity found in the last {head - start + 1} blocks on any contract")
        return activity


def check_config(config_manager: ConfigManager) -> bool:
    """Report watch addresses and notification channels; True if monitoring can start"""
    print("=== Configuration Test ===\n")
    print(f"📋 Active Config: {config_manager.get_display_name()}")
    print("✓ Contract Addresses:")
    for idx, address in enumerate(WatchSet(config_manager.get_watch_addresses()), 1):
        print(f"  {idx}. {address}")
    print()

    print("Notification Methods:")
    email = config_manager.get_email_settings()
    if email:
        print("  ✓ Email configured")
        print(f"    From: {email['sender']}")
        print(f"    To: {email['recipient']}")
        print(f"    SMTP: {email['smtp_host']}:{email['smtp_port']}")
    else:
        print("  ✗ Email NOT configured (optional)")

    telegram = config_manager.get_telegram_settings()
    if telegram:
        print("  ✓ Telegram configured")
        print(f"    Chat ID: {telegram['chat_id']}")
        print(f"    Bot Token: {telegram['bot_token'][:10]}...")
    else:
        print("  ✗ Telegram NOT configured (optional)")

    if config_manager.get_discord_webhook_url():
        print("  ✓ Discord webhook configured")
    else:
        print("  ✗ Discord NOT configured (optional)")
    print()

    validation = config_manager.validate_config()
    for warning in validation['warnings']:
        print(f"  ⚠️ {warning}")
    if not validation['valid']:
        for error in validation['errors']:
            print(f"✗ ERROR: {error}")
        return False

    print("✓ Configuration is valid!")
    return True


def handle_config_command(args, config_manager: ConfigManager):
    if args.config_command == 'list':
        logger.info("📋 Available Configurations:")
        configs = config_manager.list_configs()
        active_config = config_manager.get_active_config_name()
        if not configs:
            print("  (no config.json profiles, using environment variables)")
        for name, display_name in configs.items():
            marker = "🔸" if name == active_config else "  "
            print(f"{marker} {name}: {display_name}")
        print(f"\n✅ Active: {active_config}")

    elif args.config_command == 'show':
        print(f"Name: {config_manager.get_active_config_name()}")
        print(f"Display Name: {config_manager.get_display_name()}")
        print(f"Network: {config_manager.get_network_name()}")
        print(f"EVM RPC: {', '.join(config_manager.get_evm_rpc_urls())}")
        print(f"Watch Addresses: {', '.join(config_manager.get_watch_addresses())}")
        print(f"Poll Interval: {config_manager.get_poll_interval()}s")
        print(f"Blocks per Cycle: {config_manager.get_max_blocks_per_cycle()}")
        print(f"Block Batch Size: {config_manager.get_block_batch_size()}")
        print(f"Catch-up Delay: {config_manager.get_catchup_delay()}s")

    elif args.config_command == 'validate':
        validation = config_manager.validate_config(args.config_name)
        if validation['valid']:
            logger.info(f"✅ Configuration '{validation['config_name']}' is valid")
        else:
            logger.error("❌ Configuration validation failed:")
            for error in validation['errors']:
                print(f"  • {error}")
            sys.exit(1)
        if validation['warnings']:
            logger.warning("⚠️ Configuration warnings:")
            for warning in validation['warnings']:
                print(f"  • {warning}")

    else:
        logger.error("❌ No config subcommand specified")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Contract Monitor - watch an EVM chain for activity on a set of addresses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  contractwatch start                   # start continuous monitoring
  contractwatch start --once            # initialize or scan once and exit
  contractwatch start --interval 30     # poll every 30 seconds
  contractwatch --config fuji start     # use a specific config profile
  contractwatch check-config            # verify notification settings
  contractwatch probe --blocks 200      # test RPC and scan recent blocks
  contractwatch test-notify             # send a test notification
  contractwatch config validate         # validate current configuration
        """
    )

    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')
    parser.add_argument('--config', type=str, help='Configuration profile to use (overrides ACTIVE_CONFIG)')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    start_parser = subparsers.add_parser('start', help='Start contract monitoring')
    start_parser.add_argument('--once', action='store_true', help='Run a single cycle instead of continuously')
    start_parser.add_argument('--interval', type=int, help='Poll interval in seconds (default: config or 60)')

    subparsers.add_parser('check-config', help='Check watch list and notification configuration')

    probe_parser = subparsers.add_parser('probe', help='Test RPC connectivity and scan recent blocks')
    probe_parser.add_argument('--blocks', type=int, default=DEFAULT_PROBE_BLOCKS,
                              help=f'Number of recent blocks to scan (default: {DEFAULT_PROBE_BLOCKS})')

    subparsers.add_parser('test-notify', help='Send a test message to every configured channel')

    config_parser = subparsers.add_parser('config', help='Configuration management')
    config_subparsers = config_parser.add_subparsers(dest='config_command', help='Config commands')
    config_subparsers.add_parser('list', help='List available configurations')
    config_subparsers.add_parser('show', help='Show active configuration details')
    validate_parser = config_subparsers.add_parser('validate', help='Validate configuration')
    validate_parser.add_argument('config_name', nargs='?', help='Configuration to validate (default: active)')

    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, no_color=args.no_color)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config_manager = ConfigManager(config_name_override=args.config)
        if args.config:
            logger.info(f"🔧 Using configuration: {args.config}")

        if args.command == 'start':
            monitor = ContractMonitor(config_manager, poll_interval=args.interval)
            if args.once:
                if not monitor.run_once():
                    logger.error("❌ Monitoring cycle failed")
                    sys.exit(1)
                logger.info("✅ Monitoring cycle completed")
            else:
                monitor.run_continuous()

        elif args.command == 'check-config':
            if not check_config(config_manager):
                sys.exit(1)

        elif args.command == 'probe':
            monitor = ContractMonitor(config_manager)
            try:
                monitor.probe(args.blocks)
            except ConnectivityError as e:
                print(f"✗ Error: {e}")
                sys.exit(1)
            print("\n✓ All tests passed!")

        elif args.command == 'test-notify':
            monitor = ContractMonitor(config_manager)
            delivered = monitor.send_test_notification()
            if delivered < len(monitor.sink):
                logger.error(f"❌ Test notification delivered to {delivered}/{len(monitor.sink)} channels")
                sys.exit(1)
            logger.info(f"✅ Test notification delivered to {delivered} channel(s)")

        elif args.command == 'config':
            handle_config_command(args, config_manager)

    except ConfigurationError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
