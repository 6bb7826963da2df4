#!/usr/bin/env python3
"""
Setup script for Contract Activity Watch
"""

from setuptools import setup

setup(
    name="contract-activity-watch",
    version="1.0.0",
    description="Incremental EVM block scanner with notifications for watched contract activity",
    author="Contract Activity Watch contributors",
    package_dir={"": "src"},
    py_modules=[
        "batch_fetcher",
        "config_manager",
        "contract_monitor",
        "ledger_client",
        "ledger_types",
        "logger_utils",
        "matcher",
        "messages",
        "notifier",
        "outcome_correlator",
        "rpc_failover",
        "scan_scheduler",
        "scan_state",
        "watch_set",
    ],
    install_requires=[
        "web3>=6.0.0,<7.0.0",
        "requests>=2.28.0",
        "pytz>=2022.1",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "contractwatch=contract_monitor:main",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
