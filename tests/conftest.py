"""Pytest configuration and fixtures."""

import dataclasses
import json
import os
from types import MappingProxyType

import pytest

# Set test environment variables before importing settings
os.environ.update(
    {
        "ACCOUNTS": json.dumps(
            [
                {"provider": "gmail", "address": "probe1@gmail.com", "password": "gmail-app-pass"},
                {
                    "provider": "outlook",
                    "address": "probe@outlook.com",
                    "password": "outlook-pass1",
                },
            ]
        ),
        "SMTP_HOST": "smtp.test.local",
        "FRONTEND_URL": "https://reports.test.local",
    }
)


@pytest.fixture
def mock_settings():
    """Settings loaded from the test environment."""
    from inbox_placement.config import Settings

    return Settings(_env_file=None)


@pytest.fixture
def monitoring_config():
    """gmail + outlook accounts with pacing disabled and a short timeout."""
    from inbox_placement.config import DEFAULT_PROVIDERS, MailAccount, MonitoringConfig

    providers = {
        name: dataclasses.replace(profile, pacing_delay=0.0)
        for name, profile in DEFAULT_PROVIDERS.items()
    }
    return MonitoringConfig(
        providers=MappingProxyType(providers),
        accounts=(
            MailAccount("gmail", "probe1@gmail.com", "gmail-app-pass"),
            MailAccount("outlook", "probe@outlook.com", "outlook-pass1"),
        ),
        connect_timeout=0.2,
    )


@pytest.fixture
def store():
    """In-memory store with the default 30/15 penalties."""
    from inbox_placement.storage import InMemoryTestStore

    return InMemoryTestStore()
