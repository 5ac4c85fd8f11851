"""Immutable monitoring configuration built once at startup.

``MonitoringConfig`` replaces any module-level provider/credential state:
it is constructed from ``Settings`` and handed to the engine and the
provider checker explicitly.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

import structlog

from inbox_placement.models import FolderCategory
from inbox_placement.placement.folders import DEFAULT_FOLDER_MAPS

if TYPE_CHECKING:
    from inbox_placement.config.settings import Settings

logger = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 10


@dataclass(frozen=True)
class ProviderProfile:
    name: str
    host: str
    port: int = 993
    folders: tuple[str, ...] = ("INBOX",)
    folder_map: Mapping[str, FolderCategory] = field(default_factory=dict)
    pacing_delay: float = 2.0


@dataclass(frozen=True)
class MailAccount:
    provider: str
    address: str
    password: str = field(default="", repr=False)

    @property
    def has_credentials(self) -> bool:
        return bool(self.address and self.password)


DEFAULT_PROVIDERS: dict[str, ProviderProfile] = {
    "gmail": ProviderProfile(
        name="gmail",
        host="imap.gmail.com",
        folders=("INBOX", "[Gmail]/Spam", "[Gmail]/All Mail"),
        folder_map=MappingProxyType(DEFAULT_FOLDER_MAPS["gmail"]),
        pacing_delay=3.0,
    ),
    "outlook": ProviderProfile(
        name="outlook",
        host="outlook.office365.com",
        folders=("INBOX", "Junk Email"),
        folder_map=MappingProxyType(DEFAULT_FOLDER_MAPS["outlook"]),
        pacing_delay=2.0,
    ),
}


@dataclass(frozen=True)
class MonitoringConfig:
    """Providers and accounts monitored for probe messages."""

    providers: Mapping[str, ProviderProfile]
    accounts: tuple[MailAccount, ...]
    connect_timeout: float = 30.0

    def find_account(self, address: str) -> MailAccount | None:
        for account in self.accounts:
            if account.address == address:
                return account
        return None

    def provider(self, name: str) -> ProviderProfile | None:
        return self.providers.get(name)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "MonitoringConfig":
        providers = dict(DEFAULT_PROVIDERS)
        for name, override in settings.providers.items():
            base_map = DEFAULT_FOLDER_MAPS.get(name, {})
            providers[name] = ProviderProfile(
                name=name,
                host=override.host,
                port=override.port,
                folders=tuple(override.folders),
                folder_map=MappingProxyType({**base_map, **override.folder_map}),
                pacing_delay=override.pacing_delay,
            )

        accounts = tuple(
            MailAccount(
                provider=creds.provider,
                address=creds.address.strip(),
                password=creds.password.get_secret_value().strip('"'),
            )
            for creds in settings.accounts
        )
        config = cls(
            providers=MappingProxyType(providers),
            accounts=accounts,
            connect_timeout=settings.connect_timeout,
        )
        config.validate()
        return config

    def validate(self) -> list[str]:
        """Log and return warnings about accounts that will fail to check."""
        warnings: list[str] = []
        for index, account in enumerate(self.accounts, start=1):
            if account.provider not in self.providers:
                warnings.append(f"{account.address}: unknown provider {account.provider}")
            elif not account.has_credentials:
                warnings.append(f"{account.provider} account {index}: missing credentials")
            elif len(account.password) < MIN_PASSWORD_LENGTH:
                warnings.append(
                    f"{account.provider} account {index}: password might be too short"
                )

        for warning in warnings:
            logger.warning("account_config_warning", detail=warning)
        logger.info(
            "monitoring_config_loaded",
            accounts=len(self.accounts),
            providers=sorted(self.providers),
        )
        return warnings
