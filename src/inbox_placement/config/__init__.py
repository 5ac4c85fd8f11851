from inbox_placement.config.accounts import (
    DEFAULT_PROVIDERS,
    MailAccount,
    MonitoringConfig,
    ProviderProfile,
)
from inbox_placement.config.settings import (
    AccountCredentials,
    ProviderSettings,
    Settings,
    get_settings,
)

__all__ = [
    "DEFAULT_PROVIDERS",
    "AccountCredentials",
    "MailAccount",
    "MonitoringConfig",
    "ProviderProfile",
    "ProviderSettings",
    "Settings",
    "get_settings",
]
