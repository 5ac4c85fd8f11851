"""Resolve where the probe message landed in one monitored account."""

import asyncio
from dataclasses import dataclass
from datetime import datetime

import structlog

from inbox_placement.config import MailAccount, MonitoringConfig, ProviderProfile
from inbox_placement.core import sanitize_for_log
from inbox_placement.exceptions import (
    CheckTimeoutError,
    ConfigurationError,
    MailboxConnectionError,
    MailboxError,
)
from inbox_placement.models import DeliveryResult, FolderCategory, ResultStatus, utcnow
from inbox_placement.placement.folders import resolve_folder
from inbox_placement.transport.imap_client import IMAPMailbox, MailboxAdapter, MailboxFactory

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckOutcome:
    """Result of checking one account.

    Attributes:
        contacted: Whether the mail server was reached (drives pacing).
    """

    status: ResultStatus
    folder: FolderCategory = FolderCategory.NOT_FOUND
    raw_folder: str | None = None
    subject: str | None = None
    received_at: datetime | None = None
    error: str | None = None
    contacted: bool = False

    @classmethod
    def failed(cls, error: str, contacted: bool = False) -> "CheckOutcome":
        return cls(status=ResultStatus.ERROR, error=error, contacted=contacted)

    def apply(self, result: DeliveryResult, checked_at: datetime | None = None) -> None:
        result.status = self.status
        result.folder = self.folder
        result.checked_at = checked_at or utcnow()
        result.error = self.error
        result.subject = self.subject
        result.received_at = self.received_at


class ProviderChecker:
    """Drive one account's connect, search and resolve sequence.

    Every failure that belongs to a single account (bad configuration,
    connection or authentication failure, timeout) is turned into an
    ``error`` outcome; nothing raised here aborts the surrounding test.
    """

    def __init__(
        self,
        config: MonitoringConfig,
        mailbox_factory: MailboxFactory = IMAPMailbox,
    ) -> None:
        self.config = config
        self.mailbox_factory = mailbox_factory

    def _resolve(self, result: DeliveryResult) -> tuple[MailAccount, ProviderProfile]:
        account = self.config.find_account(result.email_address)
        if account is None:
            raise ConfigurationError(
                f"No email configuration found for {result.email_address}"
            )
        profile = self.config.provider(account.provider)
        if profile is None:
            raise ConfigurationError(f"No provider configuration for {account.provider}")
        if not account.has_credentials:
            raise ConfigurationError("Email credentials not configured properly")
        return account, profile

    def pacing_delay(self, result: DeliveryResult) -> float:
        account = self.config.find_account(result.email_address)
        profile = self.config.provider(account.provider) if account else None
        return profile.pacing_delay if profile else 0.0

    async def check(self, result: DeliveryResult, test_code: str) -> CheckOutcome:
        """Find ``test_code`` in the account behind ``result``.

        Folders are searched in the provider's priority order and the
        first folder with a match wins; later folders are never opened.
        The connection is always closed before returning.
        """
        log = logger.bind(address=result.email_address, provider=result.email_provider)

        try:
            account, profile = self._resolve(result)
        except ConfigurationError as e:
            log.warning("account_not_configured", error=e.message)
            return CheckOutcome.failed(e.message)

        timeout = self.config.connect_timeout
        mailbox = self.mailbox_factory(account, profile, timeout)
        try:
            try:
                await asyncio.wait_for(mailbox.connect(), timeout=timeout)
            except TimeoutError as e:
                raise CheckTimeoutError(
                    f"Connection timeout for {account.address} ({timeout:g}s)", timeout=timeout
                ) from e
            return await self._search_folders(mailbox, profile, test_code, log)
        except (CheckTimeoutError, TimeoutError) as e:
            message = str(e) or f"Operation timed out for {account.address}"
            log.error("provider_check_timeout", error=sanitize_for_log(message, 200))
            return CheckOutcome.failed(message, contacted=True)
        except MailboxError as e:
            log.error(
                "provider_check_failed",
                error_type=type(e).__name__,
                error=sanitize_for_log(e.message, 200),
            )
            return CheckOutcome.failed(e.message, contacted=True)
        except Exception as e:
            log.error("provider_check_crashed", error=sanitize_for_log(e, 200), exc_info=True)
            return CheckOutcome.failed(f"Unexpected error: {e}", contacted=True)
        finally:
            await mailbox.close()

    async def _search_folders(
        self,
        mailbox: MailboxAdapter,
        profile: ProviderProfile,
        test_code: str,
        log: "structlog.typing.FilteringBoundLogger",
    ) -> CheckOutcome:
        for folder in profile.folders:
            try:
                await mailbox.open_folder(folder)
                matches = await mailbox.search_text(test_code)
            except (MailboxConnectionError, CheckTimeoutError):
                raise
            except MailboxError as e:
                # Unreadable folder: move on to the next one
                log.warning("folder_check_failed", folder=folder, error=sanitize_for_log(e))
                continue

            if not matches:
                log.debug("no_match_in_folder", folder=folder)
                continue

            category = resolve_folder(profile.name, folder, profile.folder_map)
            log.info("probe_found", folder=folder, category=category.value, matches=len(matches))

            try:
                metadata = await mailbox.fetch_metadata(matches[0])
            except (MailboxError, TimeoutError) as e:
                # Placement is established by the search hit alone
                log.warning("metadata_fetch_failed", folder=folder, error=sanitize_for_log(e))
                return CheckOutcome(
                    status=ResultStatus.DELIVERED,
                    folder=category,
                    raw_folder=folder,
                    contacted=True,
                )

            return CheckOutcome(
                status=ResultStatus.DELIVERED,
                folder=category,
                raw_folder=folder,
                subject=metadata.subject,
                received_at=metadata.received_at,
                contacted=True,
            )

        log.info("probe_not_found", folders=len(profile.folders))
        return CheckOutcome(status=ResultStatus.NOT_DELIVERED, contacted=True)
