"""Async IMAP mailbox access for locating probe messages."""

import contextlib
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from email.header import decode_header, make_header
from email.parser import BytesHeaderParser
from email.utils import parsedate_to_datetime
from typing import Protocol

import aioimaplib
import structlog

from inbox_placement.config import MailAccount, ProviderProfile
from inbox_placement.core import sanitize_for_log
from inbox_placement.exceptions import (
    CheckTimeoutError,
    FetchError,
    MailboxAuthenticationError,
    MailboxConnectionError,
    MailboxError,
)

logger = structlog.get_logger(__name__)

INTERNALDATE_PATTERN = re.compile(rb'INTERNALDATE "([^"]+)"')
EXISTS_PATTERN = re.compile(rb"^(\d+) EXISTS")
METADATA_PARTS = "(INTERNALDATE BODY.PEEK[HEADER.FIELDS (SUBJECT DATE)])"


@dataclass(frozen=True)
class MessageMetadata:
    subject: str
    received_at: datetime | None = None


class MailboxAdapter(Protocol):
    """Capabilities the provider checker needs from one mailbox."""

    async def connect(self) -> None: ...

    async def open_folder(self, folder: str) -> int: ...

    async def search_text(self, token: str) -> list[str]: ...

    async def fetch_metadata(self, message_id: str) -> MessageMetadata: ...

    async def close(self) -> None: ...


MailboxFactory = Callable[[MailAccount, ProviderProfile, float], MailboxAdapter]


def quote_mailbox(name: str) -> str:
    return '"' + name.replace('"', "") + '"'


def _decode_subject(raw: str | None) -> str:
    if not raw:
        return "No Subject"
    try:
        return str(make_header(decode_header(raw)))
    except (UnicodeDecodeError, LookupError, ValueError):
        return raw


def _parse_internaldate(raw: bytes) -> datetime | None:
    match = INTERNALDATE_PATTERN.search(raw)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1).decode(), "%d-%b-%Y %H:%M:%S %z")
    except ValueError:
        return None


class IMAPMailbox:
    """One monitored account over IMAP, using aioimaplib.

    ``timeout`` bounds every protocol command; the caller bounds the
    connection attempt as a whole.
    """

    def __init__(self, account: MailAccount, profile: ProviderProfile, timeout: float = 30):
        self.host = profile.host
        self.port = profile.port
        self.user = account.address
        self.password = account.password
        self.timeout = timeout
        self._client: aioimaplib.IMAP4_SSL | None = None
        self._folder: str | None = None

    async def connect(self) -> None:
        """Open the connection and log in."""
        logger.info("imap_connecting", host=self.host, port=self.port, user=self.user)
        try:
            self._client = aioimaplib.IMAP4_SSL(
                host=self.host, port=self.port, timeout=self.timeout
            )
            await self._client.wait_hello_from_server()
            status, data = await self._client.login(self.user, self.password)
        except TimeoutError as e:
            raise CheckTimeoutError(
                f"Connection timeout for {self.user} ({self.timeout:g}s)", timeout=self.timeout
            ) from e
        except Exception as e:
            logger.error("imap_connection_failed", user=self.user, error=sanitize_for_log(e))
            raise MailboxConnectionError(f"IMAP connection failed: {e}") from e

        if status != "OK":
            detail = sanitize_for_log(b" ".join(d for d in data if isinstance(d, bytes)))
            logger.error("imap_authentication_failed", user=self.user, detail=detail)
            raise MailboxAuthenticationError(f"Authentication failed for {self.user}: {detail}")

        logger.info("imap_connected", user=self.user)

    async def _command(self, name: str, *args: str) -> tuple[str, list]:
        """Run one IMAP command, mapping library failures onto mailbox errors."""
        client = self._require_client()
        try:
            status, data = await getattr(client, name)(*args)
        except (TimeoutError, aioimaplib.CommandTimeout) as e:
            raise CheckTimeoutError(
                f"IMAP {name.upper()} timed out for {self.user}", timeout=self.timeout
            ) from e
        except (aioimaplib.AioImapException, OSError) as e:
            logger.error("imap_command_failed", command=name, error=sanitize_for_log(e))
            raise MailboxConnectionError(f"IMAP {name.upper()} failed: {e}") from e
        return status, data

    async def open_folder(self, folder: str) -> int:
        """Select ``folder`` and return its message count."""
        status, data = await self._command("select", quote_mailbox(folder))
        if status != "OK":
            raise MailboxError(f"Failed to open folder {folder!r}: {status}")

        self._folder = folder
        total = 0
        for line in data:
            if isinstance(line, (bytes, bytearray)):
                match = EXISTS_PATTERN.match(bytes(line))
                if match:
                    total = int(match.group(1))
        logger.debug("imap_folder_opened", folder=folder, messages=total)
        return total

    async def search_text(self, token: str) -> list[str]:
        """Full-text search of the selected folder for ``token``."""
        status, data = await self._command("search", "TEXT", quote_mailbox(token))
        if status != "OK":
            raise MailboxError(f"Search failed in {self._folder!r}: {status}")
        if not data or not data[0]:
            return []
        return bytes(data[0]).decode().split()

    async def fetch_metadata(self, message_id: str) -> MessageMetadata:
        """Fetch subject and received time for one message.

        Raises:
            FetchError: If the server refuses the fetch or the response is unusable.
        """
        client = self._require_client()
        try:
            status, data = await client.fetch(message_id, METADATA_PARTS)
        except Exception as e:
            raise FetchError(f"Fetch of message {message_id} failed: {e}") from e
        if status != "OK" or not data:
            raise FetchError(f"Fetch of message {message_id} returned {status}")

        received_at: datetime | None = None
        headers = None
        for line in data:
            if isinstance(line, bytearray):
                headers = BytesHeaderParser().parsebytes(bytes(line))
            elif isinstance(line, bytes) and received_at is None:
                received_at = _parse_internaldate(line)

        if headers is None:
            raise FetchError(f"No header data for message {message_id}")

        if received_at is None and headers.get("Date"):
            with contextlib.suppress(TypeError, ValueError):
                received_at = parsedate_to_datetime(headers["Date"])

        return MessageMetadata(
            subject=_decode_subject(headers.get("Subject")), received_at=received_at
        )

    async def close(self) -> None:
        """Log out and drop the connection. Never raises."""
        if self._client:
            with contextlib.suppress(Exception):
                await self._client.logout()
            self._client = None
            self._folder = None
            logger.info("imap_disconnected", user=self.user)

    def _require_client(self) -> aioimaplib.IMAP4_SSL:
        if self._client is None:
            raise MailboxConnectionError("IMAP not connected")
        return self._client

