"""Completion notifications sent by SMTP.

The engine decides when to notify and builds the ``CompletionSummary``;
this module only turns it into an email and hands it to the relay.
"""

from email.message import EmailMessage
from email.utils import formataddr
from typing import TYPE_CHECKING, Protocol

import aiosmtplib
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from inbox_placement.placement.summary import CompletionSummary

if TYPE_CHECKING:
    from inbox_placement.config import Settings

logger = structlog.get_logger(__name__)


class Notifier(Protocol):
    async def send_completion_summary(self, summary: CompletionSummary) -> None: ...


def render_summary_text(summary: CompletionSummary) -> str:
    """Plain-text body of the completion email."""
    lines = [
        f"Hello {summary.user_name or 'there'},",
        "",
        "Your email deliverability test has been completed.",
        "",
    ]
    if summary.completed_at:
        lines += [f"Completed: {summary.completed_at:%Y-%m-%d %H:%M} UTC", ""]
    lines += [
        f"Deliverability Score: {summary.score}%",
        "",
        "Detailed Results:",
    ]
    for outcome in summary.outcomes:
        line = f"  {outcome.provider.upper()}: {outcome.address} - {outcome.label}"
        if outcome.error:
            line += f" ({outcome.error})"
        lines.append(line)

    counts = summary.counts
    lines += [
        "",
        f"Summary: {counts.inbox} inbox, {counts.spam} spam, "
        f"{counts.errors} errors, {counts.not_delivered} not delivered",
    ]
    if summary.shareable_link:
        lines += ["", f"View full report: {summary.shareable_link}"]
    return "\n".join(lines) + "\n"


class SMTPNotifier:
    """Send completion summaries through an authenticated SMTP relay.

    Sending is skipped (and logged) when no SMTP credentials are
    configured. Connection-level failures are retried with backoff;
    anything else propagates to the caller.
    """

    def __init__(self, settings: "Settings") -> None:
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_pass.get_secret_value() if settings.smtp_pass else None
        self.sender_name = settings.smtp_sender_name

    @property
    def configured(self) -> bool:
        return bool(self.user and self.password)

    def build_message(self, summary: CompletionSummary) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.sender_name, self.user or ""))
        message["To"] = summary.user_email
        message["Subject"] = f"Your Email Deliverability Report - Score: {summary.score}%"
        message.set_content(render_summary_text(summary))
        return message

    async def send_completion_summary(self, summary: CompletionSummary) -> None:
        if not self.configured:
            logger.info("smtp_not_configured_skipping", test_id=summary.test_id)
            return

        await self._send(self.build_message(summary))
        logger.info("completion_email_sent", test_id=summary.test_id, to=summary.user_email)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=2, min=2, max=8),
        retry=retry_if_exception_type(
            (aiosmtplib.SMTPConnectError, aiosmtplib.SMTPServerDisconnected)
        ),
        reraise=True,
    )
    async def _send(self, message: EmailMessage) -> None:
        """Deliver one message, retrying up to 3 times on connection errors."""
        await aiosmtplib.send(
            message,
            hostname=self.host,
            port=self.port,
            username=self.user,
            password=self.password,
            use_tls=self.port == 465,
            start_tls=self.port != 465,
            timeout=30,
        )
