"""Transport layer for inbox-placement.

- IMAPMailbox: search a monitored mailbox for a probe message
- SMTPNotifier: send completion summaries to the requester
"""

from inbox_placement.transport.imap_client import (
    IMAPMailbox,
    MailboxAdapter,
    MailboxFactory,
    MessageMetadata,
)
from inbox_placement.transport.smtp_notifier import Notifier, SMTPNotifier

__all__ = [
    "IMAPMailbox",
    "MailboxAdapter",
    "MailboxFactory",
    "MessageMetadata",
    "Notifier",
    "SMTPNotifier",
]
