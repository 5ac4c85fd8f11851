"""Completion summary handed to the notifier when a test completes."""

from dataclasses import dataclass, field
from datetime import datetime

from inbox_placement.models import ResultStatus, TestRecord
from inbox_placement.placement.scoring import PlacementSummary, summarize


@dataclass(frozen=True)
class AccountOutcome:
    provider: str
    address: str
    status: ResultStatus
    folder: str
    error: str | None = None

    @property
    def label(self) -> str:
        if self.status == ResultStatus.DELIVERED:
            return f"Delivered ({self.folder})"
        if self.status == ResultStatus.ERROR:
            return "Error"
        if self.status == ResultStatus.NOT_DELIVERED:
            return "Not Delivered"
        return "Pending"


@dataclass(frozen=True)
class CompletionSummary:
    test_id: str
    test_code: str
    user_email: str
    user_name: str | None
    score: int
    counts: PlacementSummary
    outcomes: tuple[AccountOutcome, ...] = field(default_factory=tuple)
    shareable_link: str | None = None
    completed_at: datetime | None = None


def build_completion_summary(record: TestRecord) -> CompletionSummary:
    return CompletionSummary(
        test_id=record.test_id,
        test_code=record.test_code,
        user_email=record.user_email,
        user_name=record.user_name,
        score=record.overall_score,
        counts=summarize(record.results),
        outcomes=tuple(
            AccountOutcome(
                provider=r.email_provider,
                address=r.email_address,
                status=r.status,
                folder=r.folder.value,
                error=r.error,
            )
            for r in record.results
        ),
        shareable_link=record.shareable_link,
        completed_at=record.completed_at,
    )
