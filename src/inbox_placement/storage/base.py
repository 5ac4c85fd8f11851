"""Test record store interface.

Stores are document stores with read-modify-write semantics: every
``find_*`` returns a fresh copy and ``save`` replaces the whole document
(last writer wins). ``save`` recomputes the score and derived counts so
intermediate scores are visible while a test is still running.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from inbox_placement.models import TestRecord, TestStatus
from inbox_placement.placement.scoring import ScoringPolicy, apply_score


class TestStore(ABC):
    """Durable state for tests and their audit history.

    All methods raise ``PersistenceError`` when the backend fails.
    """

    __test__ = False

    def __init__(self, policy: ScoringPolicy | None = None) -> None:
        self.policy = policy or ScoringPolicy()

    async def save(self, record: TestRecord) -> TestRecord:
        apply_score(record, self.policy)
        await self._write(record)
        return record

    @abstractmethod
    async def _write(self, record: TestRecord) -> None: ...

    @abstractmethod
    async def find_by_test_id(self, test_id: str) -> TestRecord | None: ...

    @abstractmethod
    async def find_by_test_code(self, test_code: str) -> TestRecord | None: ...

    @abstractmethod
    async def find_stale(self, status: TestStatus, older_than: datetime) -> list[TestRecord]:
        """Tests in ``status`` whose ``started_at`` is before ``older_than``."""

    @abstractmethod
    async def find_waiting(self, created_after: datetime, limit: int) -> list[TestRecord]:
        """Oldest-first ``waiting`` tests created after ``created_after``."""

    @abstractmethod
    async def find_by_user_email(
        self, user_email: str, limit: int, offset: int = 0
    ) -> tuple[list[TestRecord], int]:
        """Newest-first page of one requester's tests, plus their total count."""

    @abstractmethod
    async def purge_expired(self, older_than: datetime) -> int:
        """Delete tests created before ``older_than``; return how many."""


def select_stale(
    records: list[TestRecord], status: TestStatus, older_than: datetime
) -> list[TestRecord]:
    return [
        r
        for r in records
        if r.status == status and r.started_at is not None and r.started_at < older_than
    ]


def select_waiting(
    records: list[TestRecord], created_after: datetime, limit: int
) -> list[TestRecord]:
    waiting = [
        r for r in records if r.status == TestStatus.WAITING and r.created_at >= created_after
    ]
    waiting.sort(key=lambda r: r.created_at)
    return waiting[:limit]


def select_by_user(
    records: list[TestRecord], user_email: str, limit: int, offset: int = 0
) -> tuple[list[TestRecord], int]:
    email = user_email.strip().lower()
    owned = [r for r in records if r.user_email == email]
    owned.sort(key=lambda r: r.created_at, reverse=True)
    return owned[offset : offset + limit], len(owned)
