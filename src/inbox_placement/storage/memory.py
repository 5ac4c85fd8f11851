"""In-process test store, used by tests and one-shot CLI runs."""

import copy
from datetime import datetime
from typing import Any

from inbox_placement.models import TestRecord, TestStatus
from inbox_placement.placement.scoring import ScoringPolicy
from inbox_placement.storage.base import (
    TestStore,
    select_by_user,
    select_stale,
    select_waiting,
)


class InMemoryTestStore(TestStore):
    """Keeps serialized documents so callers never share mutable records."""

    def __init__(self, policy: ScoringPolicy | None = None) -> None:
        super().__init__(policy)
        self._documents: dict[str, dict[str, Any]] = {}

    async def _write(self, record: TestRecord) -> None:
        self._documents[record.test_id] = record.to_dict()

    def _load_all(self) -> list[TestRecord]:
        return [TestRecord.from_dict(copy.deepcopy(doc)) for doc in self._documents.values()]

    async def find_by_test_id(self, test_id: str) -> TestRecord | None:
        doc = self._documents.get(test_id)
        return TestRecord.from_dict(copy.deepcopy(doc)) if doc else None

    async def find_by_test_code(self, test_code: str) -> TestRecord | None:
        for doc in self._documents.values():
            if doc["test_code"] == test_code:
                return TestRecord.from_dict(copy.deepcopy(doc))
        return None

    async def find_stale(self, status: TestStatus, older_than: datetime) -> list[TestRecord]:
        return select_stale(self._load_all(), status, older_than)

    async def find_waiting(self, created_after: datetime, limit: int) -> list[TestRecord]:
        return select_waiting(self._load_all(), created_after, limit)

    async def find_by_user_email(
        self, user_email: str, limit: int, offset: int = 0
    ) -> tuple[list[TestRecord], int]:
        return select_by_user(self._load_all(), user_email, limit, offset)

    async def purge_expired(self, older_than: datetime) -> int:
        expired = [r.test_id for r in self._load_all() if r.created_at < older_than]
        for test_id in expired:
            del self._documents[test_id]
        return len(expired)

    def __len__(self) -> int:
        return len(self._documents)
