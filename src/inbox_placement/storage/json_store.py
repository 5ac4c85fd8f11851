"""JSON document store: one file per test under a data directory."""

import json
import os
import re
import secrets
from datetime import datetime
from pathlib import Path

import aiofiles
import aiofiles.os
import structlog

from inbox_placement.exceptions import PersistenceError
from inbox_placement.models import TestRecord, TestStatus
from inbox_placement.placement.scoring import ScoringPolicy
from inbox_placement.storage.base import (
    TestStore,
    select_by_user,
    select_stale,
    select_waiting,
)

logger = structlog.get_logger(__name__)

# Test ids become file names
SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class JsonFileTestStore(TestStore):
    """Store each test as ``<data_path>/<test_id>.json``.

    Writes go to a temporary file that is then renamed over the target,
    so readers never see a partially written document.
    """

    def __init__(self, data_path: str | Path, policy: ScoringPolicy | None = None) -> None:
        super().__init__(policy)
        self.data_path = Path(data_path)

    async def ensure_directory(self) -> None:
        try:
            await aiofiles.os.makedirs(self.data_path, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create data directory {self.data_path}: {e}") from e

    def _path_for(self, test_id: str) -> Path:
        if not SAFE_ID.match(test_id):
            raise PersistenceError(f"Invalid test id: {test_id!r}")
        return self.data_path / f"{test_id}.json"

    async def _write(self, record: TestRecord) -> None:
        dest_path = self._path_for(record.test_id)
        suffix = f"{os.getpid()}.{secrets.token_hex(4)}"
        tmp_path = dest_path.parent / f"{dest_path.name}.{suffix}.tmp"
        payload = json.dumps(record.to_dict(), indent=2)

        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(tmp_path, dest_path)
            logger.debug("test_record_written", test_id=record.test_id)
        except OSError as e:
            logger.error("test_record_write_failed", test_id=record.test_id, error=str(e))
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
            raise PersistenceError(f"Failed to save test {record.test_id}: {e}") from e

    async def _read(self, path: Path) -> TestRecord | None:
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to read {path.name}: {e}") from e

        try:
            return TestRecord.from_dict(json.loads(raw))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("test_record_corrupt", filename=path.name, error=str(e))
            return None

    async def _load_all(self) -> list[TestRecord]:
        try:
            if not await aiofiles.os.path.exists(self.data_path):
                return []
            entries = await aiofiles.os.listdir(self.data_path)
        except OSError as e:
            raise PersistenceError(f"Cannot list {self.data_path}: {e}") from e

        records = []
        for entry in sorted(entries):
            if not entry.endswith(".json"):
                continue
            record = await self._read(self.data_path / entry)
            if record is not None:
                records.append(record)
        return records

    async def find_by_test_id(self, test_id: str) -> TestRecord | None:
        if not SAFE_ID.match(test_id):
            return None
        return await self._read(self._path_for(test_id))

    async def find_by_test_code(self, test_code: str) -> TestRecord | None:
        for record in await self._load_all():
            if record.test_code == test_code:
                return record
        return None

    async def find_stale(self, status: TestStatus, older_than: datetime) -> list[TestRecord]:
        return select_stale(await self._load_all(), status, older_than)

    async def find_waiting(self, created_after: datetime, limit: int) -> list[TestRecord]:
        return select_waiting(await self._load_all(), created_after, limit)

    async def find_by_user_email(
        self, user_email: str, limit: int, offset: int = 0
    ) -> tuple[list[TestRecord], int]:
        return select_by_user(await self._load_all(), user_email, limit, offset)

    async def purge_expired(self, older_than: datetime) -> int:
        purged = 0
        for record in await self._load_all():
            if record.created_at >= older_than:
                continue
            try:
                await aiofiles.os.remove(self._path_for(record.test_id))
                purged += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                raise PersistenceError(f"Failed to purge {record.test_id}: {e}") from e
        if purged:
            logger.info("expired_tests_purged", count=purged)
        return purged
