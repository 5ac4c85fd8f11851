"""Tests for the test orchestration engine."""

import dataclasses
from unittest.mock import AsyncMock, patch

import pytest
from fakes import FakeMailbox, MailboxRegistry, RecordingNotifier

from inbox_placement.config import MonitoringConfig
from inbox_placement.exceptions import PersistenceError
from inbox_placement.models import (
    DeliveryResult,
    FolderCategory,
    ResultStatus,
    TestRecord,
    TestStatus,
)
from inbox_placement.services import ProviderChecker, StartOutcome, TestEngine
from inbox_placement.services.test_engine import generate_test_code
from inbox_placement.storage import InMemoryTestStore


def mailboxes(code: str) -> dict[str, FakeMailbox]:
    """gmail has the probe in INBOX, outlook in Junk Email."""
    return {
        "probe1@gmail.com": FakeMailbox(folders={"INBOX": {"7": f"Hi! ref {code}"}}),
        "probe@outlook.com": FakeMailbox(folders={"Junk Email": {"3": f"Hi! ref {code}"}}),
    }


class FlakyStore(InMemoryTestStore):
    """Fails the save calls whose 1-based numbers are in ``fail_on``."""

    def __init__(self, fail_on: set[int]) -> None:
        super().__init__()
        self.fail_on = fail_on
        self.saves = 0

    async def save(self, record: TestRecord) -> TestRecord:
        self.saves += 1
        if self.saves in self.fail_on:
            raise PersistenceError(f"Failed to save test {record.test_id}: disk full")
        return await super().save(record)


def make_engine(store, config: MonitoringConfig, registry, notifier=None) -> TestEngine:
    return TestEngine(
        store,
        config,
        checker=ProviderChecker(config, registry),
        notifier=notifier,
        frontend_url="https://reports.test.local/",
    )


async def seed(store, status: TestStatus = TestStatus.WAITING, code="ABCDEF012345") -> TestRecord:
    record = TestRecord.new(
        test_id="test-1",
        test_code=code,
        user_email="user@example.com",
        user_name="Sam",
        results=[
            DeliveryResult(email_provider="gmail", email_address="probe1@gmail.com"),
            DeliveryResult(email_provider="outlook", email_address="probe@outlook.com"),
        ],
    )
    if status != TestStatus.CREATED:
        record.mark_waiting()
    if status == TestStatus.PROCESSING:
        record.mark_processing()
    return await store.save(record)


class TestCreateTest:
    """Test TestEngine.create_test()."""

    @pytest.mark.asyncio
    async def test_creates_waiting_test(self, store, monitoring_config) -> None:
        """Test a new test is queued with one pending result per account."""
        engine = make_engine(store, monitoring_config, MailboxRegistry({}))

        record = await engine.create_test("User@Example.com", "Sam")

        stored = await store.find_by_test_id(record.test_id)
        assert stored.status == TestStatus.WAITING
        assert stored.user_email == "user@example.com"
        assert [r.email_address for r in stored.results] == [
            "probe1@gmail.com",
            "probe@outlook.com",
        ]
        assert all(r.status == ResultStatus.PENDING for r in stored.results)
        assert stored.shareable_link == f"https://reports.test.local/report/{record.test_id}"
        assert [h.action for h in stored.history] == ["test_created", "test_queued"]

    @pytest.mark.asyncio
    async def test_rejects_invalid_email(self, store, monitoring_config) -> None:
        """Test requester addresses must contain @."""
        engine = make_engine(store, monitoring_config, MailboxRegistry({}))

        with pytest.raises(ValueError, match="Invalid email address"):
            await engine.create_test("not-an-address")
        assert len(store) == 0

    def test_generate_test_code(self) -> None:
        """Test codes are 12 uppercase hex characters."""
        code = generate_test_code()
        assert len(code) == 12
        assert code == code.upper()
        int(code, 16)


class TestRunCheck:
    """Test TestEngine.run_check() passes."""

    @pytest.mark.asyncio
    async def test_full_pass(self, store, monitoring_config) -> None:
        """Test inbox at gmail and junk at outlook completes with score 35."""
        await seed(store)
        notifier = RecordingNotifier()
        registry = MailboxRegistry(mailboxes("ABCDEF012345"))
        engine = make_engine(store, monitoring_config, registry, notifier)

        record = await engine.run_check("test-1")

        assert record.status == TestStatus.COMPLETED
        gmail, outlook = record.results
        assert (gmail.status, gmail.folder) == (ResultStatus.DELIVERED, FolderCategory.INBOX)
        assert (outlook.status, outlook.folder) == (ResultStatus.DELIVERED, FolderCategory.SPAM)
        assert record.overall_score == 35
        assert record.inbox_count == 1
        assert record.spam_count == 1
        assert record.delivered_count == 2
        assert [h.action for h in record.history] == [
            "test_created",
            "test_queued",
            "processing_started",
            "processing_completed",
        ]
        assert record.history[-1].processed_accounts == 2
        assert registry.created == ["probe1@gmail.com", "probe@outlook.com"]
        assert all(m.closed for m in registry.mailboxes.values())

        assert len(notifier.summaries) == 1
        summary = notifier.summaries[0]
        assert summary.score == 35
        assert summary.user_email == "user@example.com"
        assert [o.label for o in summary.outcomes] == ["Delivered (inbox)", "Delivered (spam)"]

    @pytest.mark.asyncio
    async def test_intermediate_score_visible(self, store, monitoring_config) -> None:
        """Test results are persisted one by one while the test is processing."""
        await seed(store)
        seen: list[TestRecord] = []
        boxes = mailboxes("ABCDEF012345")

        class PeekingMailbox(FakeMailbox):
            async def connect(self) -> None:
                seen.append(await store.find_by_test_id("test-1"))
                await super().connect()

        boxes["probe@outlook.com"] = PeekingMailbox(
            folders={"Junk Email": {"3": "ABCDEF012345"}}
        )
        engine = make_engine(store, monitoring_config, MailboxRegistry(boxes))

        await engine.run_check("test-1")

        midway = seen[0]
        assert midway.status == TestStatus.PROCESSING
        assert midway.results[0].status == ResultStatus.DELIVERED
        assert midway.results[1].status == ResultStatus.PENDING
        assert midway.overall_score == 50

    @pytest.mark.asyncio
    async def test_already_processing_is_noop(self, store, monitoring_config) -> None:
        """Test a test already processing is left untouched."""
        seeded = await seed(store, TestStatus.PROCESSING)
        registry = MailboxRegistry(mailboxes("ABCDEF012345"))
        engine = make_engine(store, monitoring_config, registry)

        record = await engine.run_check("test-1")

        assert record.status == TestStatus.PROCESSING
        assert len(record.history) == len(seeded.history)
        assert registry.created == []

    @pytest.mark.asyncio
    async def test_missing_test(self, store, monitoring_config) -> None:
        """Test an unknown id returns None without side effects."""
        engine = make_engine(store, monitoring_config, MailboxRegistry({}))
        assert await engine.run_check("missing") is None

    @pytest.mark.asyncio
    async def test_created_test_not_run(self, store, monitoring_config) -> None:
        """Test a test that was never queued is not processed."""
        await seed(store, TestStatus.CREATED)
        registry = MailboxRegistry({})
        engine = make_engine(store, monitoring_config, registry)

        record = await engine.run_check("test-1")

        assert record.status == TestStatus.CREATED
        assert registry.created == []

    @pytest.mark.asyncio
    async def test_account_timeout_contained(self, store, monitoring_config) -> None:
        """Test one hung account is an error result, not a failed test."""
        await seed(store)
        boxes = mailboxes("ABCDEF012345")
        boxes["probe1@gmail.com"] = FakeMailbox(connect_delay=5)
        engine = make_engine(store, monitoring_config, MailboxRegistry(boxes))

        record = await engine.run_check("test-1")

        assert record.status == TestStatus.COMPLETED
        gmail, outlook = record.results
        assert gmail.status == ResultStatus.ERROR
        assert "Connection timeout" in gmail.error
        assert outlook.folder == FolderCategory.SPAM
        assert record.overall_score == 0
        assert record.history[-1].processed_accounts == 1

    @pytest.mark.asyncio
    async def test_vanished_test(self, store, monitoring_config) -> None:
        """Test a record deleted mid-pass ends the pass without recreating it."""
        await seed(store)
        boxes = mailboxes("ABCDEF012345")

        class DeletingMailbox(FakeMailbox):
            async def connect(self) -> None:
                store._documents.clear()
                await super().connect()

        boxes["probe1@gmail.com"] = DeletingMailbox(folders={"INBOX": {"1": "ABCDEF012345"}})
        engine = make_engine(store, monitoring_config, MailboxRegistry(boxes))

        assert await engine.run_check("test-1") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_superseded_pass_leaves_waiting(self, store, monitoring_config) -> None:
        """Test a pass whose test is reset by the sweep stops and leaves it waiting."""
        await seed(store)
        boxes = mailboxes("ABCDEF012345")

        class ResettingMailbox(FakeMailbox):
            async def connect(self) -> None:
                record = await store.find_by_test_id("test-1")
                record.reset_stuck("processing_timeout")
                await store.save(record)
                await super().connect()

        boxes["probe1@gmail.com"] = ResettingMailbox(folders={"INBOX": {"1": "ABCDEF012345"}})
        engine = make_engine(store, monitoring_config, MailboxRegistry(boxes))

        record = await engine.run_check("test-1")

        assert record.status == TestStatus.WAITING
        assert [h.action for h in record.history] == [
            "test_created",
            "test_queued",
            "processing_started",
            "reset_stuck_test",
        ]
        assert record.results[0].status == ResultStatus.PENDING
        assert (await store.find_by_test_id("test-1")).status == TestStatus.WAITING
        assert boxes["probe@outlook.com"].connected is False

    @pytest.mark.asyncio
    async def test_store_failure_marks_failed(self, monitoring_config) -> None:
        """Test a failed result write fails the test with the error recorded."""
        store = FlakyStore(fail_on=set())
        await seed(store)
        store.saves = 0
        store.fail_on = {2}
        engine = make_engine(store, monitoring_config, MailboxRegistry(mailboxes("ABCDEF012345")))

        record = await engine.run_check("test-1")

        assert record.status == TestStatus.FAILED
        assert record.history[-1].action == "processing_failed"
        assert "disk full" in record.history[-1].error

    @pytest.mark.asyncio
    async def test_store_down_leaves_processing(self, monitoring_config) -> None:
        """Test when even the failure cannot be saved the test stays processing."""
        store = FlakyStore(fail_on=set())
        await seed(store)
        store.saves = 0
        store.fail_on = {2, 3}
        engine = make_engine(store, monitoring_config, MailboxRegistry(mailboxes("ABCDEF012345")))

        assert await engine.run_check("test-1") is None
        stored = await store.find_by_test_id("test-1")
        assert stored.status == TestStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_notifier_failure_keeps_completion(self, store, monitoring_config) -> None:
        """Test a failed completion email does not fail the test."""
        await seed(store)
        notifier = RecordingNotifier(error=RuntimeError("SMTP relay down"))
        engine = make_engine(
            store, monitoring_config, MailboxRegistry(mailboxes("ABCDEF012345")), notifier
        )

        record = await engine.run_check("test-1")

        assert record.status == TestStatus.COMPLETED
        assert (await store.find_by_test_id("test-1")).status == TestStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_rerun_completed(self, store, monitoring_config) -> None:
        """Test a completed test can be re-run with fresh results."""
        await seed(store)
        engine = make_engine(store, monitoring_config, MailboxRegistry(mailboxes("ABCDEF012345")))
        await engine.run_check("test-1")

        boxes = mailboxes("ABCDEF012345")
        boxes["probe@outlook.com"] = FakeMailbox(folders={"INBOX": {"3": "ABCDEF012345"}})
        engine = make_engine(store, monitoring_config, MailboxRegistry(boxes))
        record = await engine.run_check("test-1")

        assert record.status == TestStatus.COMPLETED
        assert record.overall_score == 100
        started = [h for h in record.history if h.action == "processing_started"]
        assert [h.rerun for h in started] == [False, True]

    @pytest.mark.asyncio
    async def test_pacing_between_accounts(self, store, monitoring_config) -> None:
        """Test the provider pacing delay runs between accounts but not after the last."""
        providers = dict(monitoring_config.providers)
        providers["gmail"] = dataclasses.replace(providers["gmail"], pacing_delay=1.5)
        providers["outlook"] = dataclasses.replace(providers["outlook"], pacing_delay=2.5)
        config = dataclasses.replace(monitoring_config, providers=providers)
        await seed(store)
        engine = make_engine(store, config, MailboxRegistry(mailboxes("ABCDEF012345")))

        with patch(
            "inbox_placement.services.test_engine.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            await engine.run_check("test-1")

        mock_sleep.assert_awaited_once_with(1.5)


class TestStartCheck:
    """Test TestEngine.start_check() background triggers."""

    @pytest.mark.asyncio
    async def test_accepted_then_completed(self, store, monitoring_config) -> None:
        """Test an accepted check runs in the background."""
        await seed(store)
        engine = make_engine(store, monitoring_config, MailboxRegistry(mailboxes("ABCDEF012345")))

        outcome = await engine.start_check("test-1")
        await engine.drain()

        assert outcome == StartOutcome.ACCEPTED
        assert (await store.find_by_test_id("test-1")).status == TestStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_second_trigger_rejected(self, store, monitoring_config) -> None:
        """Test two triggers for the same test start only one pass."""
        await seed(store)
        registry = MailboxRegistry(mailboxes("ABCDEF012345"))
        engine = make_engine(store, monitoring_config, registry)

        first = await engine.start_check("test-1")
        second = await engine.start_check("test-1")
        await engine.drain()

        assert first == StartOutcome.ACCEPTED
        assert second == StartOutcome.ALREADY_PROCESSING
        assert registry.created == ["probe1@gmail.com", "probe@outlook.com"]

    @pytest.mark.asyncio
    async def test_not_found(self, store, monitoring_config) -> None:
        """Test unknown tests are reported."""
        engine = make_engine(store, monitoring_config, MailboxRegistry({}))
        assert await engine.start_check("missing") == StartOutcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_processing_in_store(self, store, monitoring_config) -> None:
        """Test a test processing elsewhere is reported as already processing."""
        await seed(store, TestStatus.PROCESSING)
        engine = make_engine(store, monitoring_config, MailboxRegistry({}))
        assert await engine.start_check("test-1") == StartOutcome.ALREADY_PROCESSING

    @pytest.mark.asyncio
    async def test_created_rejected(self, store, monitoring_config) -> None:
        """Test tests that were never queued cannot be started."""
        await seed(store, TestStatus.CREATED)
        engine = make_engine(store, monitoring_config, MailboxRegistry({}))
        assert await engine.start_check("test-1") == StartOutcome.REJECTED
