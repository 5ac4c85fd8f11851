from inbox_placement.models.test_record import (
    BackgroundProcessingFailed,
    DeliveryResult,
    FolderCategory,
    HistoryEntry,
    ProcessingCompleted,
    ProcessingFailed,
    ProcessingStarted,
    ResultStatus,
    StuckTestReset,
    TestCreated,
    TestQueued,
    TestRecord,
    TestStatus,
    utcnow,
)

__all__ = [
    "BackgroundProcessingFailed",
    "DeliveryResult",
    "FolderCategory",
    "HistoryEntry",
    "ProcessingCompleted",
    "ProcessingFailed",
    "ProcessingStarted",
    "ResultStatus",
    "StuckTestReset",
    "TestCreated",
    "TestQueued",
    "TestRecord",
    "TestStatus",
    "utcnow",
]
