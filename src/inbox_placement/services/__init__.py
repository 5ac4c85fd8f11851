from inbox_placement.services.provider_check import CheckOutcome, ProviderChecker
from inbox_placement.services.scheduler import SweepScheduler
from inbox_placement.services.sweep import RecoverySweep, SweepReport
from inbox_placement.services.test_engine import StartOutcome, TestEngine

__all__ = [
    "CheckOutcome",
    "ProviderChecker",
    "RecoverySweep",
    "StartOutcome",
    "SweepReport",
    "SweepScheduler",
    "TestEngine",
]
