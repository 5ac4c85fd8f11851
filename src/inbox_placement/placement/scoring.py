"""Deliverability scoring.

The score rewards inbox placement and subtracts weighted penalties for
spam placement and for accounts that could not be checked::

    score = round((I/N)*100 - (S/N)*spam_penalty - (E/N)*error_penalty)

clamped to ``[0, 100]``. An empty result set scores 0.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from inbox_placement.models import DeliveryResult, FolderCategory, ResultStatus

if TYPE_CHECKING:
    from inbox_placement.models import TestRecord


@dataclass(frozen=True)
class ScoringPolicy:
    """Penalty weights, in score points at 100% occurrence."""

    spam_penalty: float = 30.0
    error_penalty: float = 15.0


@dataclass(frozen=True)
class PlacementSummary:
    total: int = 0
    inbox: int = 0
    spam: int = 0
    delivered: int = 0
    not_delivered: int = 0
    errors: int = 0
    pending: int = 0


def summarize(results: Iterable[DeliveryResult]) -> PlacementSummary:
    total = inbox = spam = delivered = not_delivered = errors = pending = 0
    for result in results:
        total += 1
        if result.status == ResultStatus.DELIVERED:
            delivered += 1
            if result.folder == FolderCategory.INBOX:
                inbox += 1
            elif result.folder == FolderCategory.SPAM:
                spam += 1
        elif result.status == ResultStatus.NOT_DELIVERED:
            not_delivered += 1
        elif result.status == ResultStatus.ERROR:
            errors += 1
        else:
            pending += 1
    return PlacementSummary(
        total=total,
        inbox=inbox,
        spam=spam,
        delivered=delivered,
        not_delivered=not_delivered,
        errors=errors,
        pending=pending,
    )


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def compute_score(results: Iterable[DeliveryResult], policy: ScoringPolicy) -> int:
    """Compute the bounded 0-100 deliverability score for ``results``."""
    summary = summarize(results)
    if summary.total == 0:
        return 0

    n = summary.total
    raw = (
        (summary.inbox / n) * 100
        - (summary.spam / n) * policy.spam_penalty
        - (summary.errors / n) * policy.error_penalty
    )
    return max(0, min(100, _round_half_up(raw)))


def apply_score(record: "TestRecord", policy: ScoringPolicy) -> PlacementSummary:
    """Refresh the record's score and derived counts from its results."""
    summary = summarize(record.results)
    record.overall_score = compute_score(record.results, policy)
    record.delivered_count = summary.delivered
    record.spam_count = summary.spam
    record.inbox_count = summary.inbox
    return summary
