from inbox_placement.placement.folders import DEFAULT_FOLDER_MAPS, resolve_folder
from inbox_placement.placement.scoring import (
    PlacementSummary,
    ScoringPolicy,
    apply_score,
    compute_score,
    summarize,
)
from inbox_placement.placement.summary import (
    AccountOutcome,
    CompletionSummary,
    build_completion_summary,
)

__all__ = [
    "DEFAULT_FOLDER_MAPS",
    "AccountOutcome",
    "CompletionSummary",
    "PlacementSummary",
    "ScoringPolicy",
    "apply_score",
    "build_completion_summary",
    "compute_score",
    "resolve_folder",
    "summarize",
]
