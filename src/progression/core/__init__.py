"""Core business logic module.

Modules:
- grade_aggregator: Weighted period score from four component scores
- period_store: Validated period record writes and reads
- level_state: Level attempt statuses, events and transition table
- locks: Per (student, level) lock registry
- progression: Level finalization, renewal and administrative actions
- progress_query: Read-only student progress projection
"""

__all__ = [
    "errors",
    "grade_aggregator",
    "period_store",
    "level_state",
    "locks",
    "progression",
    "progress_query",
]
