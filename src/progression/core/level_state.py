"""Level attempt state machine.

Every status change of a level attempt goes through TRANSITIONS. A pair
(status, event) missing from the table is rejected.

awaiting_renewal is stored as a passed attempt carrying the renewal_pending
marker; effective_status() folds the two back together.
"""

from __future__ import annotations

from enum import Enum

from progression.core.errors import InconsistentStateError


class LevelStatus(str, Enum):
    """Effective status of a level attempt."""

    IN_PROGRESS = "in_progress"
    RECOVERY = "recovery"
    AWAITING_RENEWAL = "awaiting_renewal"
    PASSED = "passed"
    FAILED = "failed"
    WITHDRAWN = "withdrawn"


class LevelEvent(str, Enum):
    """Events that act on a level attempt."""

    ENROLL = "enroll"  # new attempt, no prior status
    REPEAT = "repeat"  # new attempt after failure
    PASS = "pass"  # passed, next level exists
    COMPLETE = "complete"  # passed the last level of the course
    OPEN_RECOVERY = "open_recovery"
    FAIL = "fail"
    WITHDRAW = "withdraw"
    RENEW = "renew"


OPEN_STATUSES = frozenset({LevelStatus.IN_PROGRESS, LevelStatus.RECOVERY})

CLOSED_STATUSES = frozenset(
    {
        LevelStatus.AWAITING_RENEWAL,
        LevelStatus.PASSED,
        LevelStatus.FAILED,
        LevelStatus.WITHDRAWN,
    }
)

TRANSITIONS: dict[tuple[LevelStatus, LevelEvent], LevelStatus] = {
    (LevelStatus.IN_PROGRESS, LevelEvent.PASS): LevelStatus.AWAITING_RENEWAL,
    (LevelStatus.IN_PROGRESS, LevelEvent.COMPLETE): LevelStatus.PASSED,
    (LevelStatus.IN_PROGRESS, LevelEvent.OPEN_RECOVERY): LevelStatus.RECOVERY,
    (LevelStatus.IN_PROGRESS, LevelEvent.FAIL): LevelStatus.FAILED,
    (LevelStatus.IN_PROGRESS, LevelEvent.WITHDRAW): LevelStatus.WITHDRAWN,
    (LevelStatus.RECOVERY, LevelEvent.PASS): LevelStatus.AWAITING_RENEWAL,
    (LevelStatus.RECOVERY, LevelEvent.COMPLETE): LevelStatus.PASSED,
    (LevelStatus.RECOVERY, LevelEvent.FAIL): LevelStatus.FAILED,
    (LevelStatus.RECOVERY, LevelEvent.WITHDRAW): LevelStatus.WITHDRAWN,
    (LevelStatus.AWAITING_RENEWAL, LevelEvent.RENEW): LevelStatus.PASSED,
}

# Labels shown on the student dashboard
STATUS_LABELS_PT: dict[LevelStatus, str] = {
    LevelStatus.IN_PROGRESS: "Em curso",
    LevelStatus.RECOVERY: "Recuperação",
    LevelStatus.AWAITING_RENEWAL: "✓ Pronto p/ renovar",
    LevelStatus.PASSED: "Aprovado",
    LevelStatus.FAILED: "Reprovado",
    LevelStatus.WITHDRAWN: "Desistente",
}


def next_status(current: LevelStatus, event: LevelEvent) -> LevelStatus:
    """Resolve the status reached from current through event.

    Raises:
        InconsistentStateError: If the transition is not in the table
    """
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InconsistentStateError(
            f"Transition not allowed: {current.value} --{event.value}-->"
        ) from None


def pass_event(has_next_level: bool) -> LevelEvent:
    """Event for a passing evaluation."""
    return LevelEvent.PASS if has_next_level else LevelEvent.COMPLETE


def effective_status(status: str, renewal_pending: bool) -> LevelStatus:
    """Fold the stored status column and renewal marker into one status."""
    stored = LevelStatus(status)
    if stored == LevelStatus.PASSED and renewal_pending:
        return LevelStatus.AWAITING_RENEWAL
    return stored


def storage_fields(status: LevelStatus) -> tuple[str, bool]:
    """Split an effective status into (status column, renewal_pending)."""
    if status == LevelStatus.AWAITING_RENEWAL:
        return LevelStatus.PASSED.value, True
    return status.value, False


def status_label(status: LevelStatus) -> str:
    """Portuguese label for a status."""
    return STATUS_LABELS_PT.get(status, status.value)
