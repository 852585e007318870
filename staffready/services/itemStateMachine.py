"""
Checklist Item State Machine
============================

Finite state machine governing every checklist item status change.  Each
status change made by the submission/review workflow or the expiration
sweep goes through ``validate_item_transition`` before being persisted.

State machine overview::

    not_started --> submitted --> approved --> expired
         |              |  ^
         |              v  |
         |           rejected
         |
         +--> approved            (e-signature / admin status auto-approval)

    pending_review behaves like submitted (legacy imports land there).
    expired is terminal; re-issuing an item is a template-level action.

Each trigger (submission, review, expiration) may only produce its own
target statuses.  Actor permissions are checked by the workflow services.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from staffready.models import ChecklistItemStatus


class TransitionTrigger(str, enum.Enum):
    SUBMISSION = "submission"
    REVIEW = "review"
    EXPIRATION = "expiration"


@dataclass(frozen=True)
class TransitionResult:
    """Result of a transition validation attempt."""
    allowed: bool
    reason: str | None = None


S = ChecklistItemStatus

VALID_TRANSITIONS: dict[ChecklistItemStatus, frozenset[ChecklistItemStatus]] = {
    S.NOT_STARTED: frozenset({S.SUBMITTED, S.APPROVED}),
    S.SUBMITTED: frozenset({S.SUBMITTED, S.APPROVED, S.REJECTED}),
    S.PENDING_REVIEW: frozenset({S.SUBMITTED, S.APPROVED, S.REJECTED}),
    S.REJECTED: frozenset({S.SUBMITTED, S.APPROVED}),
    S.APPROVED: frozenset({S.EXPIRED}),
    S.EXPIRED: frozenset(),
}

# Statuses an admin decision may be applied to
REVIEWABLE_STATUSES: frozenset[ChecklistItemStatus] = frozenset({
    S.SUBMITTED,
    S.PENDING_REVIEW,
})

# Statuses a clinician (or admin) may submit a value from
SUBMITTABLE_STATUSES: frozenset[ChecklistItemStatus] = frozenset({
    S.NOT_STARTED,
    S.SUBMITTED,
    S.PENDING_REVIEW,
    S.REJECTED,
})

# Which trigger may produce each target status
_TRIGGER_TARGETS: dict[TransitionTrigger, frozenset[ChecklistItemStatus]] = {
    TransitionTrigger.SUBMISSION: frozenset({S.SUBMITTED, S.APPROVED}),
    TransitionTrigger.REVIEW: frozenset({S.APPROVED, S.REJECTED}),
    TransitionTrigger.EXPIRATION: frozenset({S.EXPIRED}),
}


def _format(statuses: frozenset[ChecklistItemStatus]) -> str:
    return ", ".join(s.value for s in sorted(statuses, key=lambda s: s.value)) or "none"


def validate_item_transition(
    current_status: ChecklistItemStatus,
    new_status: ChecklistItemStatus,
    trigger: TransitionTrigger,
) -> TransitionResult:
    """Validate whether an item status transition is allowed.

    Checks two layers:
    1. Is the transition structurally valid per the state machine?
    2. May this trigger produce the target status at all?
    """
    if trigger == TransitionTrigger.REVIEW and current_status not in REVIEWABLE_STATUSES:
        return TransitionResult(
            allowed=False,
            reason=(
                f'Cannot review item with status "{current_status.value}". '
                "Item must be submitted first."
            ),
        )

    if trigger == TransitionTrigger.SUBMISSION and current_status not in SUBMITTABLE_STATUSES:
        if current_status == S.APPROVED:
            reason = "Item already approved; contact an admin to re-open it."
        else:
            reason = f'Cannot submit item with status "{current_status.value}".'
        return TransitionResult(allowed=False, reason=reason)

    allowed_targets = VALID_TRANSITIONS.get(current_status, frozenset())
    if new_status not in allowed_targets:
        return TransitionResult(
            allowed=False,
            reason=(
                f"Invalid transition: '{current_status.value}' -> '{new_status.value}'. "
                f"Allowed transitions from '{current_status.value}': {_format(allowed_targets)}."
            ),
        )

    if new_status not in _TRIGGER_TARGETS[trigger]:
        return TransitionResult(
            allowed=False,
            reason=f"A {trigger.value} cannot move an item to '{new_status.value}'.",
        )

    return TransitionResult(allowed=True)


def get_valid_transitions(
    current_status: ChecklistItemStatus,
    trigger: TransitionTrigger,
) -> list[ChecklistItemStatus]:
    """Statuses reachable from ``current_status`` by the given trigger."""
    candidates = VALID_TRANSITIONS.get(current_status, frozenset())
    valid = [
        target
        for target in candidates
        if validate_item_transition(current_status, target, trigger).allowed
    ]
    return sorted(valid, key=lambda s: s.value)
