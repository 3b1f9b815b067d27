"""Challenge records (Pydantic models).

A challenge moves forward only: `pending_payment → active → {completed, failed, expired}`.
`expired` is reachable only from `pending_payment` (the escrow invoice lapsed before payment).
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(UTC)


class ChallengeStateError(ValueError):
    """Raised when a transition is not allowed from the challenge's current status."""


class ChallengeNotFoundError(LookupError):
    """Raised when a challenge id is unknown to the store."""


class DuplicateChallengeError(ValueError):
    """Raised when an owner who still has an open challenge tries to start another one."""


class ChallengeStatus(StrEnum):
    """Lifecycle states."""

    pending_payment = "pending_payment"
    active = "active"
    completed = "completed"
    failed = "failed"
    expired = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: frozenset[ChallengeStatus] = frozenset(
    {ChallengeStatus.completed, ChallengeStatus.failed, ChallengeStatus.expired}
)

ALLOWED_TRANSITIONS: dict[ChallengeStatus, frozenset[ChallengeStatus]] = {
    ChallengeStatus.pending_payment: frozenset({ChallengeStatus.active, ChallengeStatus.expired}),
    ChallengeStatus.active: frozenset({ChallengeStatus.completed, ChallengeStatus.failed}),
    ChallengeStatus.completed: frozenset(),
    ChallengeStatus.failed: frozenset(),
    ChallengeStatus.expired: frozenset(),
}


class ChallengeKind(StrEnum):
    """Who puts money at stake."""

    penalty = "penalty"
    bounty = "bounty"


class Exercise(BaseModel):
    description: str
    normalized_type: str
    count_per_period: int
    frequency: str = "daily"
    full_description: str


class Duration(BaseModel):
    """Challenge length in days; dates are filled once, on activation."""

    days: int = Field(ge=1)
    start_date: datetime | None = None
    end_date: datetime | None = None


class Penalty(BaseModel):
    amount_sats: int = Field(ge=1)
    recipient_identity: str
    recipient_identity_key: str | None = None


class BountyPledge(BaseModel):
    """A recorded pledge; payout/refund splitting is not modelled."""

    contributor_identity: str
    amount_sats: int = Field(ge=1)
    payment_request: str | None = None
    payment_hash: str | None = None
    pledged_at: datetime = Field(default_factory=utc_now)


class Bounty(BaseModel):
    amount_sats: int = 0
    contributors: list[BountyPledge] = Field(default_factory=list)


class Escrow(BaseModel):
    invoice_reference: str | None = None
    payment_hash: str | None = None
    payment_confirmation_id: str | None = None
    paid: bool = False
    settlement_reference: str | None = None


class DailyProgress(BaseModel):
    completed: bool
    proof_reference: str | None = None
    recorded_at: datetime = Field(default_factory=utc_now)


class MessageOrigin(BaseModel):
    """The post that created the challenge."""

    message_id: str | None = None
    relay_origin: str | None = None
    original_text: str | None = None


class Challenge(BaseModel):
    """A fitness commitment backed by escrowed sats (penalty) or pledges (bounty)."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    kind: ChallengeKind
    owner_identity: str
    exercise: Exercise
    duration: Duration
    penalty: Penalty | None = None
    bounty: Bounty | None = None
    status: ChallengeStatus = ChallengeStatus.pending_payment
    escrow: Escrow = Field(default_factory=Escrow)
    daily_progress: dict[int, DailyProgress] = Field(default_factory=dict)
    origin: MessageOrigin = Field(default_factory=MessageOrigin)
    created_at: datetime = Field(default_factory=utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def completed_days(self) -> int:
        return sum(1 for progress in self.daily_progress.values() if progress.completed)

    def transition(self, target: ChallengeStatus) -> None:
        """Move to `target`, enforcing forward-only transitions."""

        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise ChallengeStateError(
                f"cannot move challenge {self.id} from {self.status} to {target}"
            )
        self.status = target

    def mark_activated(self, payment_confirmation_id: str | None, now: datetime) -> None:
        """Activate: escrow is paid, and start/end dates are fixed exactly once."""

        self.transition(ChallengeStatus.active)
        self.escrow.paid = True
        self.escrow.payment_confirmation_id = payment_confirmation_id
        self.started_at = now
        self.duration.start_date = now
        self.duration.end_date = now + timedelta(days=self.duration.days)
