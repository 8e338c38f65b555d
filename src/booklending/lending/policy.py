"""Penalty and reward arithmetic applied when a loan is returned.

Rates are basis points of the deposit. Late and damage rates are summed
and the sum is capped, so a damaged book returned late never forfeits more
than ``max_rate_bp`` of the deposit. Penalties are floored to whole base
units, which keeps ``refund + penalty == deposit`` exact.
"""

from dataclasses import dataclass

from ..db.schemas import BookCondition
from ..errors import ValidationError

BASIS_POINTS = 10_000


@dataclass(frozen=True)
class PenaltyPolicy:
    """Tunable settlement parameters."""

    late_rate_bp_per_day: int = 500
    damage_rate_bp: int = 5000
    max_rate_bp: int = BASIS_POINTS
    lender_reward: int = 10
    borrower_reward: int = 2
    seconds_per_day: int = 86400

    def __post_init__(self) -> None:
        """Reject parameters that could forfeit more than the deposit.

        Raises:
            ValidationError: Any field is out of range
        """
        for name in (
            "late_rate_bp_per_day",
            "damage_rate_bp",
            "max_rate_bp",
            "lender_reward",
            "borrower_reward",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValidationError(f"{name} must be a non-negative integer, got {value!r}")
        if self.max_rate_bp > BASIS_POINTS:
            raise ValidationError(
                f"max_rate_bp cannot exceed {BASIS_POINTS}, got {self.max_rate_bp}"
            )
        day = self.seconds_per_day
        if isinstance(day, bool) or not isinstance(day, int) or day <= 0:
            raise ValidationError(f"seconds_per_day must be positive, got {self.seconds_per_day!r}")


@dataclass(frozen=True)
class SettlementTerms:
    """Outcome of the settlement computation for one return."""

    late_days: int
    late_rate_bp: int
    damage_rate_bp: int
    penalty_rate_bp: int
    penalty_amount: int
    refund_amount: int
    lender_reward: int
    borrower_reward: int

    @property
    def on_time(self) -> bool:
        return self.late_days == 0


def late_days_for(deadline: int, now: int, seconds_per_day: int = 86400) -> int:
    """Days late, counting any started day as a full day."""
    overdue = now - deadline
    if overdue <= 0:
        return 0
    return -(-overdue // seconds_per_day)


def compute_settlement(
    policy: PenaltyPolicy,
    deposit_paid: int,
    deadline: int,
    now: int,
    condition_after: BookCondition,
) -> SettlementTerms:
    """Compute refund, penalty and rewards for a return.

    Only the loan's own inputs are used (deposit paid and deadline), never
    the book's current terms.
    """
    late_days = late_days_for(deadline, now, policy.seconds_per_day)
    late_rate = min(policy.max_rate_bp, policy.late_rate_bp_per_day * late_days)
    damaged = condition_after == BookCondition.DAMAGED
    damage_rate = policy.damage_rate_bp if damaged else 0
    total_rate = min(policy.max_rate_bp, late_rate + damage_rate)

    penalty = deposit_paid * total_rate // BASIS_POINTS
    refund = deposit_paid - penalty

    borrower_reward = policy.borrower_reward if late_days == 0 and not damaged else 0

    return SettlementTerms(
        late_days=late_days,
        late_rate_bp=late_rate,
        damage_rate_bp=damage_rate,
        penalty_rate_bp=total_rate,
        penalty_amount=penalty,
        refund_amount=refund,
        lender_reward=policy.lender_reward,
        borrower_reward=borrower_reward,
    )
