"""Payout incentive calculation.

Rules run in a fixed order; the cap is computed against the post-bonus
incentive.

1. bonus_on_high_base: base above 100,000 earns a 10% incentive bonus.
2. cap_at_20_percent: incentive may not exceed 20% of base.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

RULE_SET_VERSION = "v1"

HIGH_BASE_THRESHOLD = Decimal("100000")
HIGH_BASE_MULTIPLIER = Decimal("1.10")
INCENTIVE_CAP_RATIO = Decimal("0.20")

RULE_BONUS_ON_HIGH_BASE = "bonus_on_high_base"
RULE_CAP_AT_20_PERCENT = "cap_at_20_percent"

CENTS = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PayoutCalculation:
    base_amount: Decimal
    incentive_amount: Decimal
    deduction_amount: Decimal
    recovery_amount: Decimal
    net_amount: Decimal
    trace: dict[str, Any]


def calculate_payout(
    base_amount: Decimal,
    incentive_amount: Decimal,
    deduction_amount: Decimal = Decimal("0"),
    recovery_amount: Decimal = Decimal("0"),
    now: Optional[datetime] = None,
) -> PayoutCalculation:
    """
    Apply the payout rule set to one row's amounts.

    Args:
        base_amount: Base payout
        incentive_amount: Incentive claimed in the file
        deduction_amount: Deduction to subtract from the net amount
        recovery_amount: Recovery to subtract from the net amount
        now: Calculation time recorded in the trace (defaults to current UTC time)

    Returns:
        PayoutCalculation with monetary fields rounded to cents and the trace
    """
    rules_applied = []
    incentive = incentive_amount

    if base_amount > HIGH_BASE_THRESHOLD:
        incentive = incentive * HIGH_BASE_MULTIPLIER
        rules_applied.append(RULE_BONUS_ON_HIGH_BASE)

    cap = base_amount * INCENTIVE_CAP_RATIO
    if incentive > cap:
        incentive = cap
        rules_applied.append(RULE_CAP_AT_20_PERCENT)

    incentive = to_money(incentive)
    net_amount = to_money(base_amount + incentive - deduction_amount - recovery_amount)
    calculated_at = now or datetime.now(timezone.utc)

    trace = {
        "rule_set_version": RULE_SET_VERSION,
        "base_amount": str(to_money(base_amount)),
        "original_incentive": str(to_money(incentive_amount)),
        "calculated_incentive": str(incentive),
        "deduction_amount": str(to_money(deduction_amount)),
        "recovery_amount": str(to_money(recovery_amount)),
        "net_amount": str(net_amount),
        "rules_applied": rules_applied,
        "calculation_timestamp": calculated_at.isoformat(),
    }
    return PayoutCalculation(
        base_amount=to_money(base_amount),
        incentive_amount=incentive,
        deduction_amount=to_money(deduction_amount),
        recovery_amount=to_money(recovery_amount),
        net_amount=net_amount,
        trace=trace,
    )
