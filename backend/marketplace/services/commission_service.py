# Overview: Service-layer operations for commission; pure money arithmetic, no database work.

"""
Commission Calculator

WHY: Every settlement splits a gross amount into the platform's commission and
the beneficiary's payable amount. Keeping the arithmetic in one pure function
makes the split identical wherever money is settled (delivery payouts, invoice
payouts, tailor batch payouts).

RULES:
- Amounts are integer cents; rates are integer basis points (500 = 5%)
- Commission is rounded half-up to the cent
- payable = amount - commission, so commission + payable == amount exactly
- Rates come from Config.COMMISSION_RATES_BPS per settlement context
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import ValidationError


BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class CommissionSplit:
    amount_cents: int
    rate_bps: int
    commission_cents: int
    payable_cents: int

    def to_dict(self) -> dict:
        return {
            "gross_amount_cents": self.amount_cents,
            "commission_rate_bps": self.rate_bps,
            "platform_commission_cents": self.commission_cents,
            "payable_amount_cents": self.payable_cents,
        }


def _require_non_negative_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer number of cents")
    if value < 0:
        raise ValidationError(f"{name} must be >= 0")
    return value


def calculate_commission(amount_cents: int, rate_bps: int) -> CommissionSplit:
    """
    Split amount_cents at rate_bps.

    Half-up rounding on integers: (amount * bps + 5000) // 10000.
    Example: 100000 cents at 500 bps -> commission 5000, payable 95000.
    """
    amount_cents = _require_non_negative_int("amount_cents", amount_cents)
    rate_bps = _require_non_negative_int("rate_bps", rate_bps)
    if rate_bps > BPS_DENOMINATOR:
        raise ValidationError("rate_bps cannot exceed 10000 (100%)")

    commission = (amount_cents * rate_bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR
    return CommissionSplit(
        amount_cents=amount_cents,
        rate_bps=rate_bps,
        commission_cents=commission,
        payable_cents=amount_cents - commission,
    )


def rate_for_context(context: str) -> int:
    rates = current_app.config.get("COMMISSION_RATES_BPS") or {}
    if context not in rates:
        raise ValidationError(f"Unknown settlement context: {context}")
    return int(rates[context])


def commission_for_context(amount_cents: int, context: str) -> CommissionSplit:
    """Split amount_cents at the configured rate of a settlement context."""
    return calculate_commission(amount_cents, rate_for_context(context))
