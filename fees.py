"""
Fixed-percentage split of a booking amount.

The split is computed for display and for the worker payout on a payment;
it is never stored as separate fee rows.
"""

FEE_RATES = {
    "platform_fee": 0.01,
    "welfare_fund": 0.07,
    "insurance": 0.05,
    "tax": 0.02,
}

WITHDRAWAL_FEE_RATE = 0.02


def fee_breakdown(amount):
    """Split ``amount`` into fees and what the worker earns.

    Each fee is rounded to 2 decimals; ``worker_earns`` takes the remainder
    so the parts always add up to the amount.
    """
    amount = round(float(amount or 0), 2)
    parts = {name: round(amount * rate, 2) for name, rate in FEE_RATES.items()}
    total_fees = round(sum(parts.values()), 2)
    parts["total_fees"] = total_fees
    parts["worker_earns"] = round(amount - total_fees, 2)
    parts["amount"] = amount
    return parts


def worker_payout(amount):
    return fee_breakdown(amount)["worker_earns"]


def withdrawal_fee(requested_amount):
    """Return ``(fee, net_amount)`` for a withdrawal request."""
    requested_amount = round(float(requested_amount), 2)
    fee = round(requested_amount * WITHDRAWAL_FEE_RATE, 2)
    return fee, round(requested_amount - fee, 2)
