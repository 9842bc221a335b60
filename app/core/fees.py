from __future__ import annotations

PAID = 'Paid'
PARTIALLY_PAID = 'Partially Paid'
PENDING = 'Pending'


def derive_payment_status(total_amount: float, paid_amount: float) -> str:
    total = float(total_amount or 0)
    paid = float(paid_amount or 0)
    if paid > 0 and paid >= total:
        return PAID
    if paid > 0:
        return PARTIALLY_PAID
    return PENDING


def suggested_transport_fee(distance_km: float | None, rate_per_km: float) -> float:
    distance = float(distance_km or 0)
    if distance <= 0:
        return 0.0
    return distance * float(rate_per_km)


def balance_due(total_amount: float, paid_amount: float) -> float:
    return max(0.0, float(total_amount or 0) - float(paid_amount or 0))
