"""
Trip-completion fare adjustment
===============================

Formula
-------
extra_km        = max(0, actual_km - estimated_km)
extra_km_charge = extra_km x rate_per_km
adjustments     = extra_km_charge + toll + waiting
new_total       = original_total + adjustments

``actual_km`` falls back to the estimate and ``rate_per_km`` to the
configured default when not supplied.  Pure function, no I/O.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

from .enums import AdjustmentType
from .errors import ValidationError

DEFAULT_RATE_PER_KM = 12.0


@dataclass(frozen=True)
class FareBreakdown:
    estimated_km: float
    actual_km: float
    extra_km: float
    rate_per_km: float
    extra_km_charge: float
    toll_charges: float
    waiting_charges: float
    total_adjustments: float
    new_total: float

    def line_items(self) -> list[tuple[AdjustmentType, float, str]]:
        """One (type, amount, description) entry per positive charge."""
        items = []
        if self.extra_km_charge > 0:
            items.append(
                (
                    AdjustmentType.EXTRA_KM,
                    self.extra_km_charge,
                    f"Extra {self.extra_km:.1f} km @ ₹{self.rate_per_km:g}/km",
                )
            )
        if self.toll_charges > 0:
            items.append((AdjustmentType.TOLL, self.toll_charges, "Toll charges"))
        if self.waiting_charges > 0:
            items.append(
                (AdjustmentType.WAITING, self.waiting_charges, "Waiting charges")
            )
        return items

    def summary(self) -> dict:
        """The caller-facing adjustments breakdown."""
        data = asdict(self)
        return {
            key: data[key]
            for key in (
                "extra_km",
                "extra_km_charge",
                "toll_charges",
                "waiting_charges",
                "total_adjustments",
                "new_total",
            )
        }


def _non_negative(name: str, value: Optional[float]) -> None:
    if value is not None and value < 0:
        raise ValidationError(f"{name} cannot be negative")


def compute_fare_adjustment(
    total_amount: float,
    estimated_km: Optional[float],
    *,
    actual_km: Optional[float] = None,
    rate_per_km: Optional[float] = None,
    toll_charges: Optional[float] = None,
    waiting_charges: Optional[float] = None,
    default_rate_per_km: float = DEFAULT_RATE_PER_KM,
) -> FareBreakdown:
    _non_negative("actual_km", actual_km)
    _non_negative("rate_per_km", rate_per_km)
    _non_negative("toll_charges", toll_charges)
    _non_negative("waiting_charges", waiting_charges)

    estimated = estimated_km or 0.0
    actual = estimated if actual_km is None else actual_km
    extra_km = max(0.0, actual - estimated)
    rate = default_rate_per_km if rate_per_km is None else rate_per_km
    extra_km_charge = extra_km * rate
    toll = toll_charges or 0.0
    waiting = waiting_charges or 0.0

    adjustments = extra_km_charge + toll + waiting
    return FareBreakdown(
        estimated_km=estimated,
        actual_km=actual,
        extra_km=extra_km,
        rate_per_km=rate,
        extra_km_charge=extra_km_charge,
        toll_charges=toll,
        waiting_charges=waiting,
        total_adjustments=adjustments,
        new_total=total_amount + adjustments,
    )
