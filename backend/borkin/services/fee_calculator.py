"""
Fee calculations for booking payments.

Pure functions over integer cents. Two fee structures coexist:

* fees on top (canonical): the contractor's base service amount is transferred
  unchanged and the platform fee and processor fee are billed to the client on
  top of it;
* legacy: the charged amount already includes fees, so both are subtracted from
  it to derive the transfer.

Rounding is half-up to the cent, matching how the processor rounds fees.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

from ..core.exceptions import FeeComputationException, ValidationException

Money = Union[Decimal, float, int, str]

_ONE = Decimal("1")
_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class FeeSchedule:
    """Rates used for fee computation; injected from settings at startup."""

    platform_fee_rate: Decimal
    processor_fee_rate: Decimal
    processor_fixed_fee_cents: int

    @classmethod
    def from_percentages(
        cls,
        platform_fee_percentage: Money,
        processor_fee_percentage: Money,
        processor_fixed_fee_cents: int,
    ) -> "FeeSchedule":
        return cls(
            platform_fee_rate=Decimal(str(platform_fee_percentage)) / _HUNDRED,
            processor_fee_rate=Decimal(str(processor_fee_percentage)) / _HUNDRED,
            processor_fixed_fee_cents=int(processor_fixed_fee_cents),
        )

    @classmethod
    def from_settings(cls, config: Any) -> "FeeSchedule":
        return cls.from_percentages(
            config.platform_fee_percentage,
            config.processor_fee_percentage,
            config.processor_fixed_fee_cents,
        )


DEFAULT_FEE_SCHEDULE = FeeSchedule(
    platform_fee_rate=Decimal("0.05"),
    processor_fee_rate=Decimal("0.029"),
    processor_fixed_fee_cents=30,
)


@dataclass(frozen=True)
class FeeBreakdown:
    """Result of a fee computation, all values in cents."""

    amount_cents: int
    base_service_amount_cents: Optional[int]
    platform_fee_cents: int
    processor_fee_cents: int
    transfer_amount_cents: int

    @property
    def application_fee_cents(self) -> int:
        """What the platform retains from the charge after the transfer."""
        return self.amount_cents - self.transfer_amount_cents

    @property
    def is_legacy(self) -> bool:
        return self.base_service_amount_cents is None

    def ensure_transferable(self) -> "FeeBreakdown":
        if self.transfer_amount_cents <= 0:
            raise FeeComputationException(self.amount_cents, self.transfer_amount_cents)
        return self

    def as_metadata(self) -> Dict[str, str]:
        """Stripe metadata values must be strings."""
        metadata = {key: str(value) for key, value in asdict(self).items() if value is not None}
        metadata["fee_structure"] = "legacy" if self.is_legacy else "fees_on_top"
        return metadata


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def _require_non_negative(name: str, value: int) -> None:
    if value < 0:
        raise ValidationException(
            f"{name} must be non-negative",
            code="NEGATIVE_AMOUNT",
            details={name: value},
        )


def to_cents(amount: Money) -> int:
    """Convert a major-unit amount (e.g. dollars) to integer cents."""
    try:
        return _round_cents(Decimal(str(amount)) * _HUNDRED)
    except InvalidOperation as exc:
        raise ValidationException(
            "Invalid monetary amount", code="INVALID_AMOUNT", details={"amount": str(amount)}
        ) from exc


def to_major_units(cents: int) -> Decimal:
    return (Decimal(int(cents)) / _HUNDRED).quantize(_CENT, rounding=ROUND_HALF_UP)


def platform_fee_cents(amount_cents: int, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE) -> int:
    _require_non_negative("amount_cents", amount_cents)
    return _round_cents(Decimal(amount_cents) * schedule.platform_fee_rate)


def processor_fee_cents(amount_cents: int, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE) -> int:
    """Estimated card processing fee; the actual fee is only known after settlement."""
    _require_non_negative("amount_cents", amount_cents)
    return _round_cents(
        Decimal(amount_cents) * schedule.processor_fee_rate + schedule.processor_fixed_fee_cents
    )


def transfer_amount_cents(
    amount_cents: int,
    base_service_amount_cents: Optional[int] = None,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> int:
    """Portion of the charge routed to the contractor."""
    if base_service_amount_cents is not None:
        _require_non_negative("base_service_amount_cents", base_service_amount_cents)
        return base_service_amount_cents
    return (
        amount_cents
        - platform_fee_cents(amount_cents, schedule)
        - processor_fee_cents(amount_cents, schedule)
    )


def compute_fees(
    amount_cents: int,
    base_service_amount_cents: Optional[int] = None,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> FeeBreakdown:
    """
    Compute the fee breakdown for a charge.

    With a base service amount, fees are computed on the base and the transfer
    equals the base. Without one (legacy bookings) fees are computed on, and
    subtracted from, the charged amount.
    """
    _require_non_negative("amount_cents", amount_cents)
    if base_service_amount_cents is not None:
        _require_non_negative("base_service_amount_cents", base_service_amount_cents)
        if base_service_amount_cents > amount_cents:
            raise ValidationException(
                "Base service amount cannot exceed the charged amount",
                code="BASE_EXCEEDS_AMOUNT",
                details={
                    "amount_cents": amount_cents,
                    "base_service_amount_cents": base_service_amount_cents,
                },
            )
        fee_basis = base_service_amount_cents
    else:
        fee_basis = amount_cents

    return FeeBreakdown(
        amount_cents=amount_cents,
        base_service_amount_cents=base_service_amount_cents,
        platform_fee_cents=platform_fee_cents(fee_basis, schedule),
        processor_fee_cents=processor_fee_cents(fee_basis, schedule),
        transfer_amount_cents=transfer_amount_cents(
            amount_cents, base_service_amount_cents, schedule
        ),
    )


def client_total_cents(
    base_service_amount_cents: int, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE
) -> int:
    """What the client pays when fees are layered on top of the base amount."""
    return (
        base_service_amount_cents
        + platform_fee_cents(base_service_amount_cents, schedule)
        + processor_fee_cents(base_service_amount_cents, schedule)
    )


def net_payout(total_amount: Money, platform_fee: Money, stripe_fee: Money) -> Decimal:
    """Net payout in major units: total minus platform fee minus processor fee."""
    return (Decimal(str(total_amount)) - Decimal(str(platform_fee)) - Decimal(str(stripe_fee))).quantize(
        _CENT, rounding=ROUND_HALF_UP
    )


def quote_fees(
    base_service_amount_cents: int, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE
) -> Dict[str, int]:
    """Client-facing price breakdown for a contractor's base amount."""
    total = client_total_cents(base_service_amount_cents, schedule)
    fees = compute_fees(total, base_service_amount_cents, schedule)
    return {
        "base_service_amount_cents": base_service_amount_cents,
        "platform_fee_cents": fees.platform_fee_cents,
        "processor_fee_cents": fees.processor_fee_cents,
        "client_total_cents": total,
        "transfer_amount_cents": fees.transfer_amount_cents,
    }
