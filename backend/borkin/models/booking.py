# backend/borkin/models/booking.py
"""
Booking model for the Borkin platform.

A booking is one engagement between a client (pet owner) and a contractor
(service provider). Money columns are stored in major currency units; the
processor works in cents and conversion happens in the fee calculator.

Concurrent edits are guarded by ``version``: SQLAlchemy adds it to the WHERE
clause of every UPDATE and raises StaleDataError when another request won.
"""

from typing import Any

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func
import ulid

from ..core.enums import BookingStatus, PaymentStatus
from ..database import Base


class Booking(Base):
    """Engagement record plus its payment bookkeeping."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # References to profile documents
    client_id = Column(String(64), nullable=False, index=True)
    contractor_id = Column(String(64), nullable=False, index=True)

    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)

    # Commercial terms (major units)
    payment_amount = Column(Numeric(10, 2), nullable=False)
    base_service_amount = Column(
        Numeric(10, 2), nullable=True, comment="Contractor's nominal price; NULL on legacy bookings"
    )
    platform_fee = Column(Numeric(10, 2), nullable=True)
    stripe_fee = Column(Numeric(10, 2), nullable=True, comment="Actual processor fee once settled")
    net_payout = Column(Numeric(10, 2), nullable=True)

    # Payment linkage
    payment_intent_id = Column(String(255), nullable=True, comment="Current Stripe payment intent")
    payment_status = Column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True
    )

    # Completion tracking
    client_completed = Column(Boolean, nullable=False, default=False)
    contractor_completed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("payment_amount >= 0", name="ck_bookings_payment_amount_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'failed', 'cancelled')",
            name="ck_bookings_payment_status",
        ),
    )

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("status", BookingStatus.PENDING.value)
        kwargs.setdefault("payment_status", PaymentStatus.PENDING.value)
        kwargs.setdefault("client_completed", False)
        kwargs.setdefault("contractor_completed", False)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, status={self.status}, payment_status={self.payment_status}, "
            f"amount={self.payment_amount})>"
        )

    @property
    def both_parties_completed(self) -> bool:
        return bool(self.client_completed) and bool(self.contractor_completed)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value
