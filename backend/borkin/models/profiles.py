"""
Profile models holding processor references.

Each profile stores at most one processor identifier together with the
environment (test/live) it was created in. An identifier whose mode differs
from the running environment is never reused.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from borkin.database import Base


class ContractorProfile(Base):
    """Service provider; receives transfers through a connected payout account."""

    __tablename__ = "contractor_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    stripe_account_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    stripe_account_mode: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    stripe_account_created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<ContractorProfile(id={self.id}, account={self.stripe_account_id}, mode={self.stripe_account_mode})>"


class ClientProfile(Base):
    """Pet owner; pays through a processor customer record."""

    __tablename__ = "client_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    stripe_customer_mode: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    stripe_customer_created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<ClientProfile(id={self.id}, customer={self.stripe_customer_id}, mode={self.stripe_customer_mode})>"
