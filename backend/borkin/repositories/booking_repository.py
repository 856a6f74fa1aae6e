# backend/borkin/repositories/booking_repository.py
"""
Booking Repository for the Borkin platform.

Bookings are read and written as whole rows. Every write goes through
``apply_versioned`` so a concurrent edit surfaces as StaleBookingException
instead of silently overwriting the other request's changes.
"""

import logging
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.enums import PaymentStatus
from ..core.exceptions import RepositoryException, StaleBookingException
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def get_fresh(self, booking_id: str) -> Optional[Booking]:
        """Load the booking bypassing the session identity map."""
        try:
            return (
                self.db.query(Booking)
                .populate_existing()
                .filter(Booking.id == booking_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error re-reading booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve Booking: {str(e)}")

    def apply_versioned(self, booking: Booking, **fields: Any) -> Booking:
        """Write fields guarded by the booking's version column."""
        # A failed flush leaves the instance unreadable until rollback
        booking_id = booking.id
        try:
            for key, value in fields.items():
                setattr(booking, key, value)
            self.db.flush()
            return booking
        except StaleDataError as exc:
            self.logger.warning(
                "Version conflict writing booking %s (fields=%s)", booking_id, sorted(fields)
            )
            raise StaleBookingException(booking_id) from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to update Booking: {str(e)}")

    def get_paid_bookings_for_client(self, client_id: str) -> List[Booking]:
        """Paid bookings for a client, newest start date first."""
        query = (
            self._build_query()
            .filter(
                Booking.client_id == client_id,
                Booking.payment_status == PaymentStatus.PAID.value,
            )
            .order_by(Booking.start_date.desc(), Booking.created_at.desc())
        )
        return self._execute_query(query)
