# backend/borkin/services/base.py
"""
Base class for Borkin payment services.

Every service gets:
- a shared SQLAlchemy session and a ``transaction()`` boundary
- a class-named logger
- ``@BaseService.measure_operation`` timing, exported to Prometheus and kept
  in-process for ``get_metrics()``
"""

from contextlib import contextmanager
from dataclasses import dataclass
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Operations slower than this are logged as warnings
SLOW_OPERATION_SECONDS = 1.0


@dataclass
class OperationStats:
    count: int = 0
    failures: int = 0
    total_time: float = 0.0
    min_time: float = float("inf")
    max_time: float = 0.0

    def observe(self, elapsed: float, success: bool) -> None:
        self.count += 1
        self.total_time += elapsed
        self.min_time = min(self.min_time, elapsed)
        self.max_time = max(self.max_time, elapsed)
        if not success:
            self.failures += 1

    def summary(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "avg_time": self.total_time / self.count,
            "min_time": self.min_time,
            "max_time": self.max_time,
            "success_rate": (self.count - self.failures) / self.count,
            "failure_count": self.failures,
        }


class BaseService:
    """Common plumbing for services that own a unit of work on the session."""

    # service class name -> operation name -> stats
    _class_metrics: Dict[str, Dict[str, OperationStats]] = {}

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on exit, roll back on any error.

        Database errors are re-raised as ServiceException; domain errors raised
        inside the block propagate unchanged after the rollback.
        """
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(f"Transaction rolled back after database error: {str(e)}")
            raise ServiceException(f"Database operation failed: {str(e)}") from e
        except Exception as e:
            self.db.rollback()
            self.logger.debug("Transaction rolled back: %s", type(e).__name__)
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a service method.

        Usage:
            @BaseService.measure_operation("capture_booking_payment")
            def capture_booking_payment(self, booking_id):
                ...
        """

        def decorator(func: F) -> F:
            func._operation_name = operation_name  # type: ignore[attr-defined]

            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    self._observe(operation_name, time.perf_counter() - started, error_type)

            return cast(F, wrapper)

        return decorator

    def _observe(self, operation: str, elapsed: float, error_type: Optional[str]) -> None:
        service_name = self.__class__.__name__
        stats = BaseService._class_metrics.setdefault(service_name, {}).setdefault(
            operation, OperationStats()
        )
        stats.observe(elapsed, success=error_type is None)

        if elapsed > SLOW_OPERATION_SECONDS:
            self.logger.warning(f"Slow operation detected: {operation} took {elapsed:.2f}s")

        try:
            prometheus_metrics.record_service_operation(
                service=service_name,
                operation=operation,
                duration=elapsed,
                status="error" if error_type else "success",
                error_type=error_type,
            )
        except Exception as metrics_error:
            # Metrics must never fail the payment operation itself
            logger.debug("Failed to record metrics: %s", metrics_error)

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Per-operation timing summary for this service class."""
        operations = BaseService._class_metrics.get(self.__class__.__name__, {})
        return {name: stats.summary() for name, stats in operations.items() if stats.count}
