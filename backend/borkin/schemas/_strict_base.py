"""Strict schema baselines with forbidden extras by default."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Neutral strict base for response DTOs."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, str_strip_whitespace=True)


def money_to_float(value: object) -> Optional[float]:
    """Render stored Numeric amounts (major units) as JSON numbers."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return float(Decimal(str(value)))
