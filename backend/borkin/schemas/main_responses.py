"""Infrastructure response models."""

from pydantic import ConfigDict, Field

from ._strict_base import StrictModel


class HealthResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True)
    """Response for health check endpoint."""

    status: str = Field(description="Health status")
    service: str = Field(description="Service name")
    version: str = Field(description="API version")
    environment: str = Field(description="Environment name")
    payment_mode: str = Field(description="Stripe mode the configured key operates in")
    timestamp: str = Field(description="UTC ISO8601Z timestamp of the health response")
