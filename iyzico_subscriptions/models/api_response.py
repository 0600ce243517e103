"""API response models for the webhook and health endpoints."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class WebhookResponse(BaseModel):
    """Body returned to the payment provider for every webhook delivery."""

    success: bool = Field(..., description="Whether the event was handled")
    message: Optional[str] = Field(None, description="Outcome description on success")
    error: Optional[str] = Field(None, description="Failure description")
    data: Optional[dict[str, Any]] = Field(None, description="Outcome details")

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "Subscription activated",
                "data": {
                    "email": "a@x.com",
                    "package": "Pro",
                    "endDate": "2026-11-18T00:00:00+00:00",
                },
            }
        }


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = Field(default="ok")
    timestamp: str = Field(..., description="Server time (ISO 8601)")
    version: str = Field(..., description="Service version")
