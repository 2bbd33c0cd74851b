"""Schemas for webhook events, purchases and the HTTP surfaces."""

from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass(frozen=True)
class WebhookEvent:
    """A verified payment-provider event."""

    type: str
    id: str
    payload: bytes = field(repr=False)
    signature: str = field(repr=False)
    data: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class PurchaseContext:
    """Purchase details derived from a verified checkout event."""

    price_id: Optional[str]
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    session_id: str = ""
    event_id: str = ""


@dataclass(frozen=True)
class IssuedLicense:
    """License created by the licensing API; only the key leaves this service."""

    key: str
    id: str = ""


class AdminIssueRequest(BaseModel):
    """Body of POST /admin/issue."""

    model_config = ConfigDict(populate_by_name=True)

    policy_id: str = Field(..., alias="policyId", min_length=1)
    email: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("policy_id", mode="before")
    @classmethod
    def _strip_policy(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", "reason", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class AdminIssueResponse(BaseModel):
    success: bool = True
    license_key: str
    emailed: bool = False


class WebhookAck(BaseModel):
    """Acknowledgement returned to the payment provider."""

    received: bool = True
    status: str
    event_id: str
    license_key: Optional[str] = None
    emailed: bool = False
