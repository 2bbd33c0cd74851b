"""Inbound endpoints: Stripe webhook and admin license issue."""

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from license_relay.common.exceptions import BadRequest, MethodNotAllowed, RelayError
from license_relay.common.schemas import ErrorResponse
from license_relay.common.security import ADMIN_SECRET_HEADER, check_admin_secret
from license_relay.deps import Services, get_services
from license_relay.fulfillment.dispatch import DispatchOutcome
from license_relay.fulfillment.schemas import AdminIssueRequest, AdminIssueResponse, WebhookAck
from license_relay.fulfillment.stripe_webhook import construct_event

logger = logging.getLogger(__name__)

router = APIRouter(tags=["fulfillment"])

_OTHER_METHODS = ["GET", "PUT", "PATCH", "DELETE"]


# ── Stripe webhook ──

def _webhook_error(err: RelayError) -> JSONResponse:
    return JSONResponse(
        status_code=err.status_code,
        content=ErrorResponse(error=err.message, code=err.code).model_dump(),
    )


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    services: Services = Depends(get_services),
):
    """Handle checkout events from Stripe.

    The body is read as raw bytes and never parsed before the signature
    check; declaring a body model here would break verification.
    """
    body = await request.body()
    settings = services.settings

    try:
        event = construct_event(
            body,
            stripe_signature,
            settings.stripe_webhook_secret,
            tolerance=settings.webhook_tolerance,
        )
        result = await services.router.route(event)
    except RelayError as e:
        logger.warning(
            "Stripe webhook rejected: %s",
            e.message,
            extra={"error_code": e.code, "stage": e.stage},
        )
        return _webhook_error(e)

    if result.outcome is DispatchOutcome.IGNORED:
        return WebhookAck(status=result.outcome.value, event_id=result.event_id)

    return WebhookAck(
        status=result.outcome.value,
        event_id=result.event_id,
        license_key=result.fulfillment.license_key,
        emailed=result.fulfillment.emailed,
    )


@router.api_route("/webhooks/stripe", methods=_OTHER_METHODS, include_in_schema=False)
async def stripe_webhook_method_not_allowed():
    return _webhook_error(MethodNotAllowed())


# ── Admin issue ──

async def _read_admin_request(request: Request) -> AdminIssueRequest:
    raw = await request.body()
    if not raw:
        raise BadRequest("Invalid JSON body")
    try:
        body: Any = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequest("Invalid JSON body")
    if not isinstance(body, dict):
        raise BadRequest("Invalid JSON body")

    try:
        return AdminIssueRequest.model_validate(body)
    except ValidationError as e:
        if any(err["loc"] and err["loc"][0] == "policyId" for err in e.errors()):
            raise BadRequest("Missing policyId")
        raise BadRequest("Invalid request body")


def _admin_error(err: RelayError) -> JSONResponse:
    # Admin callers see 500 for any downstream failure.
    status_code = err.status_code if err.status_code < 500 else 500
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": err.message},
    )


@router.post("/admin/issue", response_model=AdminIssueResponse)
async def admin_issue(
    request: Request,
    admin_secret: Optional[str] = Header(None, alias=ADMIN_SECRET_HEADER),
    services: Services = Depends(get_services),
):
    """Issue a license for a policy without a payment event."""
    try:
        check_admin_secret(admin_secret, services.settings.admin_issue_secret)
        body = await _read_admin_request(request)
        result = await services.flow.issue_admin(
            body.policy_id, email=body.email, reason=body.reason,
        )
    except RelayError as e:
        if e.status_code >= 500:
            logger.error("Admin issue failed: %s", e.message, extra={"error_code": e.code})
        return _admin_error(e)

    return AdminIssueResponse(license_key=result.license_key, emailed=result.emailed)


@router.options("/admin/issue", include_in_schema=False)
async def admin_issue_preflight():
    return Response(status_code=204)


@router.api_route("/admin/issue", methods=_OTHER_METHODS, include_in_schema=False)
async def admin_issue_method_not_allowed():
    return _admin_error(MethodNotAllowed())
