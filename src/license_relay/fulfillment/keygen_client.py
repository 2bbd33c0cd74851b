"""HTTP client for creating licenses through the Keygen API."""

import logging
from typing import Any, Optional

import httpx

from license_relay.common.exceptions import LicenseIssuanceFailed
from license_relay.fulfillment.schemas import IssuedLicense

logger = logging.getLogger(__name__)

JSONAPI_MEDIA_TYPE = "application/vnd.api+json"


def _error_detail(data: Any, status_code: int) -> str:
    """Pull a readable message out of a Keygen error document."""
    if not isinstance(data, dict):
        return f"Keygen error ({status_code})"

    errors = data.get("errors") or []
    first = errors[0] if errors and isinstance(errors[0], dict) else {}
    detail = first.get("detail") or data.get("error") or f"Keygen error ({status_code})"

    pointer = (first.get("source") or {}).get("pointer")
    if pointer:
        return f"{detail} ({pointer})"
    request_id = (data.get("meta") or {}).get("id")
    if request_id:
        return f"{detail} [{request_id}]"
    return detail


class KeygenClient:
    """Calls Keygen's /v1/accounts/{account}/licenses endpoint.

    The underlying httpx.AsyncClient lives as long as the process; the
    app lifespan calls close().
    """

    def __init__(
        self,
        account_id: str,
        api_token: str,
        base_url: str = "https://api.keygen.sh",
        product_id: str = "",
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.account_id = account_id
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.product_id = product_id
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.account_id and self.api_token)

    def _build_payload(self, policy_id: str, name: str, metadata: dict[str, Any]) -> dict[str, Any]:
        relationships: dict[str, Any] = {
            "policy": {"data": {"type": "policies", "id": policy_id}},
        }
        if self.product_id:
            relationships["product"] = {"data": {"type": "products", "id": self.product_id}}
        return {
            "data": {
                "type": "licenses",
                "attributes": {"name": name, "metadata": metadata},
                "relationships": relationships,
            }
        }

    async def create_license(
        self,
        policy_id: str,
        name: str,
        metadata: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> IssuedLicense:
        """Create one license bound to ``policy_id``.

        Not idempotent unless ``idempotency_key`` is given: every call
        without one creates a new license.
        """
        if not self.configured:
            raise LicenseIssuanceFailed("Keygen is not configured")

        url = f"{self.base_url}/v1/accounts/{self.account_id}/licenses"
        headers = {
            "Content-Type": JSONAPI_MEDIA_TYPE,
            "Accept": JSONAPI_MEDIA_TYPE,
            "Authorization": f"Bearer {self.api_token}",
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        try:
            resp = await self._http.post(
                url,
                json=self._build_payload(policy_id, name, metadata or {}),
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error("Keygen request failed: %s", e)
            raise LicenseIssuanceFailed(f"Keygen request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.is_error:
            detail = _error_detail(data, resp.status_code)
            logger.warning("Keygen rejected license create: %s %s", resp.status_code, detail)
            raise LicenseIssuanceFailed(detail, upstream_status=resp.status_code)

        resource = (data or {}).get("data") or {}
        attributes = resource.get("attributes") or {}
        key = attributes.get("key")
        if not key:
            logger.error("Keygen response has no license key (status %s)", resp.status_code)
            raise LicenseIssuanceFailed(
                "Keygen: license key missing from response",
                upstream_status=resp.status_code,
            )

        return IssuedLicense(key=key, id=resource.get("id", ""))

    async def close(self) -> None:
        await self._http.aclose()
