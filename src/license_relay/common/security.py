"""Shared-secret check for the admin issue endpoint."""

import hmac
import logging
from typing import Optional

from license_relay.common.exceptions import ConfigurationError, Forbidden

logger = logging.getLogger(__name__)

ADMIN_SECRET_HEADER = "x-admin-issue-secret"


def check_admin_secret(provided: Optional[str], configured: str) -> None:
    """Raise unless ``provided`` exactly equals the configured admin secret.

    A server without a configured secret refuses every call.
    """
    if not configured:
        logger.error("Admin issue secret is not configured")
        raise ConfigurationError("Server missing admin issue secret")
    if not provided or not hmac.compare_digest(provided.encode(), configured.encode()):
        logger.warning("Rejected admin issue request with bad secret")
        raise Forbidden()
