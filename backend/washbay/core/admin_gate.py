"""
Admin override gate.

A caller is privileged when it presents the configured admin API key. Only
privileged callers may engage ``admin_override`` or book under a bare customer
id, and they are never rate limited.
"""

import logging
import secrets
from typing import Optional

from .config import Settings, settings
from .exceptions import ForbiddenException

logger = logging.getLogger(__name__)

ADMIN_KEY_HEADER = "X-Admin-Key"


def is_privileged(presented_key: Optional[str], config: Optional[Settings] = None) -> bool:
    config = config or settings
    expected = config.admin_api_key.get_secret_value() if config.admin_api_key else ""
    if not expected or not presented_key:
        return False
    return secrets.compare_digest(presented_key.encode(), expected.encode())


def resolve_override(requested: bool, privileged: bool) -> bool:
    """
    Effective override flag for a request.

    Raises:
        ForbiddenException: override requested by a non-privileged caller
    """
    if requested and not privileged:
        logger.warning("Admin override requested without admin credentials")
        raise ForbiddenException(
            "Admin override requires admin credentials", code="ADMIN_OVERRIDE_FORBIDDEN"
        )
    return requested


def require_privileged(privileged: bool) -> None:
    if not privileged:
        raise ForbiddenException("Admin credentials required", code="ADMIN_REQUIRED")


def check_customer_reference(customer_id: Optional[str], privileged: bool) -> None:
    """
    Booking under a bare customer id is reserved for admin callers.

    Raises:
        ForbiddenException: customer id given by a non-privileged caller
    """
    if customer_id and not privileged:
        logger.warning("Customer id booking attempted without admin credentials")
        raise ForbiddenException(
            "Booking by customer id requires admin credentials", code="CUSTOMER_ID_FORBIDDEN"
        )
