# backend/washbay/api/dependencies/auth.py
"""
Admin gate dependencies.

There are no user accounts here: staff tooling authenticates with a shared
admin key sent in the ``X-Admin-Key`` header.
"""

from typing import Optional

from fastapi import Depends, Header

from ...core.admin_gate import ADMIN_KEY_HEADER, is_privileged, require_privileged
from ...core.config import Settings
from ...core.exceptions import ForbiddenException
from .services import get_settings


def get_is_privileged(
    x_admin_key: Optional[str] = Header(None, alias=ADMIN_KEY_HEADER),
    config: Settings = Depends(get_settings),
) -> bool:
    return is_privileged(x_admin_key, config)


def require_admin(privileged: bool = Depends(get_is_privileged)) -> None:
    try:
        require_privileged(privileged)
    except ForbiddenException as exc:
        raise exc.to_http_exception()

