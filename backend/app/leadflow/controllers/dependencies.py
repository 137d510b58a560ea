"""Request-scoped dependencies shared by the routers."""

from typing import Optional

from fastapi import Header, HTTPException, status

from leadflow.logger_config import get_logger
from leadflow.models.enums import StaffRole
from leadflow.models.identity_models import Identity
from leadflow.services.errors import (
    LeadValidationError,
    LeadWorkflowError,
    NoEligibleAssigneeError,
    PermissionDeniedError,
    RecordNotFoundError,
)

logger = get_logger(__name__)


def get_identity(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
    x_user_name: Optional[str] = Header(default=None, alias="X-User-Name"),
) -> Identity:
    """Build the caller's identity from the headers set by the auth proxy."""
    if not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Role header"
        )
    try:
        role = StaffRole(x_user_role.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role: {x_user_role}",
        )
    if role != StaffRole.ADMIN and not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header"
        )
    return Identity(id=x_user_id or None, role=role, name=x_user_name)


def to_http_exception(exc: LeadWorkflowError) -> HTTPException:
    """Translate a workflow error into the matching HTTP error."""
    if isinstance(exc, NoEligibleAssigneeError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, LeadValidationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, RecordNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, PermissionDeniedError):
        code = status.HTTP_403_FORBIDDEN
    else:
        code = status.HTTP_400_BAD_REQUEST
    logger.info("Request rejected with %s: %s", code, exc)
    return HTTPException(status_code=code, detail=str(exc))
