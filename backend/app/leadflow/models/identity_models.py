"""Identity of the caller acting on the workflow."""

from typing import Optional

from pydantic import BaseModel, Field

from leadflow.models.enums import StaffRole

SYSTEM_ACTOR_NAME = "system"


class Identity(BaseModel):
    """The `{id, role}` pair supplied by the session layer for every call."""

    id: Optional[str] = Field(
        default=None, description="Staff id of the caller; None for system jobs."
    )
    role: StaffRole = Field(..., description="Role used for authorization decisions.")
    name: Optional[str] = Field(
        default=None, description="Display name recorded on activity entries."
    )

    @property
    def is_admin(self) -> bool:
        return self.role == StaffRole.ADMIN

    @property
    def display_name(self) -> str:
        return self.name or self.id or SYSTEM_ACTOR_NAME
