# =============================================================================
# core/models/member.py - Athlete and Coach Schemas
# =============================================================================
# Coaches register athletes (with a guardian contact) and other coaches on
# behalf of their organization. Both get an auth account created here.
# =============================================================================

from typing import Any, Literal

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from .common import OptionalUUIDStr, RequiredStr, TrimmedStr, UUIDStr
from lib.utils import join_name

GuardianRelationship = Literal[
    "mother", "father", "guardian", "step-parent", "grandparent", "sibling", "other"
]


def _check_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("password must be at least 8 characters")
    return value


# -----------------------------------------------------------------------------
# Create
# -----------------------------------------------------------------------------

class CreateCoachRequest(BaseModel):
    """Schema for registering a coach in an organization."""

    org_id: UUIDStr
    first_name: RequiredStr
    last_name: RequiredStr
    full_name: TrimmedStr | None = None
    email: EmailStr
    password: str
    phone: TrimmedStr | None = None
    cell_number: TrimmedStr | None = None

    @field_validator("password")
    @classmethod
    def _password_length(cls, value: str) -> str:
        return _check_password(value)

    def resolved_full_name(self) -> str | None:
        return self.full_name or join_name(self.first_name, self.last_name) or None


class CreateAthleteRequest(CreateCoachRequest):
    """
    Schema for registering an athlete on a team.

    The guardian (parent_*) is matched to an existing guardian contact of the
    org by email, or gets a parent account.
    """

    team_id: UUIDStr
    gender: RequiredStr
    parent_email: EmailStr
    parent_full_name: RequiredStr
    parent_mobile_phone: RequiredStr
    relationship: GuardianRelationship
    graduation_year: int | None = Field(default=None, ge=1900, le=2100)

    def guardian_is_athlete(self) -> bool:
        return str(self.email).strip().lower() == str(self.parent_email).strip().lower()


# -----------------------------------------------------------------------------
# Update
# -----------------------------------------------------------------------------

class UpdateCoachRequest(BaseModel):
    """Patch a coach; only sent fields are written."""

    user_id: OptionalUUIDStr = None
    first_name: TrimmedStr | None = Field(default=None, min_length=1)
    last_name: TrimmedStr | None = Field(default=None, min_length=1)
    full_name: TrimmedStr | None = Field(default=None, min_length=1)
    phone: TrimmedStr | None = None
    cell_number: TrimmedStr | None = None

    @model_validator(mode="after")
    def _require_changes(self):
        if not self.model_fields_set:
            raise ValueError("No updates provided")
        return self

    def patch(self) -> dict[str, Any]:
        return {field: getattr(self, field) for field in self.model_fields_set}

    def needs_full_name(self) -> bool:
        """Names changed but full_name wasn't sent: it must be recomputed."""
        fields = self.model_fields_set
        return "full_name" not in fields and bool({"first_name", "last_name"} & fields)


class UpdateAthleteRequest(UpdateCoachRequest):
    """Patch an athlete; adds graduation_year to the coach fields."""

    graduation_year: int | None = Field(default=None, ge=1900, le=2100)
