# =============================================================================
# core/models/auth.py - Signup, Login and Organization Signup Schemas
# =============================================================================
# Public onboarding payloads:
# - SignupRequest: athlete / coach / parent joining an org with a join code
# - LoginRequest: resolve the profile behind a bearer token
# - OrgSignupRequest: an admin registering a new organization
#
# Signup bodies use camelCase keys (joinCode, firstName, ...) as sent by the
# mobile clients.
# =============================================================================

from typing import Annotated, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    EmailStr,
    Field,
    field_validator,
)

from .common import TrimmedStr, UUIDStr

# Lacrosse positions accepted on athlete signup
ALLOWED_POSITIONS: tuple[str, ...] = ("attack", "midfield", "defense", "faceoff", "goalie")


def normalize_position(value: str) -> str:
    """Lower-case a position and drop all whitespace ("Face Off" -> "faceoff")."""
    return "".join(value.split()).lower()


# -----------------------------------------------------------------------------
# Join-code signup
# -----------------------------------------------------------------------------

class _SignupBase(BaseModel):
    join_code: TrimmedStr = Field(..., alias="joinCode", min_length=1)
    email: EmailStr
    password: str
    first_name: TrimmedStr = Field(..., alias="firstName", min_length=1)
    last_name: TrimmedStr = Field(..., alias="lastName", min_length=1)
    cell_number: str | None = Field(default=None, alias="cellNumber")
    terms_accepted: Literal[True] = Field(..., alias="termsAccepted")
    username: TrimmedStr | None = Field(default=None, min_length=3, max_length=50)

    model_config = {"populate_by_name": True}

    @field_validator("password")
    @classmethod
    def _password_length(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("Password must be at least 8 characters")
        return value


class AthleteSignup(_SignupBase):
    """Athlete signup; positions are validated by AuthService before any user is created."""
    role: Literal["athlete"]
    graduation_year: int = Field(..., alias="graduationYear", ge=1900, le=2100)
    positions: list[str] = Field(..., min_length=1)

    def normalized_positions(self) -> list[str]:
        return [normalize_position(position) for position in self.positions]

    def invalid_positions(self) -> list[str]:
        return [p for p in self.normalized_positions() if p not in ALLOWED_POSITIONS]


class CoachSignup(_SignupBase):
    role: Literal["coach"]


class ParentSignup(_SignupBase):
    role: Literal["parent"]


SignupVariant = Union[AthleteSignup, CoachSignup, ParentSignup]

SignupRequest = Annotated[SignupVariant, Field(discriminator="role")]


class LoginRequest(BaseModel):
    """Login body; the user id may be sent as user_id, userId or userid."""
    user_id: UUIDStr = Field(
        ...,
        validation_alias=AliasChoices("user_id", "userId", "userid"),
    )


# -----------------------------------------------------------------------------
# Organization signup
# -----------------------------------------------------------------------------

ProgramGender = Literal["girls", "boys", "coed"]


class OrgAdminInput(BaseModel):
    first_name: TrimmedStr | None = Field(default=None, alias="firstName")
    last_name: TrimmedStr | None = Field(default=None, alias="lastName")
    email: TrimmedStr | None = None
    phone: str | None = None
    password: str | None = None

    model_config = {"populate_by_name": True}

    def is_complete(self) -> bool:
        return all([self.first_name, self.last_name, self.email, self.password])


class OrgInput(BaseModel):
    name: TrimmedStr | None = None
    program_gender: str | None = Field(default=None, alias="programGender")

    model_config = {"populate_by_name": True}

    def is_valid(self) -> bool:
        return bool(self.name) and self.program_gender in ("girls", "boys", "coed")


class OrgTeamInput(BaseModel):
    name: str | None = None


class OrgSignupRequest(BaseModel):
    """
    Organization signup body.

    Field checks are done by OrgService so the errors read
    "Missing admin fields" / "Invalid organization data".
    """
    admin: OrgAdminInput | None = None
    organization: OrgInput | None = None
    teams: list[OrgTeamInput] | None = None

    def team_names(self) -> list[str]:
        names = [(team.name or "").strip() for team in self.teams or []]
        return [name for name in names if name]
