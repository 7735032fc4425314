# =============================================================================
# app/routers/auth.py - Signup and Login Endpoints
# =============================================================================
# Public router: signup needs no token, login checks its own bearer token.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Body

from app.dependencies import CurrentUser
from core.models.auth import LoginRequest, SignupVariant
from core.services.auth_service import AuthService

router = APIRouter()


@router.post("/signup", status_code=201)
async def signup(body: Annotated[SignupVariant, Body(discriminator="role")]):
    """
    Register an athlete, coach or parent with an org join code.

    The body is discriminated by `role`. Returns the new user id, the role
    and the registration details from the database.
    """
    result = AuthService.signup(body)
    return {"ok": True, **result}


@router.post("/login")
async def login(body: LoginRequest, user: CurrentUser):
    """
    Resolve the signed-in user's profile.

    The bearer token's subject must be the `user_id` sent in the body.
    """
    profile = AuthService.login(body.user_id, str(user.id))
    return {"ok": True, "user": profile}
