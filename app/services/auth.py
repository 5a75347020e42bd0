"""
Session authentication.

The signed session cookie carries the profile id. Each request resolves to
one AuthMode: an active profile, a demo role (walkthroughs only, read-only,
must be enabled with ALLOW_DEMO_ROLE) or nobody.
"""
import secrets
import string
from dataclasses import dataclass
from typing import Union

import bcrypt
from fastapi import Depends, Request

from app.config import settings
from app.context import AppContext, get_context
from app.schemas import ProfileSchema
from app.services.errors import AccessDenied, NotAuthenticated

PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*"
GENERATED_PASSWORD_LENGTH = 12


@dataclass(frozen=True)
class Authenticated:
    profile: ProfileSchema

    @property
    def is_admin(self) -> bool:
        return is_admin_profile(self.profile)


@dataclass(frozen=True)
class DemoRole:
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in settings.ADMIN_ROLES


@dataclass(frozen=True)
class Unauthenticated:
    is_admin = False


AuthMode = Union[Authenticated, DemoRole, Unauthenticated]


def hash_password(plain: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def generate_password(length: int = GENERATED_PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def is_admin_profile(profile: ProfileSchema) -> bool:
    return profile.is_admin or profile.role in settings.ADMIN_ROLES


async def resolve_auth(request: Request, ctx: AppContext) -> AuthMode:
    user_id = request.session.get("user_id")
    if user_id:
        row = (await ctx.storage.get("profiles", user_id)).unwrap()
        if row is not None and row["status"] == "active":
            return Authenticated(ProfileSchema.model_validate(row))
        # account removed or deactivated since login
        request.session.pop("user_id", None)

    demo_role = request.session.get("demo_role")
    if demo_role and ctx.settings.ALLOW_DEMO_ROLE:
        return DemoRole(demo_role)
    return Unauthenticated()


async def get_auth(request: Request, ctx: AppContext = Depends(get_context)) -> AuthMode:
    return await resolve_auth(request, ctx)


async def require_user(auth: AuthMode = Depends(get_auth)) -> ProfileSchema:
    if isinstance(auth, Authenticated):
        return auth.profile
    if isinstance(auth, DemoRole):
        raise AccessDenied("Demo mode is read-only, sign in to make changes")
    raise NotAuthenticated("Please sign in to continue")


async def require_viewer(auth: AuthMode = Depends(get_auth)) -> AuthMode:
    """Any signed-in user or a demo role; used by read-only views."""
    if isinstance(auth, Unauthenticated):
        raise NotAuthenticated("Please sign in to continue")
    return auth


async def require_admin(profile: ProfileSchema = Depends(require_user)) -> ProfileSchema:
    if not is_admin_profile(profile):
        raise AccessDenied("Administrator access required")
    return profile


async def require_admin_viewer(auth: AuthMode = Depends(require_viewer)) -> AuthMode:
    if not auth.is_admin:
        raise AccessDenied("Administrator access required")
    return auth
