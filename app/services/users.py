"""
User accounts: registration, approval, administrator management, sign-in.

Validation runs before any storage call and reports every bad field at once.
Only profiles with status "active" may sign in.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from app.config import settings
from app.schemas import ProfileSchema, RegisterRequest, UserCreate, UserUpdate
from app.services.admin_settings import permission_settings
from app.services.auth import generate_password, hash_password, verify_password
from app.services.errors import AccessDenied, NotAuthenticated, NotFound, ValidationFailed
from app.services.event_log import log_event
from app.services.notifications import Notifier, welcome_email
from app.services.storage import Storage

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SUGGESTED_ROLES = [
    "System Administrator",
    "Nakuru County Chief Nursing Officer",
    "Nakuru County Deputy Chief Nursing Officer",
    "Chief Nurse Officer",
    "Nurse Officer",
    "Senior Nurse",
    "Staff Nurse",
]

STATUSES = ("active", "pending", "inactive")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_account_fields(
    full_name: str,
    email: str,
    role: str,
    password: str,
    confirm_password: str,
) -> None:
    errors: dict[str, str] = {}
    if not full_name.strip():
        errors["full_name"] = "Full name is required"
    elif len(full_name.strip()) < 2:
        errors["full_name"] = "Full name must be at least 2 characters"

    if not email.strip():
        errors["email"] = "Email is required"
    elif not EMAIL_RE.match(email.strip()):
        errors["email"] = "Please enter a valid email address"

    if not role.strip():
        errors["role"] = "Role is required"

    if not password:
        errors["password"] = "Password is required"
    elif len(password) < settings.MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters"
    elif password != confirm_password:
        errors["confirm_password"] = "Passwords do not match"

    if errors:
        raise ValidationFailed(errors)


async def _ensure_email_free(storage: Storage, email: str) -> None:
    rows = (await storage.select("profiles", filters={"email": email}, limit=1)).unwrap()
    if rows:
        raise ValidationFailed({"email": "An account with this email already exists"})


async def _get_profile(storage: Storage, user_id: str) -> dict[str, Any]:
    row = (await storage.get("profiles", user_id)).unwrap()
    if row is None:
        raise NotFound("User not found")
    return row


def to_profile(row: dict[str, Any]) -> ProfileSchema:
    return ProfileSchema.model_validate(row)


async def register(storage: Storage, payload: RegisterRequest) -> ProfileSchema:
    """Self-registration. Creates a pending account unless approval is switched off."""
    permissions = await permission_settings(storage)
    role = payload.role.strip() or permissions.default_role
    validate_account_fields(payload.full_name, payload.email, role, payload.password, payload.confirm_password)

    email = normalize_email(payload.email)
    await _ensure_email_free(storage, email)
    status = "pending" if permissions.require_approval else "active"
    row = (
        await storage.insert(
            "profiles",
            {
                "email": email,
                "full_name": payload.full_name.strip(),
                "role": role,
                "status": status,
                "email_verified": False,
                "is_admin": False,
                "password_hash": hash_password(payload.password),
            },
        )
    ).unwrap()
    log_event("info", "admin", f"New registration: {email} ({status})")
    logger.info("Registered %s with status %s", email, status)
    return to_profile(row)


async def create_user(
    storage: Storage,
    notifier: Notifier,
    payload: UserCreate,
    created_by: str,
) -> tuple[ProfileSchema, Optional[str]]:
    """Administrator-created account, active immediately. Returns the generated password if any."""
    generated = None
    password, confirm = payload.password, payload.confirm_password
    if payload.generate_password:
        generated = generate_password()
        password = confirm = generated

    validate_account_fields(payload.full_name, payload.email, payload.role, password, confirm)
    email = normalize_email(payload.email)
    await _ensure_email_free(storage, email)

    now = datetime.now(timezone.utc)
    row = (
        await storage.insert(
            "profiles",
            {
                "email": email,
                "full_name": payload.full_name.strip(),
                "role": payload.role.strip(),
                "status": "active",
                "email_verified": True,
                "is_admin": payload.role.strip() in settings.ADMIN_ROLES,
                "password_hash": hash_password(password),
                "approved_at": now,
                "approved_by": created_by,
            },
        )
    ).unwrap()
    profile = to_profile(row)
    notifier.send_in_background(welcome_email(profile))
    log_event("success", "admin", f"{created_by} created user {email}")
    return profile, generated


async def approve_user(
    storage: Storage,
    notifier: Notifier,
    user_id: str,
    approved_by: str,
) -> ProfileSchema:
    row = await _get_profile(storage, user_id)
    if row["status"] == "active":
        return to_profile(row)
    updated = (
        await storage.update(
            "profiles",
            user_id,
            {
                "status": "active",
                "email_verified": True,
                "approved_at": datetime.now(timezone.utc),
                "approved_by": approved_by,
            },
        )
    ).unwrap()
    profile = to_profile(updated)
    notifier.send_in_background(welcome_email(profile))
    log_event("success", "admin", f"{approved_by} approved {profile.email}")
    return profile


async def reject_user(storage: Storage, user_id: str, rejected_by: str) -> None:
    """Rejecting removes a pending registration; other accounts are left alone."""
    row = await _get_profile(storage, user_id)
    if row["status"] != "pending":
        raise ValidationFailed({"status": "Only pending registrations can be rejected"})
    (await storage.delete("profiles", user_id)).unwrap()
    log_event("warn", "admin", f"{rejected_by} rejected registration {row['email']}")


async def update_user(storage: Storage, user_id: str, patch: UserUpdate, updated_by: str) -> ProfileSchema:
    await _get_profile(storage, user_id)
    changes = patch.model_dump(exclude_unset=True, exclude_none=True)
    errors: dict[str, str] = {}
    if "full_name" in changes and len(changes["full_name"].strip()) < 2:
        errors["full_name"] = "Full name must be at least 2 characters"
    if "role" in changes and not changes["role"].strip():
        errors["role"] = "Role is required"
    if "status" in changes and changes["status"] not in STATUSES:
        errors["status"] = f"Status must be one of: {', '.join(STATUSES)}"
    if errors:
        raise ValidationFailed(errors)
    if not changes:
        return to_profile(await _get_profile(storage, user_id))
    updated = (await storage.update("profiles", user_id, changes)).unwrap()
    log_event("info", "admin", f"{updated_by} edited user {updated['email']}")
    return to_profile(updated)


async def delete_user(storage: Storage, user_id: str, acting: ProfileSchema) -> None:
    if user_id == acting.id:
        raise AccessDenied("You cannot delete your own account")
    row = await _get_profile(storage, user_id)
    (await storage.delete("profiles", user_id)).unwrap()
    log_event("warn", "admin", f"{acting.email} deleted user {row['email']}")


async def list_users(storage: Storage, status: Optional[str] = None) -> list[ProfileSchema]:
    filters = {"status": status} if status else None
    rows = (await storage.select("profiles", filters=filters, order="-created_at")).unwrap()
    return [to_profile(r) for r in rows]


async def authenticate(storage: Storage, email: str, password: str) -> ProfileSchema:
    rows = (
        await storage.select("profiles", filters={"email": normalize_email(email)}, limit=1)
    ).unwrap()
    if not rows or not verify_password(password, rows[0]["password_hash"]):
        log_event("warn", "login", f"Failed sign-in for {normalize_email(email)}")
        raise NotAuthenticated("Invalid email or password")

    row = rows[0]
    if row["status"] == "pending":
        raise AccessDenied("Your account is awaiting administrator approval")
    if row["status"] != "active":
        raise AccessDenied("Your account is inactive, contact an administrator")

    now = datetime.now(timezone.utc)
    updated = (await storage.update("profiles", row["id"], {"last_sign_in_at": now})).unwrap()
    (
        await storage.insert(
            "login_history", {"user_id": row["id"], "email": row["email"], "login_time": now}
        )
    ).unwrap()
    log_event("success", "login", f"{row['email']} signed in")
    return to_profile(updated)
