import pytest

from app.schemas import RegisterRequest, UserCreate, UserUpdate
from app.services import users
from app.services.admin_settings import write_settings
from app.services.auth import hash_password, verify_password
from app.services.errors import AccessDenied, NotAuthenticated, NotFound, ValidationFailed

DEFAULT_PASSWORD = "nurse-pass-123"


def registration(**overrides) -> RegisterRequest:
    values = {
        "full_name": "Wanjiru Kamau",
        "email": "Wanjiru@Nakuru.go.ke ",
        "role": "Staff Nurse",
        "password": "molo-ward-7",
        "confirm_password": "molo-ward-7",
    }
    values.update(overrides)
    return RegisterRequest(**values)


class TestValidation:
    def test_reports_every_bad_field(self):
        with pytest.raises(ValidationFailed) as info:
            users.validate_account_fields("W", "not-an-email", "", "short", "short")
        assert set(info.value.fields) == {"full_name", "email", "role", "password"}

    def test_password_mismatch(self):
        with pytest.raises(ValidationFailed) as info:
            users.validate_account_fields("Wanjiru", "w@nakuru.go.ke", "Staff Nurse", "long-enough", "different")
        assert info.value.fields == {"confirm_password": "Passwords do not match"}


class TestRegistration:
    @pytest.mark.asyncio
    async def test_registration_is_pending_by_default(self, ctx):
        profile = await users.register(ctx.storage, registration())
        assert profile.status == "pending"
        assert profile.email == "wanjiru@nakuru.go.ke"
        assert profile.is_admin is False

    @pytest.mark.asyncio
    async def test_registration_active_when_approval_disabled(self, ctx):
        await write_settings(ctx.storage, "user_permissions", {"require_approval": False}, "admin@nakuru.go.ke")
        profile = await users.register(ctx.storage, registration())
        assert profile.status == "active"

    @pytest.mark.asyncio
    async def test_blank_role_uses_default_role(self, ctx):
        await write_settings(ctx.storage, "user_permissions", {"default_role": "Nurse Officer"}, "admin@nakuru.go.ke")
        profile = await users.register(ctx.storage, registration(role=""))
        assert profile.role == "Nurse Officer"

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, ctx):
        await users.register(ctx.storage, registration())
        with pytest.raises(ValidationFailed) as info:
            await users.register(ctx.storage, registration(email="wanjiru@nakuru.go.ke"))
        assert "email" in info.value.fields

    @pytest.mark.asyncio
    async def test_password_is_hashed(self, ctx):
        profile = await users.register(ctx.storage, registration())
        row = (await ctx.storage.get("profiles", profile.id)).unwrap()
        assert row["password_hash"] != "molo-ward-7"
        assert verify_password("molo-ward-7", row["password_hash"])


class TestSignIn:
    @pytest.mark.asyncio
    async def test_pending_account_cannot_sign_in(self, ctx):
        await users.register(ctx.storage, registration())
        with pytest.raises(AccessDenied) as info:
            await users.authenticate(ctx.storage, "wanjiru@nakuru.go.ke", "molo-ward-7")
        assert "approval" in info.value.notice

    @pytest.mark.asyncio
    async def test_inactive_account_cannot_sign_in(self, ctx, make_profile):
        await make_profile("retired@nakuru.go.ke", status="inactive")
        with pytest.raises(AccessDenied):
            await users.authenticate(ctx.storage, "retired@nakuru.go.ke", DEFAULT_PASSWORD)

    @pytest.mark.asyncio
    async def test_wrong_password(self, ctx, make_profile):
        await make_profile("nurse@nakuru.go.ke")
        with pytest.raises(NotAuthenticated):
            await users.authenticate(ctx.storage, "nurse@nakuru.go.ke", "wrong-password")

    @pytest.mark.asyncio
    async def test_unknown_email(self, ctx):
        with pytest.raises(NotAuthenticated):
            await users.authenticate(ctx.storage, "ghost@nakuru.go.ke", DEFAULT_PASSWORD)

    @pytest.mark.asyncio
    async def test_success_records_login(self, ctx, make_profile):
        await make_profile("nurse@nakuru.go.ke")
        profile = await users.authenticate(ctx.storage, " Nurse@Nakuru.go.ke", DEFAULT_PASSWORD)
        assert profile.last_sign_in_at is not None
        history = (await ctx.storage.select("login_history")).unwrap()
        assert [h["email"] for h in history] == ["nurse@nakuru.go.ke"]

    def test_verify_rejects_garbage_hash(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False
        assert verify_password("secret-pass", hash_password("secret-pass"))


class TestApproval:
    @pytest.mark.asyncio
    async def test_approve_activates_and_welcomes(self, ctx):
        pending = await users.register(ctx.storage, registration())
        profile = await users.approve_user(ctx.storage, ctx.notifier, pending.id, "admin@nakuru.go.ke")
        await ctx.notifier.drain()
        assert profile.status == "active"
        assert profile.email_verified is True
        assert profile.approved_by == "admin@nakuru.go.ke"
        assert [e.to for e in ctx.notifier.outbox] == ["wanjiru@nakuru.go.ke"]

        signed_in = await users.authenticate(ctx.storage, "wanjiru@nakuru.go.ke", "molo-ward-7")
        assert signed_in.id == pending.id

    @pytest.mark.asyncio
    async def test_approve_missing_user(self, ctx):
        with pytest.raises(NotFound):
            await users.approve_user(ctx.storage, ctx.notifier, "missing", "admin@nakuru.go.ke")

    @pytest.mark.asyncio
    async def test_reject_removes_pending(self, ctx):
        pending = await users.register(ctx.storage, registration())
        await users.reject_user(ctx.storage, pending.id, "admin@nakuru.go.ke")
        assert (await ctx.storage.get("profiles", pending.id)).unwrap() is None

    @pytest.mark.asyncio
    async def test_reject_active_user_refused(self, ctx, make_profile):
        row = await make_profile("nurse@nakuru.go.ke")
        with pytest.raises(ValidationFailed):
            await users.reject_user(ctx.storage, row["id"], "admin@nakuru.go.ke")


class TestAdministration:
    @pytest.mark.asyncio
    async def test_create_user_with_generated_password(self, ctx):
        profile, generated = await users.create_user(
            ctx.storage,
            ctx.notifier,
            UserCreate(full_name="Otieno Were", email="otieno@nakuru.go.ke", role="Nurse Officer",
                       generate_password=True),
            "admin@nakuru.go.ke",
        )
        assert profile.status == "active"
        assert generated is not None and len(generated) == 12
        signed_in = await users.authenticate(ctx.storage, "otieno@nakuru.go.ke", generated)
        assert signed_in.id == profile.id

    @pytest.mark.asyncio
    async def test_admin_role_grants_admin(self, ctx):
        profile, _ = await users.create_user(
            ctx.storage,
            ctx.notifier,
            UserCreate(full_name="Admin Two", email="admin2@nakuru.go.ke", role="System Administrator",
                       password="strong-pass-1", confirm_password="strong-pass-1"),
            "admin@nakuru.go.ke",
        )
        assert profile.is_admin is True

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_status(self, ctx, make_profile):
        row = await make_profile("nurse@nakuru.go.ke")
        with pytest.raises(ValidationFailed):
            await users.update_user(ctx.storage, row["id"], UserUpdate(status="suspended"), "admin@nakuru.go.ke")

    @pytest.mark.asyncio
    async def test_update_role(self, ctx, make_profile):
        row = await make_profile("nurse@nakuru.go.ke")
        profile = await users.update_user(ctx.storage, row["id"], UserUpdate(role="Senior Nurse"), "admin@nakuru.go.ke")
        assert profile.role == "Senior Nurse"

    @pytest.mark.asyncio
    async def test_cannot_delete_self(self, ctx, make_profile):
        row = await make_profile("admin@nakuru.go.ke", role="System Administrator", is_admin=True)
        acting = users.to_profile(row)
        with pytest.raises(AccessDenied):
            await users.delete_user(ctx.storage, row["id"], acting)

    @pytest.mark.asyncio
    async def test_list_users_by_status(self, ctx, make_profile):
        await make_profile("a@nakuru.go.ke")
        await make_profile("b@nakuru.go.ke", status="pending")
        pending = await users.list_users(ctx.storage, "pending")
        assert [p.email for p in pending] == ["b@nakuru.go.ke"]
        assert len(await users.list_users(ctx.storage)) == 2
