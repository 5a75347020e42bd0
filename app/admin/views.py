from sqladmin import ModelView
from sqladmin.authentication import AuthenticationBackend
from starlette.applications import Starlette
from starlette.requests import Request

from app.models import Activity, ActivityType, CalendarEvent, Profile
from app.services import users
from app.services.auth import Authenticated, is_admin_profile, resolve_auth
from app.services.errors import PortalError


class ActivityAdmin(ModelView, model=Activity):
    name = "Activity"
    name_plural = "Activities"
    icon = "fa-solid fa-clipboard-list"
    column_list = [
        Activity.id,
        Activity.title,
        Activity.type,
        Activity.date,
        Activity.duration,
        Activity.facility,
        Activity.submitted_by,
        Activity.created_at,
    ]
    column_searchable_list = [Activity.title, Activity.description, Activity.submitted_by]
    column_sortable_list = [Activity.created_at, Activity.date, Activity.type]
    column_filters = [Activity.type, Activity.submitted_by, Activity.facility]
    can_delete = True
    can_export = True
    page_size = 50
    page_size_options = [10, 25, 50, 100]


class ActivityTypeAdmin(ModelView, model=ActivityType):
    name = "Activity Type"
    name_plural = "Activity Types"
    icon = "fa-solid fa-tags"
    column_list = [
        ActivityType.id,
        ActivityType.name,
        ActivityType.description,
        ActivityType.is_active,
        ActivityType.created_by,
    ]
    can_create = True
    can_edit = True
    can_delete = True


class ProfileAdmin(ModelView, model=Profile):
    name = "User"
    name_plural = "Users"
    icon = "fa-solid fa-user-nurse"
    column_list = [
        Profile.id,
        Profile.full_name,
        Profile.email,
        Profile.role,
        Profile.status,
        Profile.is_admin,
        Profile.last_sign_in_at,
        Profile.approved_by,
    ]
    column_details_exclude_list = [Profile.password_hash]
    form_excluded_columns = [Profile.password_hash]
    column_searchable_list = [Profile.full_name, Profile.email]
    column_filters = [Profile.status, Profile.role]
    # accounts are created through registration or the users API so passwords get hashed
    can_create = False
    can_edit = True
    can_delete = True


class CalendarEventAdmin(ModelView, model=CalendarEvent):
    name = "Calendar Event"
    name_plural = "Calendar Events"
    icon = "fa-solid fa-calendar-days"
    column_list = [
        CalendarEvent.id,
        CalendarEvent.title,
        CalendarEvent.email,
        CalendarEvent.start_time,
        CalendarEvent.reminder_sent,
    ]
    column_sortable_list = [CalendarEvent.start_time]
    can_create = False
    can_edit = True
    can_delete = True


class AdminAuth(AuthenticationBackend):
    def __init__(self, secret_key: str, portal_app: Starlette) -> None:
        super().__init__(secret_key=secret_key)
        # sqladmin runs as a mounted sub-app, request.app is not the portal app
        self._portal_app = portal_app

    async def login(self, request: Request) -> bool:
        form = await request.form()
        ctx = self._portal_app.state.context
        try:
            profile = await users.authenticate(
                ctx.storage, str(form.get("username", "")), str(form.get("password", ""))
            )
        except PortalError:
            return False
        if not is_admin_profile(profile):
            return False
        request.session.update({"user_id": profile.id})
        return True

    async def authenticate(self, request: Request) -> bool:
        try:
            auth = await resolve_auth(request, self._portal_app.state.context)
        except PortalError:
            return False
        return isinstance(auth, Authenticated) and auth.is_admin

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True
