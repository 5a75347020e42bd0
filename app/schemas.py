import datetime as dt
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _assume_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ActivityRecord(BaseModel):
    id: str
    title: str
    type: str = "General"
    description: Optional[str] = None
    facility: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=0)
    date: dt.date
    submitted_by: str
    user_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return _assume_utc(value)


class ActivityCreate(BaseModel):
    title: str = ""
    type: str = ""
    description: Optional[str] = None
    facility: Optional[str] = None
    duration: Optional[int] = None
    date: Optional[dt.date] = None


class ActivityUpdate(BaseModel):
    title: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    facility: Optional[str] = None
    duration: Optional[int] = None
    date: Optional[dt.date] = None


class ActivityTypeSchema(BaseModel):
    id: str
    name: str
    description: Optional[str]
    is_active: bool
    created_at: datetime
    created_by: Optional[str]

    model_config = {"from_attributes": True}


class ActivityTypeCreate(BaseModel):
    name: str = ""
    description: Optional[str] = None
    is_active: bool = True


class ActivityTypeUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class ProfileSchema(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    status: str
    email_verified: bool
    is_admin: bool
    created_at: datetime
    last_sign_in_at: Optional[datetime]
    approved_at: Optional[datetime]
    approved_by: Optional[str]

    model_config = {"from_attributes": True}


class RegisterRequest(BaseModel):
    full_name: str = ""
    email: str = ""
    role: str = ""
    password: str = ""
    confirm_password: str = ""


class LoginRequest(BaseModel):
    email: str
    password: str


class DemoRoleRequest(BaseModel):
    role: str


class UserCreate(BaseModel):
    full_name: str = ""
    email: str = ""
    role: str = ""
    password: str = ""
    confirm_password: str = ""
    generate_password: bool = False


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    role: Optional[str] = None
    status: Optional[str] = None
    is_admin: Optional[bool] = None


class CalendarEventSchema(BaseModel):
    id: str
    title: str
    description: Optional[str]
    email: str
    start_time: datetime
    end_time: Optional[datetime]
    reminder_sent: bool
    user_id: Optional[str]

    model_config = {"from_attributes": True}

    @field_validator("start_time", "end_time")
    @classmethod
    def times_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _assume_utc(value)


class CalendarEventCreate(BaseModel):
    title: str = ""
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class VisibilityChange(BaseModel):
    visible: bool
