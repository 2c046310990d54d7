from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .models import UserRole


class SuccessResponse(BaseModel):
    success: bool = True


class CreatedResponse(BaseModel):
    success: bool = True
    id: int


class CountResponse(BaseModel):
    success: bool = True
    count: int


# --- auth ---

class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)
    user_type: UserRole | None = Field(default=None, alias="userType")


class LoginResponse(BaseModel):
    success: bool = True
    user: dict[str, Any]
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    id: int
    username: str
    name: str
    role: UserRole


class ChangeCredentialsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    old_password: str = Field(alias="oldPassword")
    new_password: str | None = Field(default=None, alias="newPassword")
    new_email: str | None = Field(default=None, alias="newEmail")


class ForgotPasswordRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)


class ForgotPasswordResponse(BaseModel):
    success: bool = True
    message: str
    link: str


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    new_password: str = Field(min_length=1, alias="newPassword")


# --- directory ---

class TeacherCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    username: str = Field(min_length=1, max_length=255)
    phone: str | None = None


class StudentCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    username: str = Field(min_length=1, max_length=255)
    level_id: int | None = None
    group_id: int | None = None
    password: str | None = None
    sequential_registration: bool = False


class StudentCreateResponse(BaseModel):
    success: bool = True
    id: int
    registration_number: str


class UserUpdateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    username: str = Field(min_length=1, max_length=255)
    password: str | None = None
    phone: str | None = None
    level_id: int | None = None
    group_id: int | None = None


class LevelRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class GroupRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    level_id: int


class SubjectRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None


class ImportResponse(BaseModel):
    success: bool = True
    imported: int


# --- assignments ---

class TeacherSubjectsBulkRequest(BaseModel):
    teacher_id: int
    subject_ids: list[int] = Field(default_factory=list)


class TeacherGroupsBulkRequest(BaseModel):
    teacher_id: int
    group_ids: list[int] = Field(default_factory=list)


class TeacherStudentsBulkRequest(BaseModel):
    teacher_id: int
    student_ids: list[int] = Field(default_factory=list)


class LinkRequest(BaseModel):
    student_id: int
    teacher_id: int


# --- chat ---

class MemberIn(BaseModel):
    user_id: int
    is_admin: bool = False


class ChatGroupRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    allow_private: bool = False
    only_admins_can_send: bool = False
    members: list[MemberIn] = Field(default_factory=list)


class ChatGroupSettingsRequest(BaseModel):
    user_id: int
    only_admins_can_send: bool


class StepUpRequest(BaseModel):
    """Body of any action that asks the administrator to re-enter a password."""

    password: str
    admin_id: int | None = None


class ChatGroupDeleteRequest(StepUpRequest):
    id: int


class MessageDeleteRequest(StepUpRequest):
    id: int


class MarkReadRequest(BaseModel):
    sender_id: int | None = None
    reader_id: int | None = None
    group_id: int | None = None


class SendMessageRequest(BaseModel):
    sender_id: int
    receiver_id: int | None = None
    group_id: int | None = None
    subject_id: int | None = None
    message_text: str = Field(min_length=1)


# --- admin ---

class ResetStatsRequest(BaseModel):
    code: str


class BulkDeleteRequest(BaseModel):
    ids: list[int] = Field(default_factory=list)
    type: str


class BroadcastResponse(BaseModel):
    success: bool = True
    recipients: int


# --- lessons ---

class LessonCreatedResponse(BaseModel):
    success: bool = True
    id: int
    notified: int
