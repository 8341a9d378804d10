"""Pydantic schemas for the web API.

Request fields the handlers validate themselves (to answer 400 with a
specific message) are declared optional here.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# AUTH SCHEMAS
# =============================================================================


class SignupRequest(BaseModel):
    """Request body for signup."""

    email: str | None = None
    password: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)


class LoginRequest(BaseModel):
    """Request body for login."""

    email: str | None = None
    password: str | None = None


class ProfileUpdateRequest(BaseModel):
    """Request body for a profile update."""

    user_metadata: dict[str, Any] = Field(default_factory=dict)


class UserResponse(BaseModel):
    id: str
    email: str
    created_at: str | None = None
    user_metadata: dict[str, Any] | None = None


class SessionTokens(BaseModel):
    access_token: str
    refresh_token: str
    expires_at: int | None = None


class SignupResponse(BaseModel):
    message: str
    user: UserResponse


class LoginResponse(BaseModel):
    message: str
    user: UserResponse
    session: SessionTokens


class ProfileResponse(BaseModel):
    message: str
    user: UserResponse


# =============================================================================
# STUDENT SCHEMAS
# =============================================================================


class StudentPayload(BaseModel):
    """Request body for creating or replacing a student.

    subjects is untyped so a non-list value reaches the handler and gets a
    400 instead of a validation error.
    """

    name: str | None = None
    grade: str | int | None = None
    subjects: Any = None
    weakTopics: list[str] | None = None
    avatar: str | None = None


class StudentResponse(BaseModel):
    """Student as shown to the frontend."""

    id: Any
    name: str | None
    grade: str | int | None
    subjects: list[str]
    weakTopics: list[str]
    lastActivity: str | None
    avatar: str | None = None


# =============================================================================
# ASSIGNMENT SCHEMAS
# =============================================================================


class AssignmentUpdate(BaseModel):
    """Partial update; only fields present in the body are written."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    subject: str | None = None
    grade: str | int | None = None
    due_date: str | None = Field(default=None, alias="dueDate")
    answer_key_id: Any = None


class AssignStudentsRequest(BaseModel):
    student_ids: Any = None


# =============================================================================
# COMMON
# =============================================================================


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    message: str = "Server is running"
    version: str
    timestamp: str
