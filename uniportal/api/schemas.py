from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def fields(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class SignUpIn(_Body):
    email: str = Field(min_length=3)
    password: str = Field(min_length=6, max_length=72)
    full_name: str = Field(min_length=1)
    phone: Optional[str] = None


class SignInIn(_Body):
    email: str
    password: str


class SessionOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    profile_id: str
    role: str


class ProfileUpdate(_Body):
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    education: Optional[str] = None
    social_links: Optional[dict[str, str]] = None


class ApplicationCreate(_Body):
    program_id: str
    student_id: Optional[str] = None
    status: Optional[str] = None


class ApplicationUpdate(_Body):
    program_id: Optional[str] = None
    status: Optional[str] = None


class UniversityCreate(_Body):
    name: str
    location: Optional[str] = None
    website: Optional[str] = None


class UniversityUpdate(_Body):
    name: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None


class ProgramCreate(_Body):
    name: str
    university_id: str
    description: Optional[str] = None


class ProgramUpdate(_Body):
    name: Optional[str] = None
    university_id: Optional[str] = None
    description: Optional[str] = None


class ReviewCreate(_Body):
    application_id: str
    status: str
    comments: Optional[str] = None


class ReviewUpdate(_Body):
    status: Optional[str] = None
    comments: Optional[str] = None


class NotificationCreate(_Body):
    student_id: str
    message: str
