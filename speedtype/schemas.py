"""Request bodies accepted by the JSON API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from speedtype.config import settings


class SubmitResultBody(BaseModel):
    session_token: str = Field(min_length=32, max_length=128)
    correct_chars: int = Field(ge=0)
    incorrect_chars: int = Field(ge=0)
    total_chars: int = Field(ge=0)
    duration_seconds: int = Field(
        ge=settings.min_duration_seconds, le=settings.max_duration_seconds
    )
    text_snippet: Optional[str] = Field(default=None, max_length=settings.snippet_max_length)
    # Client-side figures are accepted for compatibility but never stored;
    # the server recomputes every metric from the counters.
    wpm: Optional[float] = None
    raw_wpm: Optional[float] = None
    accuracy: Optional[float] = None


class RegisterBody(BaseModel):
    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_-]+$")
    email: str = Field(max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=8, max_length=128)


class LoginBody(BaseModel):
    username: str = Field(min_length=1, description="Username or email")
    password: str = Field(min_length=1)
