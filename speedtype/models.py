"""SQLAlchemy ORM models for speedtype."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from speedtype.database import Base, utcnow

# Exactly one owner column is set; both or neither is an invalid row.
_ONE_OWNER = "(user_id IS NULL) <> (guest_session_id IS NULL)"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(200), nullable=False)  # salt$pbkdf2
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)

    # Rolling stats, only ever changed by the result recorder
    best_wpm: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    avg_wpm: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_tests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    results: Mapped[list["TestResult"]] = relationship(back_populates="user")


# ---------------------------------------------------------------------------
# Texts
# ---------------------------------------------------------------------------


class TestText(Base):
    __tablename__ = "test_texts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    language: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    difficulty: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    word_count: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)  # soft delete
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)


# ---------------------------------------------------------------------------
# Guest sessions
# ---------------------------------------------------------------------------


class GuestSession(Base):
    __tablename__ = "guest_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guest_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)
    last_seen_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    results: Mapped[list["TestResult"]] = relationship(back_populates="guest_session")


# ---------------------------------------------------------------------------
# Test sessions (one per issued token)
# ---------------------------------------------------------------------------


class TestSession(Base):
    __tablename__ = "test_sessions"
    __table_args__ = (
        CheckConstraint(_ONE_OWNER, name="ck_test_sessions_one_owner"),
        CheckConstraint("expires_at > issued_at", name="ck_test_sessions_expiry"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)  # SHA-256
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    guest_session_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("guest_sessions.id"), nullable=True
    )
    text_id: Mapped[int] = mapped_column(Integer, ForeignKey("test_texts.id"))
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    issued_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False, index=True)
    is_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    text: Mapped["TestText"] = relationship()


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class TestResult(Base):
    __tablename__ = "test_results"
    __table_args__ = (
        CheckConstraint(_ONE_OWNER, name="ck_test_results_one_owner"),
        CheckConstraint(
            "total_chars = correct_chars + incorrect_chars",
            name="ck_test_results_char_total",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True, index=True
    )
    guest_session_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("guest_sessions.id"), nullable=True, index=True
    )
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("test_sessions.id"), unique=True, nullable=False
    )
    wpm: Mapped[float] = mapped_column(Float, nullable=False)
    raw_wpm: Mapped[float] = mapped_column(Float, nullable=False)
    accuracy: Mapped[float] = mapped_column(Float, nullable=False)
    correct_chars: Mapped[int] = mapped_column(Integer, nullable=False)
    incorrect_chars: Mapped[int] = mapped_column(Integer, nullable=False)
    total_chars: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    text_snippet: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, index=True)

    user: Mapped[Optional["User"]] = relationship(back_populates="results")
    guest_session: Mapped[Optional["GuestSession"]] = relationship(back_populates="results")
    session: Mapped["TestSession"] = relationship()
