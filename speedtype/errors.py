"""Domain errors raised by the test-session engine.

Every error here is user-facing: the HTTP layer renders it as
``{"error": message}`` with the class's ``status_code``. None of them are
retried; a client that hits a session-related error must request a fresh
text (and with it a fresh token).
"""

from __future__ import annotations


class TypingTestError(Exception):
    status_code = 400
    default_message = "Typing test error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NoTextAvailable(TypingTestError):
    status_code = 404
    default_message = "No text available for the specified criteria"


class InvalidOwner(TypingTestError):
    default_message = "A test must belong to exactly one user or guest"


class InvalidOrExpiredSession(TypingTestError):
    default_message = "Invalid or expired session token"


class DurationMismatch(TypingTestError):
    default_message = "Duration mismatch with session"


class InvalidMetrics(TypingTestError):
    default_message = "Invalid test metrics"


class GuestSessionNotFound(TypingTestError):
    status_code = 404
    default_message = "Guest session not found"
