"""Compute typing speed and accuracy from raw keystroke counters.

A "word" is standardised as five characters, so WPM is characters / 5 per
minute of elapsed time. Only correctly typed characters count towards WPM;
raw WPM counts every typed character. All three metric functions are pure.
"""

from __future__ import annotations

from typing import Any

from speedtype.config import settings
from speedtype.errors import InvalidMetrics

CHARS_PER_WORD = 5


def _require_non_negative(**values: float) -> None:
    for name, value in values.items():
        if value < 0:
            raise InvalidMetrics(f"{name} must be non-negative")


def wpm(correct_chars: int, elapsed_seconds: float) -> float:
    """Net words per minute; 0 when no time has elapsed."""
    _require_non_negative(correct_chars=correct_chars)
    if elapsed_seconds <= 0:
        return 0.0
    return (correct_chars / CHARS_PER_WORD) / (elapsed_seconds / 60)


def raw_wpm(total_chars: int, elapsed_seconds: float) -> float:
    """Gross words per minute, counting incorrect characters too."""
    _require_non_negative(total_chars=total_chars)
    if elapsed_seconds <= 0:
        return 0.0
    return (total_chars / CHARS_PER_WORD) / (elapsed_seconds / 60)


def accuracy(correct_chars: int, incorrect_chars: int) -> float:
    """Percentage of typed characters that were correct; 100 for an empty test."""
    _require_non_negative(correct_chars=correct_chars, incorrect_chars=incorrect_chars)
    typed = correct_chars + incorrect_chars
    if typed == 0:
        return 100.0
    return 100 * correct_chars / typed


def validate_counters(
    correct_chars: int,
    incorrect_chars: int,
    total_chars: int,
    duration_seconds: int,
) -> None:
    """Reject counters that cannot come from an honest test.

    Raises InvalidMetrics; values are never clamped.
    """
    _require_non_negative(
        correct_chars=correct_chars,
        incorrect_chars=incorrect_chars,
        total_chars=total_chars,
    )
    if total_chars != correct_chars + incorrect_chars:
        raise InvalidMetrics(
            "Total characters must equal correct characters plus incorrect characters"
        )
    lo, hi = settings.min_duration_seconds, settings.max_duration_seconds
    if not lo <= duration_seconds <= hi:
        raise InvalidMetrics(f"Duration must be between {lo} and {hi} seconds")
    if raw_wpm(total_chars, duration_seconds) > settings.max_plausible_wpm:
        raise InvalidMetrics(
            f"Typing speed above {settings.max_plausible_wpm:g} WPM is not plausible"
        )


def compute_metrics(
    correct_chars: int,
    incorrect_chars: int,
    total_chars: int,
    duration_seconds: int,
) -> dict[str, Any]:
    """
    Validate the counters and compute all metrics for one test.

    Returns:
      {"wpm": float, "raw_wpm": float, "accuracy": float}, each rounded to 2 dp.
    """
    validate_counters(correct_chars, incorrect_chars, total_chars, duration_seconds)
    return {
        "wpm": round(wpm(correct_chars, duration_seconds), 2),
        "raw_wpm": round(raw_wpm(total_chars, duration_seconds), 2),
        "accuracy": round(accuracy(correct_chars, incorrect_chars), 2),
    }
