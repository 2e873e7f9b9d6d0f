"""Tests for result recording, user stats and history."""

import statistics

import pytest
from sqlalchemy import func, select

from speedtype import models
from speedtype.errors import DurationMismatch, InvalidMetrics, InvalidOwner
from speedtype.owners import GuestOwner, UserOwner
from speedtype.services import results
from speedtype.services.results import list_guest_results, list_user_results, record, user_stats
from speedtype.services.sessions import Fingerprint, SessionContext, consume, issue

pytestmark = pytest.mark.anyio

FP = Fingerprint.from_raw("127.0.0.1", "pytest")


async def _context(db, owner, text, duration=60):
    issued = await issue(db, owner, text.id, duration, FP)
    return await consume(db, issued.session_token, FP)


async def _record(db, context, wpm, duration=60, **overrides):
    correct = int(wpm * 5 * duration / 60)
    fields = dict(
        declared_duration=duration,
        wpm=wpm,
        raw_wpm=wpm,
        accuracy=100.0,
        correct_chars=correct,
        incorrect_chars=0,
        total_chars=correct,
        text_snippet="The quick brown fox",
    )
    fields.update(overrides)
    return await record(db, context, **fields)


async def test_record_user_result_updates_stats(db, text, user):
    context = await _context(db, UserOwner(user.id), text)
    outcome = await _record(db, context, 50.0)

    assert outcome.is_new_record is True
    assert outcome.result.user_id == user.id
    assert outcome.result.guest_session_id is None
    assert outcome.result.session_id == context.session_id

    stats = await user_stats(db, user.id)
    assert stats == {"best_wpm": 50.0, "avg_wpm": 50.0, "total_tests": 1}


async def test_slower_result_is_not_a_new_record(db, text, user):
    await _record(db, await _context(db, UserOwner(user.id), text), 60.0)
    outcome = await _record(db, await _context(db, UserOwner(user.id), text), 40.0)
    assert outcome.is_new_record is False

    tie = await _record(db, await _context(db, UserOwner(user.id), text), 60.0)
    assert tie.is_new_record is False


async def test_stats_match_batch_aggregates(db, text, user):
    wpms = [42.0, 55.5, 38.25, 71.0, 64.75, 50.0]
    for value in wpms:
        await _record(db, await _context(db, UserOwner(user.id), text), value)

    stats = await user_stats(db, user.id)
    assert stats["total_tests"] == len(wpms)
    assert stats["best_wpm"] == max(wpms)
    assert stats["avg_wpm"] == pytest.approx(statistics.mean(wpms), abs=0.01)


async def test_guest_result_has_no_stats(db, text, guest, user):
    context = await _context(db, GuestOwner(guest.id), text)
    outcome = await _record(db, context, 80.0)

    assert outcome.is_new_record is False
    assert outcome.result.guest_session_id == guest.id
    assert outcome.result.user_id is None
    assert (await user_stats(db, user.id))["total_tests"] == 0


async def test_duration_mismatch(db, text, user):
    context = await _context(db, UserOwner(user.id), text, duration=30)
    with pytest.raises(DurationMismatch):
        await _record(db, context, 50.0, duration=60)

    count = (await db.execute(select(func.count(models.TestResult.id)))).scalar_one()
    assert count == 0


async def test_inconsistent_counters_rejected(db, text, user):
    context = await _context(db, UserOwner(user.id), text)
    with pytest.raises(InvalidMetrics):
        await _record(db, context, 50.0, total_chars=1)


async def test_insert_and_stats_are_all_or_nothing(db, text, user):
    real = await _context(db, UserOwner(user.id), text)
    # Same session row, but bound to a user that does not exist
    ghost = SessionContext(
        session_id=real.session_id,
        owner=UserOwner(user.id + 999),
        text_id=real.text_id,
        duration_seconds=real.duration_seconds,
    )
    with pytest.raises(InvalidOwner):
        await _record(db, ghost, 50.0)

    count = (await db.execute(select(func.count(models.TestResult.id)))).scalar_one()
    assert count == 0


async def test_snippet_is_truncated(db, text, user):
    context = await _context(db, UserOwner(user.id), text)
    outcome = await _record(db, context, 50.0, text_snippet="x" * 250)
    assert len(outcome.result.text_snippet) == 100


async def test_user_history_pagination(db, text, user):
    for value in (30.0, 40.0, 50.0):
        await _record(db, await _context(db, UserOwner(user.id), text), value)

    page1 = await list_user_results(db, user.id, page=1, limit=2)
    assert [r["wpm"] for r in page1["results"]] == [50.0, 40.0]
    assert page1["pagination"]["total"] == 3
    assert page1["pagination"]["total_pages"] == 2
    assert page1["pagination"]["has_next"] is True
    assert page1["results"][0]["text"]["difficulty"] == "medium"

    page2 = await list_user_results(db, user.id, page=2, limit=2, timeframe="week")
    assert [r["wpm"] for r in page2["results"]] == [30.0]
    assert page2["pagination"]["has_prev"] is True


async def test_guest_history(db, text, guest):
    await _record(db, await _context(db, GuestOwner(guest.id), text), 33.0)
    history = await list_guest_results(db, guest.id)
    assert len(history["results"]) == 1
    assert history["results"][0]["wpm"] == 33.0


async def test_unknown_timeframe(db, user):
    with pytest.raises(ValueError):
        await results.list_user_results(db, user.id, timeframe="decade")
