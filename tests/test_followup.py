# file: tests/test_followup.py
from datetime import date, datetime, timedelta

import pytest
from pydantic import ValidationError

from rsm_insights import config
from rsm_insights.errors import FollowUpNotAllowed
from rsm_insights.schema import FollowUp, FollowUpState, FollowUpStatus
from rsm_insights.services.followup import FollowUpScheduler, follow_up_status, sort_by_follow_up
from factories import make_item

TODAY = date(2024, 6, 10)

def _awaiting(next_date, count=0):
    return FollowUp(
        status=FollowUpState.awaiting_reply,
        contacted_date=date(2024, 6, 1),
        follow_up_count=count,
        next_follow_up_date=next_date,
    )

@pytest.fixture
def scheduler():
    return FollowUpScheduler(first_days=3, step_days=3)

def test_status_without_follow_up_is_upcoming():
    assert follow_up_status(make_item(), TODAY) == FollowUpStatus.upcoming

def test_status_replied_is_complete():
    fu = _awaiting(TODAY - timedelta(days=5))
    fu.status = FollowUpState.replied
    assert follow_up_status(make_item(follow_up=fu), TODAY) == FollowUpStatus.complete

def test_status_without_next_date_is_complete():
    assert follow_up_status(make_item(follow_up=_awaiting(None)), TODAY) == FollowUpStatus.complete

@pytest.mark.parametrize("offset,expected", [
    (-1, FollowUpStatus.overdue),
    (0, FollowUpStatus.due),
    (1, FollowUpStatus.upcoming),
])
def test_status_compares_next_date_to_today(offset, expected):
    item = make_item(follow_up=_awaiting(TODAY + timedelta(days=offset)))
    assert follow_up_status(item, TODAY) == expected

def test_mark_contacted_schedules_three_days_out(scheduler):
    item = scheduler.mark_contacted(make_item(), date(2024, 2, 27))
    fu = item.follow_up
    assert fu.status == FollowUpState.awaiting_reply
    assert fu.follow_up_count == 0
    assert fu.contacted_date == date(2024, 2, 27)
    assert fu.next_follow_up_date == date(2024, 3, 1)  # leap year

def test_mark_contacted_twice_is_rejected(scheduler):
    item = scheduler.mark_contacted(make_item(), TODAY)
    with pytest.raises(FollowUpNotAllowed):
        scheduler.mark_contacted(item, TODAY)

def test_set_next_counts_from_action_moment(scheduler):
    item = make_item(follow_up=_awaiting(TODAY - timedelta(days=20)))
    now = datetime(2024, 6, 10, 15, 30)

    assert scheduler.set_next(item, now) is True
    assert item.follow_up.follow_up_count == 1
    assert item.follow_up.next_follow_up_date == date(2024, 6, 16)  # +6

    assert scheduler.set_next(item, now) is True
    assert item.follow_up.follow_up_count == 2
    assert item.follow_up.next_follow_up_date == date(2024, 6, 19)  # +9

def test_set_next_is_noop_beyond_second_round(scheduler):
    item = make_item(follow_up=_awaiting(date(2024, 6, 19), count=2))
    assert scheduler.set_next(item, datetime(2024, 6, 20)) is False
    assert item.follow_up.follow_up_count == 2
    assert item.follow_up.next_follow_up_date == date(2024, 6, 19)

def test_set_next_requires_awaiting_reply(scheduler):
    assert scheduler.set_next(make_item(), datetime(2024, 6, 20)) is False
    replied = _awaiting(None)
    replied.status = FollowUpState.replied
    assert scheduler.set_next(make_item(follow_up=replied), datetime(2024, 6, 20)) is False

def test_follow_up_count_above_cap_is_invalid():
    with pytest.raises(ValidationError):
        _awaiting(TODAY, count=3)

def test_can_set_next_only_once_due(scheduler):
    assert scheduler.can_set_next(make_item(follow_up=_awaiting(TODAY + timedelta(days=1))), TODAY) is False
    assert scheduler.can_set_next(make_item(follow_up=_awaiting(TODAY)), TODAY) is True
    assert scheduler.can_set_next(make_item(follow_up=_awaiting(TODAY, count=2)), TODAY) is False

def test_mark_replied_stops_sequence(scheduler):
    item = make_item(follow_up=_awaiting(TODAY))
    scheduler.mark_replied(item, TODAY)
    assert item.follow_up.status == FollowUpState.replied
    assert item.follow_up.reply_date == TODAY
    assert item.follow_up.next_follow_up_date is None
    with pytest.raises(FollowUpNotAllowed):
        scheduler.mark_replied(item, TODAY)

def test_mark_replied_requires_contact(scheduler):
    with pytest.raises(FollowUpNotAllowed):
        scheduler.mark_replied(make_item(), TODAY)

def test_reset_clears_follow_up_keeps_feedback(scheduler):
    item = make_item(follow_up=_awaiting(TODAY), feedback="call back after lunch")
    scheduler.reset(item)
    assert item.follow_up is None
    assert item.feedback == "call back after lunch"

def test_sort_orders_by_status_then_date():
    replied = _awaiting(None)
    replied.status = FollowUpState.replied
    items = [
        make_item("complete", follow_up=replied),
        make_item("new"),
        make_item("later", follow_up=_awaiting(TODAY + timedelta(days=5))),
        make_item("soon", follow_up=_awaiting(TODAY + timedelta(days=2))),
        make_item("due", follow_up=_awaiting(TODAY)),
        make_item("old", follow_up=_awaiting(TODAY - timedelta(days=4))),
        make_item("older", follow_up=_awaiting(TODAY - timedelta(days=9))),
    ]
    ordered = [it.id for it in sort_by_follow_up(items, TODAY)]
    assert ordered[:3] == ["older", "old", "due"]
    assert ordered[-1] == "complete"
    assert set(ordered[3:6]) == {"new", "soon", "later"}
    assert ordered.index("soon") < ordered.index("later")

def test_annotate_adds_status_and_flag(scheduler):
    rows = scheduler.annotate([
        make_item("a", follow_up=_awaiting(TODAY + timedelta(days=1))),
        make_item("b", follow_up=_awaiting(TODAY - timedelta(days=1))),
    ], TODAY)
    assert [r.id for r in rows] == ["b", "a"]
    assert rows[0].follow_up_status == FollowUpStatus.overdue
    assert rows[0].can_set_next is True
    assert rows[1].can_set_next is False

def test_cadence_follows_environment(monkeypatch):
    monkeypatch.setenv("FIRST_FOLLOW_UP_DAYS", "5")
    monkeypatch.setenv("FOLLOW_UP_STEP_DAYS", "4")
    monkeypatch.setattr(config, "_settings", None)

    sched = FollowUpScheduler()
    assert (sched.first_days, sched.step_days) == (5, 4)

    item = sched.mark_contacted(make_item(), date(2024, 6, 1))
    assert item.follow_up.next_follow_up_date == date(2024, 6, 6)

    assert sched.set_next(item, datetime(2024, 6, 6, 9, 0)) is True
    assert item.follow_up.next_follow_up_date == date(2024, 6, 14)  # (1+1)*4
