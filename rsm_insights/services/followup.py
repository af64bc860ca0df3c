# rsm_insights/services/followup.py
from __future__ import annotations
import logging
from functools import cmp_to_key
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from rsm_insights.config import get_settings
from rsm_insights.errors import FollowUpNotAllowed
from rsm_insights.schema import (
    MAX_FOLLOW_UPS, FeedbackLoopItem, FeedbackLoopRow, FollowUp,
    FollowUpState, FollowUpStatus,
)

log = logging.getLogger("followup")

_STATUS_RANK = {
    FollowUpStatus.overdue: 1,
    FollowUpStatus.due: 2,
    FollowUpStatus.upcoming: 3,
    FollowUpStatus.complete: 4,
}

def _today(today: Optional[date]) -> date:
    return today or date.today()

def follow_up_status(item: FeedbackLoopItem, today: Optional[date] = None) -> FollowUpStatus:
    fu = item.follow_up
    if fu is None:
        return FollowUpStatus.upcoming  # not contacted yet
    if fu.status == FollowUpState.replied:
        return FollowUpStatus.complete
    if fu.next_follow_up_date is None:
        return FollowUpStatus.complete

    t = _today(today)
    if fu.next_follow_up_date < t:
        return FollowUpStatus.overdue
    if fu.next_follow_up_date == t:
        return FollowUpStatus.due
    return FollowUpStatus.upcoming

def sort_by_follow_up(items: Iterable[FeedbackLoopItem], today: Optional[date] = None) -> List[FeedbackLoopItem]:
    """
    Order for the loop table: overdue, due, upcoming, complete.
    Within a status, items that both carry a next date are ordered by it;
    anything else compares equal and keeps its stored order.
    """
    t = _today(today)

    def compare(a: FeedbackLoopItem, b: FeedbackLoopItem) -> int:
        ra = _STATUS_RANK[follow_up_status(a, t)]
        rb = _STATUS_RANK[follow_up_status(b, t)]
        if ra != rb:
            return ra - rb
        da = a.follow_up.next_follow_up_date if a.follow_up else None
        db = b.follow_up.next_follow_up_date if b.follow_up else None
        if da and db:
            return (da - db).days
        return 0

    return sorted(items, key=cmp_to_key(compare))

class FollowUpScheduler:
    """Fixed-offset follow-up cadence for the feedback loop."""

    def __init__(self, first_days: Optional[int] = None, step_days: Optional[int] = None,
                 max_rounds: int = MAX_FOLLOW_UPS):
        s = get_settings()
        self.first_days = s.first_follow_up_days if first_days is None else first_days
        self.step_days = s.follow_up_step_days if step_days is None else step_days
        self.max_rounds = max_rounds

    def mark_contacted(self, item: FeedbackLoopItem, contacted: date) -> FeedbackLoopItem:
        if item.follow_up is not None:
            raise FollowUpNotAllowed("Contact already has an active follow-up.")
        item.follow_up = FollowUp(
            status=FollowUpState.awaiting_reply,
            contacted_date=contacted,
            follow_up_count=0,
            next_follow_up_date=contacted + timedelta(days=self.first_days),
        )
        log.info("followup.contacted id=%s next=%s", item.id, item.follow_up.next_follow_up_date)
        return item

    def can_set_next(self, item: FeedbackLoopItem, today: Optional[date] = None) -> bool:
        """Whether the next round may be scheduled (count below cap and current date reached)."""
        fu = item.follow_up
        if not self._schedulable(fu):
            return False
        return fu.next_follow_up_date is not None and fu.next_follow_up_date <= _today(today)

    def set_next(self, item: FeedbackLoopItem, now: Optional[datetime] = None) -> bool:
        """
        Schedule the next round, counted from the action moment:
        round R -> R+1, next date = now + (R+2) * step days.
        Returns False (item untouched) when no further round is allowed.
        """
        fu = item.follow_up
        if not self._schedulable(fu):
            log.info("followup.set_next no-op id=%s", item.id)
            return False
        moment = now or datetime.now()
        fu.follow_up_count += 1
        days = (fu.follow_up_count + 1) * self.step_days
        fu.next_follow_up_date = (moment + timedelta(days=days)).date()
        log.info("followup.set_next id=%s round=%d next=%s", item.id, fu.follow_up_count, fu.next_follow_up_date)
        return True

    def mark_replied(self, item: FeedbackLoopItem, today: Optional[date] = None) -> FeedbackLoopItem:
        fu = item.follow_up
        if fu is None:
            raise FollowUpNotAllowed("Contact has not been contacted yet.")
        if fu.status == FollowUpState.replied:
            raise FollowUpNotAllowed("Contact has already replied.")
        fu.status = FollowUpState.replied
        fu.reply_date = _today(today)
        fu.next_follow_up_date = None
        log.info("followup.replied id=%s", item.id)
        return item

    def reset(self, item: FeedbackLoopItem) -> FeedbackLoopItem:
        item.follow_up = None
        item.feedback = item.feedback or ""
        return item

    def annotate(self, items: Iterable[FeedbackLoopItem], today: Optional[date] = None) -> List[FeedbackLoopRow]:
        t = _today(today)
        return [
            FeedbackLoopRow(
                **it.model_dump(),
                follow_up_status=follow_up_status(it, t),
                can_set_next=self.can_set_next(it, t),
            )
            for it in sort_by_follow_up(items, t)
        ]

    def _schedulable(self, fu: Optional[FollowUp]) -> bool:
        return (
            fu is not None
            and fu.status == FollowUpState.awaiting_reply
            and fu.follow_up_count < self.max_rounds
        )
