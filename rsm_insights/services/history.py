# rsm_insights/services/history.py
from __future__ import annotations
import logging
import uuid
from datetime import date, datetime
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from rsm_insights.errors import DuplicateItem, ItemNotFound
from rsm_insights.schema import (
    AddContactRequest, FeedbackLoopItem, FeedbackLoopRow, HistoryItem, PainPoint,
)
from rsm_insights.services.followup import FollowUpScheduler
from rsm_insights.services.session_store import (
    ACTIVE_CONTACT, ANALYSIS_HISTORY, FEEDBACK_LOOP_HISTORY, SessionStore,
)

log = logging.getLogger("history")

M = TypeVar("M", bound=BaseModel)

def _load_list(store: SessionStore, session_id: str, key: str, model: Type[M]) -> List[M]:
    data = store.get_json(session_id, key)
    if data is None:
        return []
    try:
        return TypeAdapter(List[model]).validate_python(data)
    except ValidationError as e:
        log.error("Stored %s for session=%s has the wrong shape, resetting: %s",
                  key, session_id, e.error_count())
        store.remove_item(session_id, key)
        return []

def _save_list(store: SessionStore, session_id: str, key: str, items: List[BaseModel]) -> None:
    store.set_json(session_id, key, [it.to_json_dict() for it in items])

def _find(items: List[M], item_id: str) -> M:
    it = next((x for x in items if x.id == item_id), None)
    if it is None:
        raise ItemNotFound(f"Item {item_id} not found")
    return it

class ResearchHistory:
    """Contacts the user chose to keep from scrape results (analysisHistory)."""

    def __init__(self, store: SessionStore):
        self.store = store

    def list(self, session_id: str) -> List[HistoryItem]:
        return _load_list(self.store, session_id, ANALYSIS_HISTORY, HistoryItem)

    async def add_contact(self, session_id: str, req: AddContactRequest,
                          today: Optional[date] = None) -> HistoryItem:
        async with self.store.lock(session_id):
            items = self.list(session_id)
            if any(it.contact.source_url == req.contact.source_url for it in items):
                raise DuplicateItem("This contact is already in your research history.")
            location = (req.scrape_location or "").strip()
            item = HistoryItem(
                id=uuid.uuid4().hex,
                date=today or date.today(),
                scrape_query=req.scrape_query.strip() or "N/A",
                scrape_source=req.scrape_source,
                scrape_location=location or None,
                contact=req.contact,
                feedback="",
            )
            items.insert(0, item)
            _save_list(self.store, session_id, ANALYSIS_HISTORY, items)
        log.info("history.add session=%s id=%s url=%s", session_id, item.id, item.contact.source_url)
        return item

    async def set_pain_points(self, session_id: str, item_id: str,
                              pain_points: List[PainPoint]) -> HistoryItem:
        async with self.store.lock(session_id):
            items = self.list(session_id)
            item = _find(items, item_id)
            item.pain_points = list(pain_points)
            _save_list(self.store, session_id, ANALYSIS_HISTORY, items)
        return item

    async def set_feedback(self, session_id: str, item_id: str, feedback: str) -> HistoryItem:
        async with self.store.lock(session_id):
            items = self.list(session_id)
            item = _find(items, item_id)
            item.feedback = feedback
            _save_list(self.store, session_id, ANALYSIS_HISTORY, items)
        return item

    async def delete(self, session_id: str, item_id: str) -> None:
        async with self.store.lock(session_id):
            items = self.list(session_id)
            _find(items, item_id)
            _save_list(self.store, session_id, ANALYSIS_HISTORY,
                       [it for it in items if it.id != item_id])

    async def clear(self, session_id: str) -> None:
        async with self.store.lock(session_id):
            _save_list(self.store, session_id, ANALYSIS_HISTORY, [])

    def activate(self, session_id: str, item_id: str) -> HistoryItem:
        """Hand an item over to the reply crafter."""
        item = _find(self.list(session_id), item_id)
        self.store.set_json(session_id, ACTIVE_CONTACT, item.to_json_dict())
        return item

    def active_contact(self, session_id: str) -> Optional[HistoryItem]:
        data = self.store.get_json(session_id, ACTIVE_CONTACT)
        if data is None:
            return None
        try:
            return HistoryItem.model_validate(data)
        except ValidationError:
            log.error("Stored %s for session=%s has the wrong shape, resetting", ACTIVE_CONTACT, session_id)
            self.store.remove_item(session_id, ACTIVE_CONTACT)
            return None

class FeedbackLoop:
    """Contacts with outreach tracking (feedbackLoopHistory)."""

    def __init__(self, store: SessionStore, scheduler: Optional[FollowUpScheduler] = None):
        self.store = store
        self.scheduler = scheduler or FollowUpScheduler()

    def items(self, session_id: str) -> List[FeedbackLoopItem]:
        return _load_list(self.store, session_id, FEEDBACK_LOOP_HISTORY, FeedbackLoopItem)

    def rows(self, session_id: str, today: Optional[date] = None) -> List[FeedbackLoopRow]:
        return self.scheduler.annotate(self.items(session_id), today)

    async def add(self, session_id: str, entry: HistoryItem) -> FeedbackLoopItem:
        async with self.store.lock(session_id):
            items = self.items(session_id)
            if any(it.id == entry.id for it in items):
                raise DuplicateItem("This contact is already in your feedback loop.")
            item = FeedbackLoopItem(**entry.model_dump())
            items.insert(0, item)
            self._save(session_id, items)
        log.info("loop.add session=%s id=%s", session_id, item.id)
        return item

    async def mark_contacted(self, session_id: str, item_id: str, contacted: date) -> FeedbackLoopItem:
        async with self.store.lock(session_id):
            items = self.items(session_id)
            item = self.scheduler.mark_contacted(_find(items, item_id), contacted)
            self._save(session_id, items)
        return item

    async def set_next(self, session_id: str, item_id: str,
                       now: Optional[datetime] = None) -> tuple[FeedbackLoopItem, bool]:
        async with self.store.lock(session_id):
            items = self.items(session_id)
            item = _find(items, item_id)
            applied = self.scheduler.set_next(item, now)
            if applied:
                self._save(session_id, items)
        return item, applied

    async def mark_replied(self, session_id: str, item_id: str,
                           today: Optional[date] = None) -> FeedbackLoopItem:
        async with self.store.lock(session_id):
            items = self.items(session_id)
            item = self.scheduler.mark_replied(_find(items, item_id), today)
            self._save(session_id, items)
        return item

    async def reset(self, session_id: str, item_id: str) -> FeedbackLoopItem:
        async with self.store.lock(session_id):
            items = self.items(session_id)
            item = self.scheduler.reset(_find(items, item_id))
            self._save(session_id, items)
        return item

    async def set_feedback(self, session_id: str, item_id: str, feedback: str) -> FeedbackLoopItem:
        async with self.store.lock(session_id):
            items = self.items(session_id)
            item = _find(items, item_id)
            item.feedback = feedback
            self._save(session_id, items)
        return item

    async def delete(self, session_id: str, item_id: str) -> None:
        async with self.store.lock(session_id):
            items = self.items(session_id)
            _find(items, item_id)
            self._save(session_id, [it for it in items if it.id != item_id])

    async def clear(self, session_id: str) -> None:
        async with self.store.lock(session_id):
            self._save(session_id, [])

    def _save(self, session_id: str, items: List[FeedbackLoopItem]) -> None:
        _save_list(self.store, session_id, FEEDBACK_LOOP_HISTORY, items)
