# file: rsm_insights/schema.py
from __future__ import annotations
import datetime as dt
from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Additional rounds after the first touch
MAX_FOLLOW_UPS = 2

class CamelModel(BaseModel):
    """Stored blobs and API payloads use camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

class ScrapeSource(str, Enum):
    website = "website"
    reddit = "reddit"
    news = "news"
    instagram = "instagram"
    facebook = "facebook"
    linkedin = "linkedin"
    youtube = "youtube"

class FollowUpState(str, Enum):
    awaiting_reply = "awaiting_reply"
    replied = "replied"

class FollowUpStatus(str, Enum):
    overdue = "overdue"
    due = "due"
    upcoming = "upcoming"
    complete = "complete"

class Contact(CamelModel):
    name: Optional[str] = None
    source_url: str
    summary: str
    social_media_links: Optional[List[str]] = None
    phone_numbers: Optional[List[str]] = None
    emails: Optional[List[str]] = None

class PainPoint(CamelModel):
    category: str
    description: str
    suggested_service: str = ""

class FollowUp(CamelModel):
    status: FollowUpState = FollowUpState.awaiting_reply
    contacted_date: dt.date
    follow_up_count: int = Field(0, ge=0, le=MAX_FOLLOW_UPS)
    next_follow_up_date: Optional[dt.date] = None
    reply_date: Optional[dt.date] = None

class HistoryItem(CamelModel):
    id: str
    date: dt.date
    scrape_query: str
    scrape_source: ScrapeSource
    scrape_location: Optional[str] = None
    contact: Contact
    pain_points: Optional[List[PainPoint]] = None
    feedback: str = ""

class FeedbackLoopItem(HistoryItem):
    follow_up: Optional[FollowUp] = None

class FeedbackLoopRow(FeedbackLoopItem):
    """Listing view: a loop item annotated with derived follow-up state."""
    follow_up_status: FollowUpStatus
    can_set_next: bool = False

# ---- request / response bodies ----

class AddContactRequest(CamelModel):
    contact: Contact
    scrape_query: str = ""
    scrape_source: ScrapeSource = ScrapeSource.website
    scrape_location: Optional[str] = None

class PainPointsRequest(CamelModel):
    pain_points: List[PainPoint]

class FeedbackRequest(CamelModel):
    feedback: str

class ContactedRequest(CamelModel):
    contacted_date: dt.date

class AddToLoopRequest(CamelModel):
    item: Optional[HistoryItem] = None
    from_active: bool = False

class ActionResult(CamelModel):
    success: bool = True
    message: str = ""
    data: Optional[Any] = None
