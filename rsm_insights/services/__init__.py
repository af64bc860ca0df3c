from .session_store import SessionStore
from .followup import FollowUpScheduler, follow_up_status, sort_by_follow_up
from .history import ResearchHistory, FeedbackLoop

__all__ = [
    "SessionStore", "FollowUpScheduler", "follow_up_status",
    "sort_by_follow_up", "ResearchHistory", "FeedbackLoop",
]
