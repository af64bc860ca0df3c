# file: rsm_insights/main.py
import logging
from datetime import datetime
from typing import List

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from rsm_insights import __version__
from rsm_insights.config import get_settings
from rsm_insights.errors import FollowUpNotAllowed, InvalidRequest, ItemNotFound, RSMError
from rsm_insights.logging_config import setup_logging
from rsm_insights.schema import (
    ActionResult, AddContactRequest, AddToLoopRequest, ContactedRequest,
    FeedbackLoopRow, FeedbackRequest, HistoryItem, PainPointsRequest,
)
from rsm_insights.services import FeedbackLoop, ResearchHistory, SessionStore

setup_logging()
log = logging.getLogger("api")

settings = get_settings()
store = SessionStore(settings.data_dir if settings.persist_sessions else None)
history = ResearchHistory(store)
loop = FeedbackLoop(store)

app = FastAPI(title="RSM Insights", version=__version__)

def session_header(x_session_id: str = Header("default")) -> str:
    return x_session_id

SessionHeader = Depends(session_header)

def _ok(message: str, data=None) -> dict:
    return ActionResult(success=True, message=message, data=data).to_json_dict()

@app.exception_handler(RSMError)
async def rsm_error_handler(request: Request, exc: RSMError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc)})

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

@app.get("/health")
async def health():
    """Liveness plus the follow-up cadence in effect"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "sessions_persisted": settings.persist_sessions,
        "follow_up": {
            "first_days": loop.scheduler.first_days,
            "step_days": loop.scheduler.step_days,
            "max_rounds": loop.scheduler.max_rounds,
        },
    }

# ---------------- Research history ----------------

@app.get("/history")
async def list_history(session_id: str = SessionHeader):
    items = history.list(session_id)
    return {"count": len(items), "items": [it.to_json_dict() for it in items]}

@app.post("/history", status_code=201)
async def add_contact(req: AddContactRequest, session_id: str = SessionHeader):
    item = await history.add_contact(session_id, req)
    name = item.contact.name or "Unnamed contact"
    return _ok(f"{name} has been added to your research.", item.to_json_dict())

@app.delete("/history")
async def clear_history(session_id: str = SessionHeader):
    await history.clear(session_id)
    return _ok("All contacts have been removed from your research history.")

@app.delete("/history/{item_id}")
async def delete_history_item(item_id: str, session_id: str = SessionHeader):
    await history.delete(session_id, item_id)
    return _ok("The contact has been removed from your research history.")

@app.put("/history/{item_id}/pain-points")
async def set_pain_points(item_id: str, req: PainPointsRequest, session_id: str = SessionHeader):
    item = await history.set_pain_points(session_id, item_id, req.pain_points)
    return _ok("Direct pain points have been identified.", item.to_json_dict())

@app.put("/history/{item_id}/feedback")
async def set_history_feedback(item_id: str, req: FeedbackRequest, session_id: str = SessionHeader):
    item = await history.set_feedback(session_id, item_id, req.feedback)
    return _ok("Feedback saved.", item.to_json_dict())

@app.post("/history/{item_id}/activate")
async def activate_contact(item_id: str, session_id: str = SessionHeader):
    item = history.activate(session_id, item_id)
    return _ok("Active contact set.", item.to_json_dict())

@app.get("/active-contact")
async def get_active_contact(session_id: str = SessionHeader):
    item = history.active_contact(session_id)
    if not item:
        raise ItemNotFound("No active contact")
    return item.to_json_dict()

# ---------------- Feedback loop ----------------

@app.get("/feedback-loop")
async def list_feedback_loop(session_id: str = SessionHeader):
    rows: List[FeedbackLoopRow] = loop.rows(session_id)
    return {"count": len(rows), "items": [r.to_json_dict() for r in rows]}

@app.post("/feedback-loop", status_code=201)
async def add_to_feedback_loop(req: AddToLoopRequest, session_id: str = SessionHeader):
    entry: HistoryItem | None = req.item
    if req.from_active:
        entry = history.active_contact(session_id)
        if not entry:
            raise ItemNotFound("No active contact")
    if entry is None:
        raise InvalidRequest("Provide an item or fromActive=true")
    item = await loop.add(session_id, entry)
    return _ok("Contact added to your feedback loop.", item.to_json_dict())

@app.delete("/feedback-loop")
async def clear_feedback_loop(session_id: str = SessionHeader):
    await loop.clear(session_id)
    return _ok("All contacts have been removed from your feedback loop.")

@app.delete("/feedback-loop/{item_id}")
async def delete_feedback_loop_item(item_id: str, session_id: str = SessionHeader):
    await loop.delete(session_id, item_id)
    return _ok("The contact has been removed from your feedback loop.")

@app.put("/feedback-loop/{item_id}/feedback")
async def set_loop_feedback(item_id: str, req: FeedbackRequest, session_id: str = SessionHeader):
    item = await loop.set_feedback(session_id, item_id, req.feedback)
    return _ok("Feedback saved.", item.to_json_dict())

@app.post("/feedback-loop/{item_id}/contacted")
async def mark_contacted(item_id: str, req: ContactedRequest, session_id: str = SessionHeader):
    item = await loop.mark_contacted(session_id, item_id, req.contacted_date)
    days = loop.scheduler.first_days
    return _ok(f"Next follow-up scheduled in {days} days.", item.to_json_dict())

@app.post("/feedback-loop/{item_id}/next")
async def set_next_follow_up(item_id: str, session_id: str = SessionHeader):
    item, applied = await loop.set_next(session_id, item_id)
    if not applied:
        raise FollowUpNotAllowed("No further follow-up can be scheduled for this contact.")
    return _ok("Next follow-up scheduled.", item.to_json_dict())

@app.post("/feedback-loop/{item_id}/replied")
async def mark_replied(item_id: str, session_id: str = SessionHeader):
    item = await loop.mark_replied(session_id, item_id)
    return _ok("Follow-up sequence for this contact has been stopped.", item.to_json_dict())

@app.post("/feedback-loop/{item_id}/reset")
async def reset_follow_up(item_id: str, session_id: str = SessionHeader):
    item = await loop.reset(session_id, item_id)
    return _ok("The follow-up status for this contact has been cleared.", item.to_json_dict())

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
