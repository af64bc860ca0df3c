# rsm_insights/errors.py
class RSMError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 400

class ItemNotFound(RSMError):
    status_code = 404

class DuplicateItem(RSMError):
    status_code = 409

class FollowUpNotAllowed(RSMError):
    """Follow-up action is not applicable to the record's current state."""
    status_code = 409

class InvalidRequest(RSMError):
    """Request body is well-formed but does not say what to act on."""
    status_code = 422
