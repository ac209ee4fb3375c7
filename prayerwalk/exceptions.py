"""Walk errors and their HTTP status equivalents"""

INTEGRITY_FAILURE_REASON = "suspicious GPS activity or route skipping detected"


class WalkError(Exception):
    """Base class for rejected walk operations. Session state is left unchanged."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class SessionNotFoundError(WalkError):
    status_code = 404

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionForbiddenError(WalkError):
    status_code = 403

    def __init__(self, session_id: str):
        super().__init__("Session belongs to another user")
        self.session_id = session_id


class SessionNotActiveError(WalkError):
    status_code = 409

    def __init__(self, session_id: str, status: str):
        super().__init__(f"Session is not active (status: {status})")
        self.session_id = session_id
        self.status = status


class ActiveSessionExistsError(WalkError):
    status_code = 409

    def __init__(self, user_id: str):
        super().__init__("Active session already exists")
        self.user_id = user_id


class LocationNotFoundError(WalkError):
    status_code = 404

    def __init__(self, location_id: str):
        super().__init__(f"Location not found or inactive: {location_id}")
        self.location_id = location_id


class IntegrityTooLowError(WalkError):
    """Completion refused for low trust. Not a system error, the walker may retry."""

    status_code = 403

    def __init__(self, final_score: int, reason: str = INTEGRITY_FAILURE_REASON):
        super().__init__("Session integrity too low for reward")
        self.final_score = final_score
        self.reason = reason

    def to_dict(self) -> dict:
        return {"error": self.message, "trustScore": self.final_score, "reason": self.reason}
