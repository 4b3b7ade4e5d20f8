from typing import Any, Dict, Optional


class AppError(Exception):
    """
    Base class for errors reported back to the caller.

    `reason` is a stable machine-readable code, `value` holds the offending
    field values so the caller can render an actionable message.
    """

    status_code = 400
    reason = "error"

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        value: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason
        self.value = value or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"reason": self.reason, "message": self.message, "value": self.value}


class InputNotValidError(AppError):
    status_code = 400
    reason = "input_not_valid"


class ResourceNotFoundError(AppError):
    status_code = 404
    reason = "not_found"

    def __init__(self, resource: str, id: Any):
        super().__init__(
            f"{resource} not found",
            reason=f"{resource.lower()}_not_found",
            value={"id": id},
        )
        self.resource = resource
        self.id = id


class ConflictError(AppError):
    status_code = 409
    reason = "conflict"


class DuplicateVoteError(ConflictError):
    reason = "duplicate_vote"

    def __init__(self, user_id: str, incident_id: int):
        super().__init__(
            "User has already voted on this incident",
            value={"user_id": user_id, "incident_id": incident_id},
        )


class IncidentClosedError(ConflictError):
    reason = "incident_closed"

    def __init__(self, incident_id: int, end_time: Any):
        super().__init__(
            "Cannot vote on a closed incident",
            value={"incident_id": incident_id, "end_time": str(end_time)},
        )
