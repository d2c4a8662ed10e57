"""
Domain Exceptions for the Conflict Engine

Every error raised by the detector, the resolution engine, the agreement
lifecycle and the goal operations inherits from BaseGoalException.
The calling layer translates them; the core never recovers locally.
"""


class BaseGoalException(Exception):
    """Base class for all business-logic errors"""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        """Serialize for an API response"""
        return {
            "error": {
                "code": self.__class__.__name__,
                "message": self.message,
                "details": self.details
            }
        }


class NotFound(BaseGoalException):
    """Referenced goal, conflict or agreement does not exist"""

    def __init__(self, entity: str, entity_id):
        super().__init__(
            message=f"{entity} not found",
            details={
                "entity": entity,
                "id": str(entity_id)
            }
        )


class InvalidState(BaseGoalException):
    """Operation is forbidden by the current state of a goal, conflict or agreement"""

    def __init__(self, message: str, **details):
        super().__init__(
            message=message,
            details={key: str(value) for key, value in details.items()}
        )


class Unauthorized(BaseGoalException):
    """Caller is not a verified family member or not the goal owner"""

    def __init__(self, reason: str, user_id=None):
        super().__init__(
            message="Caller is not allowed to perform this operation",
            details={
                "reason": reason,
                "user_id": str(user_id) if user_id else None
            }
        )


# =============================================================================
# HTTP Status Mapping
# =============================================================================

EXCEPTION_TO_STATUS = {
    NotFound: 404,
    InvalidState: 409,
    Unauthorized: 403,
}
