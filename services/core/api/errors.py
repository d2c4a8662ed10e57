"""
Domain exception -> HTTP mapping shared by all routers.
"""
from fastapi import HTTPException

from exceptions import BaseGoalException, EXCEPTION_TO_STATUS
from logging_config import log_error


def map_exception_to_http(exc: BaseGoalException) -> HTTPException:
    """
    Map domain exception to HTTP response.

    Args:
        exc: Domain exception from service layer

    Returns:
        HTTPException with proper status code and structured error payload
    """
    status_code = EXCEPTION_TO_STATUS.get(type(exc), 500)
    log_error(exc, event="request_rejected", level="INFO", status_code=status_code)
    return HTTPException(status_code=status_code, detail=exc.to_dict())


ERROR_RESPONSES = {
    403: {"description": "Caller is not a family member / goal owner"},
    404: {"description": "Goal, conflict or agreement not found"},
    409: {"description": "Operation forbidden by current state"},
}
