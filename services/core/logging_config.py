"""
Logging for Family Accord

structlog rendered through the standard logging handlers. Modules take a
logger from get_logger(__name__) and log snake_case events with keyword
context.

The log_* helpers are the audit trail of the conflict engine: every goal
status change, every conflict detected or resolved and every manual
agreement change goes through one of them, so the same keys show up for
the same facts whichever module emitted them.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

import structlog

import settings
from exceptions import BaseGoalException


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_logs: bool = False
) -> None:
    """
    Configure structlog and the root handler.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_file: also append records to this file
        json_logs: one JSON object per line (production) instead of console output
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=_level(level))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(_level(level))
        logging.getLogger().addHandler(file_handler)


def get_logger(name: str | None = None) -> Any:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("goal_created", goal_id=str(goal.id), family_id=str(goal.family_id))
    """
    return structlog.get_logger(name)


# =============================================================================
# Audit trail
# =============================================================================

def log_goal_transition(goal_id, from_state: str, to_state: str, actor: str, reason: str) -> None:
    get_logger("goals").info(
        "goal_transition",
        goal_id=str(goal_id),
        from_state=from_state,
        to_state=to_state,
        actor=actor,
        reason=reason,
    )


def log_conflict_detected(
    conflict_id,
    family_id,
    conflict_type: str,
    goal_a_id,
    goal_b_id,
    shared_resources: Iterable,
) -> None:
    get_logger("conflicts").info(
        "conflict_detected",
        conflict_id=str(conflict_id),
        family_id=str(family_id),
        conflict_type=conflict_type,
        goal_a_id=str(goal_a_id),
        goal_b_id=str(goal_b_id),
        shared_resources=sorted(getattr(tag, "value", tag) for tag in shared_resources),
    )


def log_conflict_resolved(
    conflict_id,
    strategy: str,
    agreement_id,
    resolved_by,
    valid_until: Optional[datetime] = None,
) -> None:
    get_logger("conflicts").info(
        "conflict_resolved",
        conflict_id=str(conflict_id),
        strategy=strategy,
        agreement_id=str(agreement_id),
        resolved_by=str(resolved_by),
        valid_until=valid_until.isoformat() if valid_until else None,
    )


def log_agreement_status_change(agreement_id, from_status: str, to_status: str, changed_by) -> None:
    get_logger("agreements").info(
        "agreement_status_changed",
        agreement_id=str(agreement_id),
        from_status=from_status,
        to_status=to_status,
        changed_by=str(changed_by),
    )


def log_error(
    error: Exception,
    event: str = "error_occurred",
    level: str = "ERROR",
    **context
) -> None:
    """
    Log an exception with its context.

    Domain errors (NotFound, InvalidState, Unauthorized) carry their code and
    details instead of a stack trace; anything else logs the full trace.
    """
    logger = get_logger("errors")
    log_func = getattr(logger, level.lower(), logger.error)

    if isinstance(error, BaseGoalException):
        log_func(
            event,
            error_code=type(error).__name__,
            error_message=error.message,
            error_details=error.details,
            **context,
        )
        return

    log_func(
        event,
        error_type=type(error).__name__,
        error_message=str(error),
        exc_info=error,
        **context,
    )


def http_request_summary(method: str, path: str, status_code: int, duration_ms: float) -> None:
    get_logger("http").info(
        "http_request",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
    )


setup_logging(
    level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    json_logs=settings.LOG_JSON
)
