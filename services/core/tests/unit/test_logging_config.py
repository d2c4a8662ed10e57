"""
AUDIT LOG TESTS

The log_* helpers emit one structured event with stable keys.
"""
import uuid

import pytest
from structlog.testing import capture_logs

from exceptions import InvalidState
from logging_config import log_agreement_status_change, log_conflict_detected, log_error
from domain.conflict_rules import ResourceTag


class TestAuditTrail:

    def test_conflict_detected_keys(self):
        conflict_id, goal_a, goal_b = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

        with capture_logs() as logs:
            log_conflict_detected(
                conflict_id=conflict_id,
                family_id=uuid.uuid4(),
                conflict_type="RESOURCE",
                goal_a_id=goal_a,
                goal_b_id=goal_b,
                shared_resources={ResourceTag.TIME, ResourceTag.MONEY},
            )

        [entry] = logs
        assert entry["event"] == "conflict_detected"
        assert entry["conflict_id"] == str(conflict_id)
        assert entry["shared_resources"] == ["MONEY", "TIME"]

    def test_agreement_change_keys(self):
        with capture_logs() as logs:
            log_agreement_status_change(uuid.uuid4(), "ACTIVE", "REVISED", uuid.uuid4())

        assert logs[0]["event"] == "agreement_status_changed"
        assert (logs[0]["from_status"], logs[0]["to_status"]) == ("ACTIVE", "REVISED")


class TestLogError:

    def test_domain_error_logs_code_and_details(self):
        goal_id = uuid.uuid4()

        with capture_logs() as logs:
            log_error(InvalidState("Goal is blocked", goal_id=goal_id), event="request_rejected", level="INFO",
                      status_code=409)

        [entry] = logs
        assert entry["log_level"] == "info"
        assert entry["error_code"] == "InvalidState"
        assert entry["error_details"] == {"goal_id": str(goal_id)}
        assert entry["status_code"] == 409
        assert "exc_info" not in entry

    def test_unexpected_error_keeps_trace(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            with capture_logs() as logs:
                log_error(e, event="notification_failed", kind="CONFLICT")

        [entry] = logs
        assert entry["log_level"] == "error"
        assert entry["error_type"] == "RuntimeError"
        assert entry["kind"] == "CONFLICT"
        assert isinstance(entry["exc_info"], RuntimeError)

    @pytest.mark.parametrize("level", ["warning", "WARNING"])
    def test_level_is_case_insensitive(self, level):
        with capture_logs() as logs:
            log_error(RuntimeError("x"), level=level)

        assert logs[0]["log_level"] == "warning"
        assert logs[0]["event"] == "error_occurred"
