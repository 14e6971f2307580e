# tests/core/test_exceptions.py
"""Error context carried into details"""

from fixflow.core.exceptions import (
    FixFlowError,
    GPTServiceError,
    RedisServiceError,
    SessionConflictError,
    SessionError,
    ValidationError,
)


class TestErrorContext:

    def test_context_becomes_attributes_and_details(self):
        err = RedisServiceError("write failed", key="fixflow:session:s1", operation="update_json")

        assert err.key == "fixflow:session:s1"
        assert err.operation == "update_json"
        assert err.details == {
            "service_name": "Redis",
            "operation": "update_json",
            "key": "fixflow:session:s1",
        }
        assert isinstance(err, FixFlowError)

    def test_unset_context_stays_out_of_details(self):
        err = SessionError("gone")

        assert err.session_id is None
        assert err.details == {}
        assert str(err) == "gone"

    def test_explicit_details_are_merged(self):
        err = GPTServiceError("timeout", model="gpt-4o-mini", details={"error_type": "TimeoutError"})

        assert err.details["error_type"] == "TimeoutError"
        assert err.details["model"] == "gpt-4o-mini"
        assert "Details:" in str(err)

    def test_validation_value_is_stringified(self):
        err = ValidationError("bad period", field="period", value=7)

        assert err.value == 7
        assert err.details == {"field": "period", "value": "7"}

    def test_conflict_versions(self):
        err = SessionConflictError("stale", session_id="s1", expected_version=1, actual_version=2)

        assert (err.expected_version, err.actual_version) == (1, 2)
        assert err.details["session_id"] == "s1"
