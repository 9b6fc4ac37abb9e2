"""
Tests for the exception hierarchy and HTTP status mapping.
"""

import pytest

from ecosort.exceptions import (
    AuthenticationRequiredError,
    ConflictError,
    DatabaseError,
    DuplicateError,
    EcoSortError,
    InsufficientPointsError,
    InvalidStateError,
    MissingRequiredFieldError,
    NotFoundError,
    OutOfStockError,
    PermissionDeniedError,
    RateLimitError,
    RewardNotFoundError,
    ValidationError,
    exception_to_http_status,
    handle_exception,
)


class TestStatusMapping:
    @pytest.mark.parametrize(
        "exc, status",
        [
            (ValidationError("bad"), 400),
            (MissingRequiredFieldError("name"), 400),
            (AuthenticationRequiredError(), 401),
            (PermissionDeniedError(), 403),
            (RewardNotFoundError("r1"), 404),
            (InvalidStateError("submission", current="confirmed"), 409),
            (InsufficientPointsError(balance=10, required=50), 409),
            (OutOfStockError("r1"), 409),
            (DuplicateError("waste type", "Plastic"), 409),
            (RateLimitError(retry_after=5), 429),
            (DatabaseError(), 500),
            (EcoSortError("boom"), 500),
        ],
    )
    def test_status(self, exc, status):
        assert exception_to_http_status(exc) == status


class TestErrorPayloads:
    def test_validation_error_prefixes_field(self):
        exc = ValidationError("must be positive", field="weight")
        assert exc.message == "weight: must be positive"
        assert exc.to_dict()["error"] == "validation_error"

    def test_not_found_detail_names_resource(self):
        exc = RewardNotFoundError("abc")
        payload = exc.to_dict()
        assert payload["error"] == "not_found"
        assert payload["message"] == "Reward not found"
        assert payload["detail"] == "reward_id='abc'"

    def test_not_found_subclasses(self):
        assert issubclass(RewardNotFoundError, NotFoundError)

    def test_conflict_codes(self):
        assert InvalidStateError("redemption", current="claimed").error_code == "invalid_state"
        assert InsufficientPointsError(balance=1, required=2).error_code == "insufficient_points"
        assert OutOfStockError("r").error_code == "out_of_stock"
        assert isinstance(DuplicateError("category", "x"), ConflictError)

    def test_invalid_state_message(self):
        exc = InvalidStateError("submission", current="confirmed")
        assert exc.message == "Only pending submissions can be changed"
        assert exc.detail == "Current status: confirmed"

    def test_rate_limit_includes_retry_after(self):
        payload = RateLimitError(retry_after=12).to_dict()
        assert payload["retry_after"] == 12
        assert payload["error"] == "rate_limited"

    def test_database_error_detail(self):
        exc = DatabaseError(operation="insert", table="redemptions")
        assert exc.detail == "Operation: insert; Table: redemptions"

    def test_request_id_generated(self):
        assert EcoSortError("x").request_id


class TestHandleException:
    def test_ecosort_error_keeps_code_and_takes_request_id(self):
        payload = handle_exception(OutOfStockError("r1"), request_id="req-1")
        assert payload["error"] == "out_of_stock"
        assert payload["request_id"] == "req-1"

    def test_value_error_becomes_validation_error(self):
        assert handle_exception(ValueError("nope"))["error"] == "validation_error"

    def test_key_error_becomes_validation_error(self):
        assert handle_exception(KeyError("name"))["error"] == "validation_error"

    def test_permission_error(self):
        assert handle_exception(PermissionError("no"))["error"] == "permission_denied"

    def test_unknown_error_is_internal(self):
        payload = handle_exception(RuntimeError("kaboom"), request_id="req-2")
        assert payload["error"] == "internal_error"
        assert payload["request_id"] == "req-2"
