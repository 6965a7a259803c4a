"""Tests for the error hierarchy — status codes, kinds and response envelopes."""

from coachflow.core.errors import (
    CircularHandoffError, ErrorContext, ErrorKind, ResourceNotFoundError,
    TransitionFailureError, error_for_kind,
)


def test_not_found_response_envelope():
    err = ResourceNotFoundError("Agent", "nonexistent", ErrorContext(user_id="u1"))
    body = err.to_response()["error"]
    assert err.http_status == 404
    assert body["code"] == "RESOURCE_NOT_FOUND"
    assert body["kind"] == "NotFound"
    assert body["message"] == "Agent 'nonexistent' not found"
    assert body["context"]["user_id"] == "u1"


def test_error_for_kind_maps_business_rules_to_409():
    err = error_for_kind(ErrorKind.CIRCULAR_HANDOFF, "loop")
    assert isinstance(err, CircularHandoffError)
    assert err.http_status == 409
    assert err.message == "loop"


def test_error_for_kind_not_found_and_not_ready():
    assert error_for_kind(ErrorKind.NOT_FOUND, "x").http_status == 404
    not_ready = error_for_kind(ErrorKind.NOT_READY, "x")
    assert not_ready.kind is ErrorKind.NOT_READY
    assert not_ready.http_status == 503


def test_error_for_unknown_kind_is_transition_failure():
    assert isinstance(error_for_kind(None, "x"), TransitionFailureError)
