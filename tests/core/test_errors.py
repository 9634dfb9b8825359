"""Tests for relay.core.errors module."""

import httpx
import pytest

from relay.core.errors import (
    DirectiveError,
    ErrorCategory,
    ErrorContext,
    FieldError,
    InvalidCredentialsError,
    MappingError,
    MappingValidationError,
    PayloadValidationError,
    RelayError,
    SubscriptionSyntaxError,
    UnknownDirectiveError,
    UnsupportedActionError,
    categorize_error,
    is_not_found,
    is_retryable,
)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.example.com/x")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"{status}", request=request, response=response)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.destination is None
        assert ctx.to_dict() == {}

    def test_to_dict_skips_unset_fields(self):
        ctx = ErrorContext(destination="Slack", http_status=500, metadata={"attempt": 2})
        assert ctx.to_dict() == {"destination": "Slack", "http_status": 500, "attempt": 2}


class TestRelayError:
    """Test the base error."""

    def test_defaults(self):
        err = RelayError("boom")
        assert err.message == "boom"
        assert err.category == ErrorCategory.INTERNAL
        assert err.retryable is False

    def test_with_context_is_fluent(self):
        err = RelayError("boom").with_context(destination="Slack", action="post", request_id="r1")
        assert err.context.destination == "Slack"
        assert err.context.action == "post"
        assert err.context.metadata == {"request_id": "r1"}

    def test_cause_is_chained(self):
        cause = ValueError("inner")
        err = RelayError("outer", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "inner"


class TestMappingErrors:
    def test_validation_error_aggregates_problems(self):
        err = MappingValidationError(["/a should be a string.", "/b should be an object."])
        assert len(err) == 2
        assert list(err) == err.problems
        assert isinstance(err, MappingError)

    def test_directive_error_names_directive(self):
        err = DirectiveError("@path", "expected string, got number")
        assert str(err) == "@path: expected string, got number"
        assert err.category == ErrorCategory.MAPPING

    def test_unknown_directive(self):
        assert str(UnknownDirectiveError("@nope")) == "@nope is not a valid directive"


class TestPayloadValidationError:
    def test_message_joins_field_errors(self):
        err = PayloadValidationError(
            [FieldError("$.text", "'text' is required"), FieldError("$.n", "1 is not of type 'string'")]
        )
        assert str(err) == "$.text: 'text' is required, $.n: 1 is not of type 'string'"
        assert err.to_dict()["errors"][0] == {"path": "$.text", "message": "'text' is required"}


class TestActionErrors:
    def test_unsupported_action_is_ignored_and_not_retried(self):
        err = UnsupportedActionError("postToChannel")
        assert err.ignored is True
        assert err.retry is False
        assert err.retryable is False
        assert err.status == "UNSUPPORTED_EVENT_TYPE"
        assert str(err) == '"postToChannel" is not a supported action'

    def test_invalid_credentials_default_message(self):
        assert str(InvalidCredentialsError()) == "Credentials are invalid"

    def test_subscription_syntax_error(self):
        err = SubscriptionSyntaxError("type =", "unexpected end of expression")
        assert err.category == ErrorCategory.SUBSCRIPTION
        assert "unexpected end" in str(err)


class TestHelpers:
    @pytest.mark.parametrize("status,expected", [(500, True), (503, True), (429, True), (404, False), (400, False)])
    def test_is_retryable_http(self, status, expected):
        assert is_retryable(_status_error(status)) is expected

    def test_transport_errors_are_retryable(self):
        assert is_retryable(httpx.ConnectError("refused"))

    def test_categorize(self):
        assert categorize_error(_status_error(500)) == ErrorCategory.HTTP
        assert categorize_error(httpx.ReadTimeout("slow")) == ErrorCategory.NETWORK
        assert categorize_error(DirectiveError("@if", "x")) == ErrorCategory.MAPPING
        assert categorize_error(RuntimeError("?")) == ErrorCategory.UNKNOWN

    def test_is_not_found(self):
        assert is_not_found(_status_error(404))
        assert not is_not_found(_status_error(500))
        assert not is_not_found(ValueError("404"))
