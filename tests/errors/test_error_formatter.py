"""Tests for the error registry and user-facing error formatting."""

import pytest

from standup.errors import (
    ERROR_REGISTRY,
    ErrorCategory,
    InvalidCiphertextError,
    NotConfiguredError,
    NotConnectedError,
    RefreshFailedError,
    SlackApiError,
    TrackerRequestError,
    describe_error,
    format_user_message,
    get_error,
    get_errors_by_category,
)
from standup.errors.domain import DomainError


class TestRegistry:
    """Tests for registry structure."""

    def test_codes_match_keys(self):
        for code, error in ERROR_REGISTRY.items():
            assert error.code == code

    def test_categories_match_prefix(self):
        prefixes = {
            ErrorCategory.UPSTREAM: "E-3",
            ErrorCategory.SYSTEM: "E-4",
            ErrorCategory.AUTH: "E-5",
        }
        for error in ERROR_REGISTRY.values():
            assert error.code.startswith(prefixes[error.category])

    def test_every_exception_code_registered(self):
        for exc_cls in (
            NotConnectedError, NotConfiguredError, InvalidCiphertextError,
            RefreshFailedError, TrackerRequestError, SlackApiError, DomainError,
        ):
            assert get_error(exc_cls.code) is not None

    def test_unknown_code(self):
        assert get_error("E-9999") is None

    def test_by_category(self):
        auth_codes = {e.code for e in get_errors_by_category(ErrorCategory.AUTH)}
        assert auth_codes == {"E-5001", "E-5002", "E-5003"}


class TestFormatUserMessage:
    """Tests for format_user_message."""

    def test_not_connected_names_setup_command(self):
        text = format_user_message(NotConnectedError("jira"), "/weekly-standup", "/standup-setup")
        assert text == (
            "❌ Jira not connected.\n\nRun `/standup-setup` first to connect your account."
        )

    def test_setup_errors_fall_back_to_command(self):
        """Without a setup command the retry command is named."""
        text = format_user_message(NotConnectedError("jira"), "/weekly-standup")
        assert "`/weekly-standup`" in text

    def test_not_configured_uses_message(self):
        text = format_user_message(
            NotConfiguredError("No board selected."), "/weekly-standup", "/standup-setup"
        )
        assert text.startswith("❌ No board selected.\n\n")
        assert "`/standup-setup`" in text

    def test_tracker_error_names_retry_command(self):
        error = TrackerRequestError("detail", "Not found", ticket_key="ABC-1", status_code=404)
        text = format_user_message(error, "/weekly-standup", "/standup-setup")
        assert "Failed to fetch ticket ABC-1: Not found" in text
        assert "`/weekly-standup`" in text

    def test_refresh_failure_points_to_setup(self):
        text = format_user_message(
            RefreshFailedError("invalid_grant", 400), "/weekly-standup", "/standup-setup"
        )
        assert "invalid_grant" in text
        assert "`/standup-setup`" in text

    def test_non_domain_exception(self):
        message, remediation = describe_error(ValueError("bad thing"), "/weekly-standup")
        assert message == "Something went wrong: bad thing"
        assert remediation == "Try running `/weekly-standup` again."

    @pytest.mark.parametrize(
        "detail",
        [
            'refresh_token=abc123secret',
            '{"access_token": "abc123secret"}',
            "Authorization: Bearer abc123secret",
        ],
    )
    def test_secrets_are_redacted(self, detail):
        text = format_user_message(RefreshFailedError(detail), "/weekly-standup")
        assert "abc123secret" not in text
        assert "***REDACTED***" in text
