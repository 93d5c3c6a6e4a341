"""Unit tests for first-class template payload builders."""

import pytest

from mailqueue.notifications.models import NotificationTemplateError
from mailqueue.notifications.payloads import (
    LinkSettings,
    build_email_verification_payload,
    build_generic_context,
    build_goal_reminder_payload,
    build_security_alert_payload,
    build_welcome_payload,
)


@pytest.fixture
def links():
    return LinkSettings(frontend_url="https://app.example.com/", app_name="Budgetly")


@pytest.fixture
def user():
    return {"_id": "6543210fedcba9876543210f", "email": "ana@example.com", "firstName": "Ana"}


def test_link_settings_joins_paths(links):
    """Test that URLs are joined with exactly one slash."""
    assert links.url("dashboard") == "https://app.example.com/dashboard"
    assert links.url("/goals/1") == "https://app.example.com/goals/1"


class TestEmailVerification:
    """Test suite for the email-verification builder."""

    def test_builds_verification_link(self, links, user):
        payload = build_email_verification_payload({"user": user, "token": "abc 123"}, links)

        assert payload.to == "ana@example.com"
        assert payload.subject == "Verify Your Email - Budgetly"
        assert payload.context["verification_url"] == (
            "https://app.example.com/auth/verify-email?token=abc%20123&email=ana%40example.com"
        )
        assert payload.context["first_name"] == "Ana"

    def test_requires_token(self, links, user):
        with pytest.raises(NotificationTemplateError, match="token"):
            build_email_verification_payload({"user": user}, links)

    def test_requires_user(self, links):
        with pytest.raises(NotificationTemplateError, match="'user' object"):
            build_email_verification_payload({"token": "abc"}, links)

    def test_requires_user_email(self, links):
        with pytest.raises(NotificationTemplateError, match="user.email"):
            build_email_verification_payload({"user": {"firstName": "Ana"}, "token": "abc"}, links)


class TestWelcome:
    """Test suite for the welcome builder."""

    def test_welcome_payload(self, links, user):
        payload = build_welcome_payload({"user": user}, links)

        assert payload.to == "ana@example.com"
        assert payload.subject == "Welcome to Budgetly!"
        assert payload.context["dashboard_url"] == "https://app.example.com/dashboard"
        assert payload.context["help_url"] == "https://app.example.com/help"
        assert payload.context["user_id"] == "6543210fedcba9876543210f"

    def test_first_name_defaults(self, links):
        """Test the greeting fallback when the user has no first name."""
        payload = build_welcome_payload({"user": {"email": "ana@example.com"}}, links)
        assert payload.context["first_name"] == "there"


class TestSecurityAlert:
    """Test suite for the security-alert builder."""

    def test_security_alert_payload(self, links, user):
        data = {
            "user": user,
            "alertData": {
                "type": "New login",
                "message": "We noticed a login from a new device.",
                "activityType": "login",
                "timestamp": "2025-11-04T12:00:00.000Z",
                "ipAddress": "203.0.113.7",
                "riskLevel": "high",
            },
        }

        payload = build_security_alert_payload(data, links)

        assert payload.subject == "Security Alert - New login"
        context = payload.context
        assert context["account_id"] == "6543210f"
        assert context["timestamp"] == "2025-11-04T12:00:00Z"
        assert context["ip_address"] == "203.0.113.7"
        assert context["location"] == "Unknown"
        assert context["is_high_risk"] is True
        assert context["secure_account_url"] == "https://app.example.com/account/security"

    def test_requires_alert_data(self, links, user):
        with pytest.raises(NotificationTemplateError, match="alertData"):
            build_security_alert_payload({"user": user}, links)

    def test_epoch_millis_timestamp(self, links, user):
        """Test that a JavaScript epoch-milliseconds timestamp is accepted."""
        data = {"user": user, "alertData": {"timestamp": 1735689600000}}

        payload = build_security_alert_payload(data, links)

        assert payload.context["timestamp"] == "2025-01-01T00:00:00Z"

    def test_missing_timestamp_renders_empty(self, links, user):
        payload = build_security_alert_payload({"user": user, "alertData": {}}, links)
        assert payload.context["timestamp"] == ""

    def test_invalid_timestamp_is_rejected(self, links, user):
        """Test that a malformed alert timestamp raises ValueError."""
        data = {"user": user, "alertData": {"timestamp": "yesterday"}}
        with pytest.raises(ValueError):
            build_security_alert_payload(data, links)


class TestGoalReminder:
    """Test suite for the goal-reminder builder."""

    def test_goal_reminder_payload(self, links, user):
        data = {
            "user": user,
            "goalData": {
                "_id": "g1",
                "name": "Emergency fund",
                "targetAmount": 5000,
                "currentAmount": 1250,
                "progressPercentage": 25,
                "daysRemaining": 90,
                "milestones": ["25% reached"],
            },
        }

        payload = build_goal_reminder_payload(data, links)

        assert payload.subject == "Goal Reminder: Emergency fund"
        assert payload.context["goal_url"] == "https://app.example.com/goals/g1"
        assert payload.context["milestones"] == ["25% reached"]
        assert payload.context["days_remaining"] == 90

    def test_custom_subject(self, links, user):
        data = {"user": user, "goalData": {"name": "Trip", "emailSubject": "Almost there!"}}
        assert build_goal_reminder_payload(data, links).subject == "Almost there!"

    def test_requires_goal_data(self, links, user):
        with pytest.raises(NotificationTemplateError, match="goalData"):
            build_goal_reminder_payload({"user": user, "goalData": "Trip"}, links)


class TestGenericContext:
    """Test suite for generic template context."""

    def test_adds_shared_variables(self, links):
        context = build_generic_context({"budgetName": "Rent"}, links)

        assert context["app_name"] == "Budgetly"
        assert context["first_name"] == "there"
        assert context["dashboard_url"] == "https://app.example.com/dashboard"
        assert context["budgetName"] == "Rent"

    def test_first_name_from_user(self, links, user):
        assert build_generic_context({"user": user}, links)["first_name"] == "Ana"

    def test_caller_data_wins(self, links):
        """Test that caller keys override the shared defaults."""
        context = build_generic_context({"dashboard_url": "https://other.example.com"}, links)
        assert context["dashboard_url"] == "https://other.example.com"
