"""Context builders for the first-class template kinds.

Producers enqueue these kinds with the raw entities they already hold
(``{"user": {...}, "token": "..."}``). The builders here derive the
recipient, a fixed subject line, link URLs and the variables the Jinja2
templates expect.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping
from urllib.parse import quote

from mailqueue.utils.timestamps import coerce_timestamp, format_timestamp, from_epoch_millis

from .models import NotificationTemplateError


@dataclass
class LinkSettings:
    """Values shared by every builder."""

    frontend_url: str
    app_name: str

    def url(self, path: str) -> str:
        return f"{self.frontend_url.rstrip('/')}/{path.lstrip('/')}"


@dataclass
class TemplatePayload:
    """Recipient, subject and render context for one template email."""

    to: str
    subject: str
    context: Dict[str, Any]


def _field(mapping: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    """First present, non-None value among several spellings of a key."""
    for name in names:
        value = mapping.get(name)
        if value is not None:
            return value
    return default


def _require_mapping(data: Mapping[str, Any], key: str, template: str) -> Mapping[str, Any]:
    value = data.get(key)
    if not isinstance(value, Mapping):
        raise NotificationTemplateError(
            f"Template '{template}' requires a '{key}' object in its data"
        )
    return value


def _user_fields(data: Mapping[str, Any], template: str) -> Dict[str, Any]:
    user = _require_mapping(data, "user", template)
    email = _field(user, "email")
    if not email:
        raise NotificationTemplateError(f"Template '{template}' requires user.email")
    user_id = _field(user, "id", "_id", "userId", default="")
    return {
        "email": email,
        "first_name": _field(user, "firstName", "first_name", default="there"),
        "user_id": str(user_id),
    }


def build_email_verification_payload(data: Mapping[str, Any], links: LinkSettings) -> TemplatePayload:
    user = _user_fields(data, "email-verification")
    token = data.get("token")
    if not token:
        raise NotificationTemplateError("Template 'email-verification' requires a token")

    verification_url = links.url(
        f"auth/verify-email?token={quote(str(token))}&email={quote(user['email'])}"
    )
    return TemplatePayload(
        to=user["email"],
        subject=f"Verify Your Email - {links.app_name}",
        context={
            **user,
            "app_name": links.app_name,
            "verification_url": verification_url,
        },
    )


def build_welcome_payload(data: Mapping[str, Any], links: LinkSettings) -> TemplatePayload:
    user = _user_fields(data, "welcome")
    return TemplatePayload(
        to=user["email"],
        subject=f"Welcome to {links.app_name}!",
        context={
            **user,
            "app_name": links.app_name,
            "dashboard_url": links.url("dashboard"),
            "help_url": links.url("help"),
        },
    )


def build_security_alert_payload(data: Mapping[str, Any], links: LinkSettings) -> TemplatePayload:
    user = _user_fields(data, "security-alert")
    alert = _require_mapping(data, "alertData", "security-alert")
    alert_type = _field(alert, "type", default="Account activity")

    raw_timestamp = _field(alert, "timestamp")
    if isinstance(raw_timestamp, (int, float)) and not isinstance(raw_timestamp, bool):
        timestamp = from_epoch_millis(raw_timestamp)
    else:
        timestamp = coerce_timestamp(raw_timestamp)

    return TemplatePayload(
        to=user["email"],
        subject=f"Security Alert - {alert_type}",
        context={
            **user,
            "app_name": links.app_name,
            "account_id": user["user_id"][:8],
            "alert_type": alert_type,
            "alert_message": _field(alert, "message", default=""),
            "activity_type": _field(alert, "activityType", "activity_type", default=""),
            "timestamp": format_timestamp(timestamp) if timestamp else "",
            "ip_address": _field(alert, "ipAddress", "ip_address", default="Unknown"),
            "location": _field(alert, "location", default="Unknown"),
            "user_agent": _field(alert, "userAgent", "user_agent", default="Unknown"),
            "is_high_risk": _field(alert, "riskLevel", "risk_level") == "high",
            "secure_account_url": links.url("account/security"),
            "change_password_url": links.url("account/change-password"),
        },
    )


def build_goal_reminder_payload(data: Mapping[str, Any], links: LinkSettings) -> TemplatePayload:
    user = _user_fields(data, "goal-reminder")
    goal = _require_mapping(data, "goalData", "goal-reminder")
    goal_name = _field(goal, "name", default="your goal")
    goal_id = _field(goal, "id", "_id", default="")

    return TemplatePayload(
        to=user["email"],
        subject=_field(goal, "emailSubject", default=f"Goal Reminder: {goal_name}"),
        context={
            **user,
            "app_name": links.app_name,
            "goal_name": goal_name,
            "goal_description": _field(goal, "description", default=""),
            "target_amount": _field(goal, "targetAmount", default=0),
            "current_amount": _field(goal, "currentAmount", default=0),
            "progress_percentage": _field(goal, "progressPercentage", default=0),
            "days_remaining": _field(goal, "daysRemaining"),
            "target_date": _field(goal, "targetDate", default=""),
            "motivational_message": _field(goal, "motivationalMessage", default=""),
            "milestones": list(_field(goal, "milestones", default=[])),
            "dashboard_url": links.url("dashboard"),
            "goal_url": links.url(f"goals/{goal_id}"),
            "settings_url": links.url("settings/notifications"),
        },
    )


PayloadBuilder = Callable[[Mapping[str, Any], LinkSettings], TemplatePayload]


def build_generic_context(data: Mapping[str, Any], links: LinkSettings) -> Dict[str, Any]:
    """Context for generic kinds: caller data plus shared link variables.

    Caller keys win, so a producer can override ``dashboard_url``.
    """
    user = data.get("user")
    first_name = "there"
    if isinstance(user, Mapping):
        first_name = _field(user, "firstName", "first_name", default="there")

    return {
        "app_name": links.app_name,
        "first_name": first_name,
        "dashboard_url": links.url("dashboard"),
        "settings_url": links.url("settings/notifications"),
        **dict(data),
    }
