"""Template dispatch: turn a TemplateReference into a rendered message.

Every known template name is a ``TemplateKind``. First-class kinds build
their recipient, subject and context from the entities in the reference
data (see ``payloads``); generic kinds render the reference data as-is and
take recipient and subject from the reference. Both paths end in the same
``OutboundMessage`` shape, which the transport sends.
"""

import logging
from enum import Enum
from typing import Dict, Optional

from mailqueue.config.environment import DEFAULT_APP_NAME, DEFAULT_FRONTEND_URL

from .models import (
    InvalidRecipientError,
    OutboundMessage,
    TemplateReference,
    UnknownTemplateError,
)
from .payloads import (
    LinkSettings,
    PayloadBuilder,
    build_email_verification_payload,
    build_generic_context,
    build_goal_reminder_payload,
    build_security_alert_payload,
    build_welcome_payload,
)
from .templates import TemplateRenderer

logger = logging.getLogger(__name__)


class TemplateKind(str, Enum):
    """Registered template identifiers."""

    EMAIL_VERIFICATION = "email-verification"
    WELCOME = "welcome"
    SECURITY_ALERT = "security-alert"
    GOAL_REMINDER = "goal-reminder"
    BUDGET_EXCEEDED = "budget-exceeded"
    BUDGET_WARNING = "budget-warning"
    CATEGORY_OVERSPEND = "category-overspend"
    MONTHLY_BUDGET_SUMMARY = "monthly-budget-summary"
    EXPORT_COMPLETE = "export-complete"
    IMPORT_COMPLETE = "import-complete"

    @classmethod
    def parse(cls, name: str) -> "TemplateKind":
        """Look up a template name.

        Raises:
            UnknownTemplateError: If the name is not registered
        """
        try:
            return cls(name)
        except ValueError:
            raise UnknownTemplateError(name) from None

    @property
    def is_first_class(self) -> bool:
        return self in FIRST_CLASS_BUILDERS


FIRST_CLASS_BUILDERS: Dict[TemplateKind, PayloadBuilder] = {
    TemplateKind.EMAIL_VERIFICATION: build_email_verification_payload,
    TemplateKind.WELCOME: build_welcome_payload,
    TemplateKind.SECURITY_ALERT: build_security_alert_payload,
    TemplateKind.GOAL_REMINDER: build_goal_reminder_payload,
}

# Used when a producer enqueues a generic kind without a subject
DEFAULT_SUBJECTS: Dict[TemplateKind, str] = {
    TemplateKind.BUDGET_EXCEEDED: "Budget exceeded",
    TemplateKind.BUDGET_WARNING: "Budget warning",
    TemplateKind.CATEGORY_OVERSPEND: "Category overspending alert",
    TemplateKind.MONTHLY_BUDGET_SUMMARY: "Your monthly budget summary",
    TemplateKind.EXPORT_COMPLETE: "Your Data Export is Ready for Download",
    TemplateKind.IMPORT_COMPLETE: "Your Data Import Has Been Completed",
}


class TemplateDispatcher:
    """Resolves template references into rendered messages."""

    def __init__(
        self,
        renderer: Optional[TemplateRenderer] = None,
        frontend_url: str = DEFAULT_FRONTEND_URL,
        app_name: str = DEFAULT_APP_NAME,
    ):
        self.renderer = renderer or TemplateRenderer()
        self.links = LinkSettings(frontend_url=frontend_url, app_name=app_name)

    def resolve(self, reference: TemplateReference) -> OutboundMessage:
        """Render a template reference.

        Raises:
            UnknownTemplateError: If the template name is not registered
            NotificationTemplateError: If the data is unusable or rendering fails
            InvalidRecipientError: If a generic kind has no recipient
        """
        kind = TemplateKind.parse(reference.name)

        if kind.is_first_class:
            payload = FIRST_CLASS_BUILDERS[kind](reference.data, self.links)
            to, subject, context = payload.to, payload.subject, payload.context
        else:
            if not reference.to:
                raise InvalidRecipientError(f"Template '{kind.value}' needs a recipient")
            to = reference.to
            subject = reference.subject or f"{DEFAULT_SUBJECTS[kind]} - {self.links.app_name}"
            context = build_generic_context(reference.data, self.links)

        html = self.renderer.render(kind.value, context, "html")
        text = self.renderer.render(kind.value, context, "text")

        logger.debug(
            f"Resolved template {kind.value} for {to}",
            extra={"template": kind.value, "first_class": kind.is_first_class},
        )

        return OutboundMessage(to=to, subject=subject, html=html, text=text)
