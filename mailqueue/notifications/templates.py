"""Template rendering for email notifications using Jinja2.

Templates live in the ``mailqueue.notifications.email_templates`` package
as ``<name>.html.j2`` and ``<name>.txt.j2``. Only the HTML variants are
auto-escaped.
"""

import logging
from typing import Any, Dict, Literal, Optional

from jinja2 import (
    Environment,
    PackageLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
    select_autoescape,
)

from .models import NotificationTemplateError, TemplateNotFoundError

logger = logging.getLogger(__name__)

TemplateFormat = Literal["html", "text"]

_EXTENSIONS = {"html": "html.j2", "text": "txt.j2"}


class TemplateRenderer:
    """Renders named email templates in HTML or plain-text form.

    Compiled templates are cached by the Jinja2 environment.
    """

    def __init__(
        self,
        package: str = "mailqueue.notifications",
        template_dir: str = "email_templates",
        environment: Optional[Environment] = None,
    ):
        """Initialize the Jinja2 environment.

        Args:
            package: Package that contains the template directory
            template_dir: Directory name within the package
            environment: Pre-built Jinja2 environment (tests use DictLoader)
        """
        self.env = environment or Environment(
            loader=PackageLoader(package, template_dir),
            autoescape=select_autoescape(
                enabled_extensions=("html.j2",), default_for_string=False
            ),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    @staticmethod
    def template_filename(template_name: str, fmt: TemplateFormat) -> str:
        if fmt not in _EXTENSIONS:
            raise ValueError(f"Invalid template format: {fmt}. Must be 'html' or 'text'")
        return f"{template_name}.{_EXTENSIONS[fmt]}"

    def has_template(self, template_name: str, fmt: TemplateFormat = "html") -> bool:
        try:
            self.env.get_template(self.template_filename(template_name, fmt))
        except TemplateNotFound:
            return False
        return True

    def render(
        self, template_name: str, data: Dict[str, Any], fmt: TemplateFormat = "html"
    ) -> str:
        """Render one template.

        Args:
            template_name: Template identifier (e.g. "budget-exceeded")
            data: Template variables
            fmt: "html" or "text"

        Returns:
            Rendered template body

        Raises:
            TemplateNotFoundError: If no template file exists for the name and format
            NotificationTemplateError: If rendering fails (e.g. a missing variable)
        """
        filename = self.template_filename(template_name, fmt)

        try:
            template = self.env.get_template(filename)
            rendered = template.render(data)
        except TemplateNotFound as e:
            raise TemplateNotFoundError(f"Template not found: {filename}") from e
        except TemplateError as e:
            raise NotificationTemplateError(f"Template rendering failed for {filename}: {e}") from e

        logger.debug(f"Rendered template {filename}")
        return rendered
