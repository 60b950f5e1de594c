"""Template rendering for filenames and file content."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from jinja2 import BaseLoader, Environment, TemplateError

from alertfiles.models.alert import Alert, WebhookMessage
from alertfiles.models.remote import Repo

logger = logging.getLogger(__name__)


class TemplateRenderError(Exception):
    """Raised when a template cannot be parsed or rendered."""


def _split(value: Any, sep: Optional[str] = None) -> list[str]:
    return str(value).split(sep)


# Create a Jinja2 environment for template rendering
_jinja_env = Environment(loader=BaseLoader(), autoescape=False, keep_trailing_newline=True)
# Add custom filters
_jinja_env.filters["split"] = _split
_jinja_env.policies["json.dumps_kwargs"] = {"sort_keys": True, "default": str}


class Templater:
    """Renders templates against a single alert and the target repository.

    Available variables in templates:
    - alert: alert fields as dict (status, labels, annotations, starts_at, ends_at, ...)
    - message: the webhook message the alert arrived in, without its alerts
      (group_labels, common_labels, common_annotations, external_url, ...);
      empty when unknown
    - repo: target repository (owner, name, full_name, dir)
    - now: current UTC time
    - data: extra data passed by the caller
    """

    def __init__(
        self,
        repo: Repo,
        alert: Alert,
        message: Optional[WebhookMessage] = None,
        now: Optional[datetime] = None,
    ):
        self.repo = repo
        self.alert = alert
        self.message = message
        self.now = now or datetime.now(timezone.utc)

    def build_context(self, data: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        alert_dict = self.alert.model_dump()
        alert_dict["key"] = self.alert.key
        context = {
            "alert": alert_dict,
            "message": self.message.model_dump(exclude={"alerts"}) if self.message else {},
            "repo": {
                "owner": self.repo.owner,
                "name": self.repo.name,
                "full_name": self.repo.full_name,
                "dir": self.repo.dir,
            },
            "now": self.now,
            "data": data or {},
        }
        # Extra data is also reachable at top level
        if data:
            for key, value in data.items():
                context.setdefault(key, value)
        return context

    def render(self, template_str: str, data: Optional[dict[str, Any]] = None) -> str:
        """Render a Jinja2 template string.

        Raises TemplateRenderError on syntax or rendering errors.
        """
        try:
            template = _jinja_env.from_string(template_str)
            return template.render(**self.build_context(data))
        except (TemplateError, TypeError, ValueError) as e:
            raise TemplateRenderError(f"Failed to render template: {e}") from e
