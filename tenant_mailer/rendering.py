"""Jinja2 rendering for templated mail bodies."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from jinja2 import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    TemplateNotFound,
    select_autoescape,
)

logger = logging.getLogger(__name__)

NOTIFICATION_TEMPLATE = "notification.html"

_BUILTIN_TEMPLATES = {
    NOTIFICATION_TEMPLATE: """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #0f172a;">
{% if greeting %}<h1>{{ greeting }}</h1>
{% endif %}
{% for line in intro_lines %}<p>{{ line }}</p>
{% endfor %}
{% if action_text and action_url %}<p><a href="{{ action_url }}">{{ action_text }}</a></p>
{% endif %}
{% for line in outro_lines %}<p>{{ line }}</p>
{% endfor %}
{% if salutation %}<p>{{ salutation }}</p>
{% endif %}
</body>
</html>
""",
}


class TemplateRenderer:
    """Render named templates from ``templates_path`` (or the built-ins) with a data bag."""

    def __init__(self, *, templates_path: Path | None = None) -> None:
        loaders: list[Any] = []
        if templates_path is not None:
            loaders.append(FileSystemLoader(templates_path))
        loaders.append(DictLoader(_BUILTIN_TEMPLATES))
        self.templates_path = templates_path
        self._environment = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_name: str, data: dict[str, Any] | None = None) -> str:
        try:
            template = self._environment.get_template(template_name)
        except TemplateNotFound as exc:
            logger.error("Mail template %s not found", template_name)
            raise LookupError(f"Mail template '{template_name}' not found") from exc
        return template.render(**(data or {}))
