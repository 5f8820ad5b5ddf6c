from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from iiif_ingest.core.errors import ManifestError

logger = logging.getLogger(__name__)


class TemplateRenderer:
    """Renders one template file; undefined names are errors, not blanks."""

    def __init__(self, template_path: Path) -> None:
        self.template_path = template_path
        self._env = Environment(
            loader=FileSystemLoader(str(template_path.parent)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def render(self, context: dict[str, Any]) -> str:
        try:
            template = self._env.get_template(self.template_path.name)
            return template.render(**context)
        except (TemplateError, OSError) as exc:
            logger.error("unable to render template %s (%s)", self.template_path, exc)
            raise ManifestError(f"unable to render template {self.template_path.name} ({exc})") from exc
