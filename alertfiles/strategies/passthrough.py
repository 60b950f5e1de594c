"""Pass-through strategy: file content is the rendered content template."""

from alertfiles.services.template import Templater
from alertfiles.strategies.base import BaseStrategy


class PassThroughStrategy(BaseStrategy):
    """Render the configured content template; the existing text is exposed as ``current``."""

    def __init__(self, content_template: str):
        self._content_template = content_template

    @property
    def name(self) -> str:
        return "passthrough"

    def render(self, templater: Templater, current: str) -> str:
        return templater.render(self._content_template, {"current": current})
