"""Content strategies."""

from alertfiles.config import Settings
from alertfiles.strategies.base import BaseStrategy
from alertfiles.strategies.incident import IncidentStrategy, MalformedDocumentError
from alertfiles.strategies.passthrough import PassThroughStrategy

__all__ = [
    "BaseStrategy",
    "IncidentStrategy",
    "MalformedDocumentError",
    "PassThroughStrategy",
    "create_strategy",
]


def create_strategy(settings: Settings) -> BaseStrategy:
    """Create the content strategy selected by ``settings.engine``."""
    if settings.engine == "incident":
        return IncidentStrategy(
            header_template=settings.incident_header,
            entry_template=settings.incident_entry,
        )
    elif settings.engine == "passthrough":
        return PassThroughStrategy(content_template=settings.content)
    raise ValueError(f"Unknown engine: {settings.engine}")
