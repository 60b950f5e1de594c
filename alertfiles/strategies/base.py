"""Base class for content strategies."""

from abc import ABC, abstractmethod

from alertfiles.services.template import Templater


class BaseStrategy(ABC):
    """Produces the new file content for a fired alert."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def render(self, templater: Templater, current: str) -> str:
        """Return the new file content.

        ``current`` is the existing file text, or an empty string if the file
        does not exist yet.
        """
