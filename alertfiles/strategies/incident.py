"""Incident strategy - keeps a running incident log in one document.

Document layout (cState compatible)::

    ---
    <YAML header: state, startsAt, endsAt, ...>
    ---
    <optional free text, e.g. a postmortem>
    ---
    <timeline entries, newest first>

The header is regenerated on every merge, the free text is kept verbatim and
a new timeline entry is prepended above the existing ones.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import yaml

from alertfiles.services.template import Templater
from alertfiles.strategies.base import BaseStrategy

logger = logging.getLogger(__name__)

MARKER = "---"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

STATE_INVESTIGATING = "Investigating"
STATE_RESOLVED = "Resolved"

# A line consisting only of the marker
_MARKER_LINE = re.compile(r"^---[ \t]*(?:\r?\n|\Z)", re.MULTILINE)


class MalformedDocumentError(Exception):
    """The existing document cannot be parsed without losing content."""


@dataclass
class IncidentDocument:
    """Parsed view of an incident document."""

    header: dict[str, Any] = field(default_factory=dict)
    free_text: Optional[str] = None
    timeline: str = ""


def format_time(value: datetime) -> str:
    # isoformat zero-pads years before 1000, strftime does not on every platform
    return value.isoformat(sep=" ", timespec="seconds")[:19]


def parse_document(text: str) -> IncidentDocument:
    """Split a document into header, free text and timeline.

    Raises MalformedDocumentError if the header block is missing, unterminated
    or not a YAML mapping.
    """
    opening = _MARKER_LINE.match(text)
    if not opening:
        raise MalformedDocumentError("Document does not start with a header marker")

    rest = text[opening.end():]
    closing = _MARKER_LINE.search(rest)
    if not closing:
        raise MalformedDocumentError("Header block is not terminated")

    try:
        header = yaml.safe_load(rest[: closing.start()])
    except yaml.YAMLError as e:
        raise MalformedDocumentError(f"Failed to parse header: {e}") from e
    if header is None:
        header = {}
    if not isinstance(header, dict):
        raise MalformedDocumentError(f"Header must be a mapping, got {type(header).__name__}")

    body = rest[closing.end():]
    separator = _MARKER_LINE.search(body)
    if separator:
        return IncidentDocument(
            header=header,
            free_text=body[: separator.start()],
            timeline=body[separator.end():],
        )
    return IncidentDocument(header=header, timeline=body)


def _recorded_start(header: dict[str, Any]) -> Optional[str]:
    if "startsAt" not in header:
        return None
    value = header["startsAt"]
    # Unquoted timestamps are loaded as datetime by YAML
    if isinstance(value, datetime):
        return format_time(value)
    if not isinstance(value, str):
        raise MalformedDocumentError(f"startsAt must be a timestamp string, got {type(value).__name__}")
    try:
        return format_time(datetime.strptime(value.strip(), TIME_FORMAT))
    except ValueError as e:
        raise MalformedDocumentError(f"Failed to parse startsAt {value!r}: {e}") from e


class IncidentStrategy(BaseStrategy):
    """Merge a fired alert into an incident document."""

    def __init__(self, header_template: str, entry_template: str):
        self._header_template = header_template
        self._entry_template = entry_template

    @property
    def name(self) -> str:
        return "incident"

    def render(self, templater: Templater, current: str) -> str:
        alert = templater.alert
        data = {
            "state": STATE_RESOLVED if alert.is_resolved else STATE_INVESTIGATING,
            "starts_at": format_time(alert.starts_at),
            "ends_at": format_time(alert.ends_at),
            "timestamp": format_time(alert.ends_at if alert.is_resolved else alert.starts_at),
        }

        document = IncidentDocument()
        if current:
            document = parse_document(current)
            recorded_start = _recorded_start(document.header)
            if recorded_start is not None:
                data["starts_at"] = recorded_start
            logger.debug(
                f"Merging into existing incident (started {data['starts_at']}, "
                f"free text: {document.free_text is not None})"
            )

        header = templater.render(self._header_template, data)
        if not header.endswith("\n"):
            header += "\n"

        new_content = MARKER + "\n" + header + MARKER + "\n"

        if document.free_text is not None:
            new_content += document.free_text + MARKER + "\n"

        entry = templater.render(self._entry_template, data).strip("\n")
        new_content += "\n" + entry + "\n" + document.timeline

        return new_content
