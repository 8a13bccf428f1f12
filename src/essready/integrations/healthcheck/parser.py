"""Normalize health-check response bodies into components.

The endpoint answers in JSON or XML. The encoding is sniffed once and each
encoding has its own normalization path: JSON component messages are turned
into :class:`ComponentMessage` values while XML messages are carried through
as the document holds them: text for a leaf element, a tag-to-text mapping
for an element with children.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any
from xml.etree import ElementTree as ET

from essready.domain.models import (
    Component,
    ComponentMessage,
    ComponentStatus,
    HealthStatus,
    RawMessage,
)
from essready.infrastructure.errors import ParseError

DEFAULT_MESSAGE_TYPE = "Info"
UNKNOWN_FORMAT_ERROR = "Unknown response format"


class ResponseFormat(str, Enum):
    JSON = "json"
    XML = "xml"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ParsedBody:
    format: ResponseFormat
    success: bool | None = None
    overall_status: HealthStatus | None = None
    components: tuple[Component, ...] = ()
    error: str | None = None


def detect_format(body: str, content_type: str | None = None) -> ResponseFormat:
    stripped = body.lstrip()
    first = stripped[:1]
    hint = (content_type or "").lower()
    if first == "{" or "json" in hint:
        return ResponseFormat.JSON
    if first == "<" or "xml" in hint:
        return ResponseFormat.XML
    return ResponseFormat.UNKNOWN


def _status_from_flag(flag: bool | None) -> HealthStatus | None:
    if flag is None:
        return None
    return HealthStatus.HEALTHY if flag else HealthStatus.UNHEALTHY


# JSON ---------------------------------------------------------------------


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _normalize_json_message(entry: Any) -> ComponentMessage | None:
    if isinstance(entry, str):
        return ComponentMessage.from_text(entry)
    if isinstance(entry, dict):
        message_type = _optional_text(entry.get("Type")) or DEFAULT_MESSAGE_TYPE
        detail = _optional_text(entry.get("Message")) or ""
        return ComponentMessage.typed(message_type, detail)
    return None


def _json_component(entry: Any) -> Component | None:
    if not isinstance(entry, dict):
        return None
    raw_messages = entry.get("ComponentMessages") or []
    if not isinstance(raw_messages, list):
        raw_messages = [raw_messages]
    messages = tuple(
        message
        for message in (_normalize_json_message(item) for item in raw_messages)
        if message is not None
    )
    return Component(
        name=_optional_text(entry.get("ComponentName")) or "Unnamed component",
        version=_optional_text(entry.get("ComponentVersion")),
        status=ComponentStatus.from_flag(entry.get("Successful") is True),
        messages=messages,
    )


def _parse_json(body: str) -> ParsedBody:
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Failed to parse JSON response: {exc}") from exc

    if not isinstance(payload, dict):
        raise ParseError("Failed to parse JSON response: top-level value is not an object")

    flag = payload.get("Successful")
    success = flag if isinstance(flag, bool) else None

    raw_components = payload.get("Components") or []
    if not isinstance(raw_components, list):
        raise ParseError("Failed to parse JSON response: Components is not a list")

    components = tuple(
        component
        for component in (_json_component(item) for item in raw_components)
        if component is not None
    )
    return ParsedBody(
        format=ResponseFormat.JSON,
        success=success,
        overall_status=_status_from_flag(success),
        components=components,
    )


# XML ----------------------------------------------------------------------
# Lookups match local names so namespaced and bare documents parse alike.


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _xml_flag(text: str | None) -> bool | None:
    normalized = (text or "").strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    return None


def _xml_message(element: ET.Element) -> RawMessage | None:
    children = list(element)
    if not children:
        text = (element.text or "").strip()
        return text or None
    return {_local_name(child.tag): "".join(child.itertext()).strip() for child in children}


def _xml_messages(element: ET.Element | None) -> tuple[RawMessage, ...]:
    if element is None:
        return ()
    children = list(element)
    if not children:
        text = (element.text or "").strip()
        return (text,) if text else ()
    messages = (_xml_message(child) for child in children)
    return tuple(message for message in messages if message)


def _xml_component(element: ET.Element) -> Component:
    return Component(
        name=(element.findtext("{*}ComponentName") or "").strip() or "Unnamed component",
        version=(element.findtext("{*}ComponentVersion") or "").strip() or None,
        status=ComponentStatus.from_flag(_xml_flag(element.findtext("{*}Successful")) is True),
        messages=_xml_messages(element.find("{*}ComponentMessages")),
    )


def _parse_xml(body: str) -> ParsedBody:
    try:
        root = ET.fromstring(body.strip())
    except ET.ParseError as exc:
        raise ParseError(f"Failed to parse XML response: {exc}") from exc

    if _local_name(root.tag) != "HealthCheckResponse":
        nested = root.find(".//{*}HealthCheckResponse")
        if nested is None:
            raise ParseError(
                f"Failed to parse XML response: unexpected root element <{root.tag}>"
            )
        root = nested

    success = _xml_flag(root.findtext("{*}Successful"))
    components = tuple(
        _xml_component(item) for item in root.findall("{*}Components/{*}Component")
    )
    return ParsedBody(
        format=ResponseFormat.XML,
        success=success,
        overall_status=_status_from_flag(success),
        components=components,
    )


def parse_body(body: str, content_type: str | None = None) -> ParsedBody:
    """Parse ``body`` without raising; failures land in ``ParsedBody.error``."""

    response_format = detect_format(body, content_type)
    try:
        if response_format is ResponseFormat.JSON:
            return _parse_json(body)
        if response_format is ResponseFormat.XML:
            return _parse_xml(body)
    except ParseError as exc:
        return ParsedBody(format=response_format, error=exc.user_message)
    return ParsedBody(format=ResponseFormat.UNKNOWN, error=UNKNOWN_FORMAT_ERROR)


__all__ = [
    "ResponseFormat",
    "ParsedBody",
    "UNKNOWN_FORMAT_ERROR",
    "detect_format",
    "parse_body",
]
