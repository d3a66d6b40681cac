"""Hook event builders."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from memhooks.types.hooks import HookEvent, HookEventType


def build_hook_event(
    event_type: HookEventType | str,
    *,
    tool: str | None = None,
    data: dict[str, Any] | None = None,
    timestamp: datetime | None = None,
) -> HookEvent:
    """Build a HookEvent for a given event type."""
    if timestamp is None:
        return HookEvent(type=event_type, tool=tool, data=data or {})
    return HookEvent(type=event_type, tool=tool, data=data or {}, timestamp=timestamp)


def event_from_payload(payload: dict[str, Any]) -> HookEvent:
    """Build a HookEvent from a JSON payload.

    Accepts ``{"type", "tool", "data", "timestamp"}`` as well as the
    ``hook_event_name`` / ``tool_name`` / ``tool_input`` spelling that coding
    assistants send to hook scripts.
    """
    event_type = payload.get("type") or payload.get("hook_event_name")
    if not event_type:
        raise ValueError("Event payload has no 'type'")
    tool = payload.get("tool") or payload.get("tool_name")
    data = payload.get("data")
    if data is None:
        data = payload.get("tool_input") or {}
    if not isinstance(data, dict):
        raise ValueError("Event 'data' must be an object")

    timestamp = None
    if raw_ts := payload.get("timestamp"):
        timestamp = datetime.fromisoformat(str(raw_ts).replace("Z", "+00:00"))
    return build_hook_event(str(event_type), tool=tool, data=data, timestamp=timestamp)
