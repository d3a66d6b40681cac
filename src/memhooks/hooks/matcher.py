"""Select the hook definitions that apply to an event."""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Iterable

from memhooks.types.hooks import HookDefinition, HookEvent

logger = logging.getLogger(__name__)

# Maximum allowed length for a matcher pattern to mitigate ReDoS.
_MAX_MATCHER_LEN = 1024


@functools.lru_cache(maxsize=256)
def compile_matcher(pattern: str) -> re.Pattern[str]:
    """Compile a matcher pattern.

    Raises ``ValueError`` if the pattern is too long and ``re.error`` if it is
    not valid regex.
    """
    if len(pattern) > _MAX_MATCHER_LEN:
        raise ValueError(f"Matcher pattern exceeds {_MAX_MATCHER_LEN} chars")
    return re.compile(pattern)


def matches(definition: HookDefinition, event: HookEvent) -> bool:
    """Check if a definition's matcher accepts the event's tool.

    Events without a tool are tested against the empty string, so only
    match-all or empty-matching patterns fire for them.
    """
    if definition.matches_all:
        return True
    try:
        compiled = compile_matcher(definition.matcher or "")
    except (re.error, ValueError):
        logger.warning("Invalid hook matcher, skipping: %s", definition.matcher)
        return False
    return compiled.search(event.tool or "") is not None


def match_hooks(event: HookEvent, definitions: Iterable[HookDefinition]) -> list[HookDefinition]:
    """Return every definition that matches, in configuration order, duplicates kept."""
    return [d for d in definitions if matches(d, event)]
