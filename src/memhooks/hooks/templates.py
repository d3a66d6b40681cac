"""Memory hook templates.

A template handles one stage of a prompt/response exchange and turns the
event for that stage into a structured response: what to capture, which
context to inject before the assistant answers, and whether the finished
exchange is worth storing as a memory.

Templates run in-process. ``memhooks template <type>`` wraps one so it can be
configured as a hook command that reads its event from stdin::

    [[hooks.UserPromptSubmit]]
    command = "memhooks template user-prompt-submit-hook --json"
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from memhooks.hooks.errors import TemplateError
from memhooks.sandbox.environment import is_sensitive

logger = logging.getLogger(__name__)


class TemplateType(str, Enum):
    """The four stages of an exchange, named the way hook configs refer to them."""

    USER_PROMPT_SUBMIT = "user-prompt-submit-hook"
    PRE_MESSAGE = "user-prompt-assistant-pre-message-hook"
    MESSAGE = "user-prompt-assistant-message-hook"
    POST_MESSAGE = "user-prompt-assistant-post-message-hook"


HOOK_EXECUTION_ORDER: tuple[TemplateType, ...] = (
    TemplateType.USER_PROMPT_SUBMIT,
    TemplateType.PRE_MESSAGE,
    TemplateType.MESSAGE,
    TemplateType.POST_MESSAGE,
)


@dataclass(frozen=True, slots=True)
class TemplateDefaults:
    timeout_ms: int = 5000
    max_retries: int = 3
    buffer_size: int = 1024 * 1024
    max_context_tokens: int = 2000
    quality_threshold: float = 0.5


HOOK_DEFAULTS = TemplateDefaults()

REDACTED = "[REDACTED]"
CIRCULAR_REFERENCE = "[CIRCULAR_REFERENCE]"

# String values matching any of these are replaced wholesale.
_SENSITIVE_CONTENT = re.compile(r"api[\s_-]?key|secret|password|token|auth|credential", re.IGNORECASE)

_NUMBER = (int, float)


# ---------------------------------------------------------------------------
# Events and responses
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TemplateContext:
    workspace_path: str | None = None
    session_id: str | None = None
    user_id: str | None = None
    environment: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TemplateEvent:
    """A validated template event."""

    type: str
    timestamp: datetime
    data: Mapping[str, Any]
    context: TemplateContext = field(default_factory=TemplateContext)


@dataclass(frozen=True, slots=True)
class TemplateFailure:
    code: str
    message: str
    details: Mapping[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class TemplateMetadata:
    hook_id: str
    timestamp: str
    execution_time_ms: float = 0.0
    workspace_id: str | None = None
    session_id: str | None = None


@dataclass(frozen=True, slots=True)
class TemplateResponse:
    """What a template hands back: data on success, a coded failure otherwise."""

    success: bool
    metadata: TemplateMetadata
    data: dict[str, Any] | None = None
    error: TemplateFailure | None = None

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "hook_id": self.metadata.hook_id,
            "timestamp": self.metadata.timestamp,
            "execution_time_ms": self.metadata.execution_time_ms,
        }
        if self.metadata.workspace_id is not None:
            metadata["workspace_id"] = self.metadata.workspace_id
        if self.metadata.session_id is not None:
            metadata["session_id"] = self.metadata.session_id

        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = self.data
        out["metadata"] = metadata
        if self.error is not None:
            error: dict[str, Any] = {"code": self.error.code, "message": self.error.message}
            if self.error.details:
                error["details"] = dict(self.error.details)
            out["error"] = error
        return out


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _camel(snake: str) -> str:
    return re.sub(r"_([a-z])", lambda m: m.group(1).upper(), snake)


def _lookup(data: Mapping[str, Any], snake: str) -> Any:
    """Payload keys may be snake_case or camelCase."""
    if snake in data:
        return data[snake]
    return data.get(_camel(snake))


def _field(
    data: Mapping[str, Any],
    name: str,
    kind: type | tuple[type, ...],
    *,
    required: bool = True,
    where: str = "data",
) -> Any:
    value = _lookup(data, name)
    if value is None:
        if required:
            raise TemplateError(f"Invalid hook data: {where}.{name} is required")
        return None
    if not isinstance(value, kind) or (isinstance(value, bool) and kind is not bool):
        raise TemplateError(f"Invalid hook data: {where}.{name} has the wrong type")
    return value


def _choice(data: Mapping[str, Any], name: str, choices: tuple[str, ...], *, where: str = "data") -> str | None:
    value = _field(data, name, str, required=False, where=where)
    if value is not None and value not in choices:
        raise TemplateError(
            f"Invalid hook data: {where}.{name} must be one of {', '.join(choices)}"
        )
    return value


def validate_event(payload: Any) -> TemplateEvent:
    """Check the envelope every template event shares.

    Raises:
        TemplateError: with an ``Invalid hook event:`` message.
    """
    if not isinstance(payload, Mapping):
        raise TemplateError("Invalid hook event: expected an object")
    event_type = payload.get("type")
    if not isinstance(event_type, str):
        raise TemplateError("Invalid hook event: type must be a string")
    raw_ts = payload.get("timestamp")
    if not isinstance(raw_ts, str):
        raise TemplateError("Invalid hook event: timestamp must be a string")
    try:
        timestamp = datetime.fromisoformat(raw_ts.replace("Z", "+00:00"))
    except ValueError as exc:
        raise TemplateError(f"Invalid hook event: timestamp {raw_ts!r} is not a date") from exc
    data = payload.get("data")
    if not isinstance(data, Mapping):
        raise TemplateError("Invalid hook event: data must be an object")

    raw_context = payload.get("context") or {}
    if not isinstance(raw_context, Mapping):
        raise TemplateError("Invalid hook event: context must be an object")
    environment = _lookup(raw_context, "environment") or {}
    if not isinstance(environment, Mapping):
        raise TemplateError("Invalid hook event: context.environment must be an object")
    context = TemplateContext(
        workspace_path=_field(raw_context, "workspace_path", str, required=False, where="context"),
        session_id=_field(raw_context, "session_id", str, required=False, where="context"),
        user_id=_field(raw_context, "user_id", str, required=False, where="context"),
        environment={str(k): str(v) for k, v in environment.items()},
    )
    return TemplateEvent(type=event_type, timestamp=timestamp, data=data, context=context)


def sanitize_data(value: Any) -> Any:
    """Copy *value* with secrets redacted.

    Strings that mention a secret are replaced by ``[REDACTED]``, as are
    values stored under a sensitive key. Lists under a sensitive key are
    sanitized item by item. A container that appears inside itself becomes
    ``[CIRCULAR_REFERENCE]``.
    """
    return _sanitize(value, set())


def _sensitive_key(name: str) -> bool:
    return is_sensitive(name) or bool(_SENSITIVE_CONTENT.search(name))


def _sanitize(value: Any, active: set[int]) -> Any:
    if isinstance(value, str):
        return REDACTED if _SENSITIVE_CONTENT.search(value) else value
    if not isinstance(value, (Mapping, list, tuple)):
        return value
    if id(value) in active:
        return CIRCULAR_REFERENCE

    active.add(id(value))
    try:
        if isinstance(value, Mapping):
            out: dict[str, Any] = {}
            for key, item in value.items():
                key = str(key)
                if _sensitive_key(key) and not isinstance(item, (list, tuple)):
                    out[key] = REDACTED
                else:
                    out[key] = _sanitize(item, active)
            return out
        return [_sanitize(item, active) for item in value]
    finally:
        active.discard(id(value))


# ---------------------------------------------------------------------------
# Base template
# ---------------------------------------------------------------------------


class BaseHookTemplate(ABC):
    """Shared envelope validation and response building.

    Subclasses set ``template_type`` and ``error_code`` and implement
    :meth:`handle`. :meth:`process` never raises for bad input; malformed
    events come back as a failed response carrying ``error_code``.
    """

    template_type: TemplateType
    error_code = "HOOK_PROCESSING_ERROR"

    def __init__(
        self,
        *,
        timeout_ms: int = HOOK_DEFAULTS.timeout_ms,
        max_retries: int = HOOK_DEFAULTS.max_retries,
    ) -> None:
        self.timeout_ms = timeout_ms
        self.max_retries = max_retries

    @property
    def hook_id(self) -> str:
        return self.template_type.value

    def process(self, payload: Any) -> TemplateResponse:
        started = time.perf_counter()
        try:
            response = self.handle(validate_event(payload))
        except TemplateError as exc:
            logger.warning("Template %s rejected event: %s", self.hook_id, exc)
            response = self.error_response(self.error_code, str(exc))
        elapsed_ms = round((time.perf_counter() - started) * 1000, 3)
        return replace(response, metadata=replace(response.metadata, execution_time_ms=elapsed_ms))

    @abstractmethod
    def handle(self, event: TemplateEvent) -> TemplateResponse:
        """Build the response for a validated event."""
        ...

    def success_response(self, data: dict[str, Any], event: TemplateEvent) -> TemplateResponse:
        return TemplateResponse(
            success=True,
            data=data,
            metadata=TemplateMetadata(
                hook_id=self.hook_id,
                timestamp=_now_iso(),
                workspace_id=event.context.workspace_path or "unknown",
                session_id=event.context.session_id or "unknown",
            ),
        )

    def error_response(
        self, code: str, message: str, details: Mapping[str, Any] | None = None,
    ) -> TemplateResponse:
        return TemplateResponse(
            success=False,
            metadata=TemplateMetadata(hook_id=self.hook_id, timestamp=_now_iso()),
            error=TemplateFailure(code=code, message=message, details=details),
        )


# ---------------------------------------------------------------------------
# Prompt submission
# ---------------------------------------------------------------------------

MAX_PROMPT_LENGTH = 100_000

PROMPT_SOURCES = ("chat", "command", "file", "selection")


class UserPromptSubmitTemplate(BaseHookTemplate):
    """Capture a submitted prompt for indexing."""

    template_type = TemplateType.USER_PROMPT_SUBMIT

    def __init__(self) -> None:
        super().__init__(timeout_ms=3000, max_retries=2)

    def handle(self, event: TemplateEvent) -> TemplateResponse:
        data = event.data
        prompt = _field(data, "prompt", str)
        submitted_at = _field(data, "timestamp", str)
        metadata = _field(data, "metadata", Mapping, required=False) or {}
        source = _choice(metadata, "source", PROMPT_SOURCES, where="data.metadata")
        _field(metadata, "file_path", str, required=False, where="data.metadata")
        _field(metadata, "line_number", _NUMBER, required=False, where="data.metadata")
        _field(metadata, "language", str, required=False, where="data.metadata")

        if len(prompt) > MAX_PROMPT_LENGTH:
            return self.error_response(
                "PROMPT_TOO_LARGE",
                "User prompt exceeds maximum length of 100,000 characters",
                {"actual_length": len(prompt)},
            )
        if not prompt.strip():
            return self.error_response("EMPTY_PROMPT", "User prompt cannot be empty")

        return self.success_response({
            "type": "user_prompt",
            "content": sanitize_data(prompt),
            "metadata": {
                **sanitize_data(metadata),
                "source": source or "chat",
                "timestamp": submitted_at,
            },
            "capture": True,
            "indexing": {"enabled": True, "priority": "high"},
        }, event)


# ---------------------------------------------------------------------------
# Context injection before the assistant answers
# ---------------------------------------------------------------------------

_STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "be",
    "been", "being", "have", "has", "had", "do", "does", "did", "will",
    "would", "could", "should", "may", "might", "must", "can", "shall",
    "please", "help", "me", "my", "how", "what", "when", "where", "why",
    "which", "who", "whom", "whose", "this", "that", "these", "those",
})

_FILE_REFERENCE = re.compile(r"[./][\w/-]+\.\w+", re.ASCII)

_HISTORY_ROLES = ("user", "assistant")


@dataclass(slots=True)
class ContextNeeds:
    """The kind of memory worth injecting for a prompt."""

    type: str = "general"
    memory_types: list[str] = field(default_factory=list)
    search_queries: list[str] = field(default_factory=list)
    priority: str = "medium"
    relevance: float = 0.5


def extract_keywords(prompt: str, limit: int = 5) -> list[str]:
    """Longest distinct non-stop-words in *prompt*."""
    words = re.sub(r"[^\w\s]", " ", prompt.lower(), flags=re.ASCII).split()
    unique = dict.fromkeys(w for w in words if len(w) > 2 and w not in _STOP_WORDS)
    return sorted(unique, key=len, reverse=True)[:limit]


def analyze_context_needs(
    prompt: str, history: list[Mapping[str, Any]] | None = None,
) -> ContextNeeds:
    needs = ContextNeeds()
    lowered = prompt.lower()

    if any(w in lowered for w in ("previous", "earlier", "last time", "before")):
        needs.memory_types.append("conversation_history")
        needs.priority = "high"
        needs.relevance = 0.8

    if files := _FILE_REFERENCE.findall(prompt):
        needs.memory_types.append("file_operations")
        needs.search_queries.extend(files)
        needs.type = "file_context"
        needs.relevance = 0.9

    code_words = (
        "function", "class", "method", "variable",
        "implement", "jwt", "authentication", "typescript",
    )
    if any(w in lowered for w in code_words):
        needs.memory_types.append("code_analysis")
        needs.type = "code_context"
        needs.relevance = 0.85

    if any(w in lowered for w in ("error", "bug", "fix", "debug")):
        needs.memory_types.append("error_diagnostics")
        needs.type = "debugging_context"
        needs.priority = "high"
        needs.relevance = 0.9

    if any(w in lowered for w in ("config", "setup", "install", "environment")):
        needs.memory_types.append("configuration")
        needs.type = "setup_context"
        needs.relevance = 0.75

    needs.search_queries.extend(extract_keywords(prompt))

    # Task markers left by the assistant in recent turns
    for message in (history or [])[-5:]:
        if message.get("role") == "assistant" and "TODO" in message.get("content", ""):
            needs.memory_types.append("task_tracking")
            needs.priority = "high"

    if not needs.memory_types:
        needs.memory_types.append("recent_memories")
        needs.priority = "low"
        needs.relevance = 0.3
    return needs


class PreMessageTemplate(BaseHookTemplate):
    """Decide which memories to inject before the assistant responds."""

    template_type = TemplateType.PRE_MESSAGE
    error_code = "PRE_MESSAGE_HOOK_ERROR"

    def __init__(self) -> None:
        super().__init__(timeout_ms=2000, max_retries=1)

    def handle(self, event: TemplateEvent) -> TemplateResponse:
        data = event.data
        prompt_id = _field(data, "prompt_id", str)
        user_prompt = _field(data, "user_prompt", str)
        history = _field(data, "conversation_history", (list, tuple), required=False) or []
        for i, message in enumerate(history):
            where = f"data.conversation_history[{i}]"
            if not isinstance(message, Mapping):
                raise TemplateError(f"Invalid hook data: {where} must be an object")
            if _choice(message, "role", _HISTORY_ROLES, where=where) is None:
                raise TemplateError(f"Invalid hook data: {where}.role is required")
            _field(message, "content", str, where=where)
            _field(message, "timestamp", str, where=where)
        requested = _field(data, "context_requested", bool, required=False)
        max_tokens = _field(data, "max_context_tokens", _NUMBER, required=False)

        if not requested:
            return self.success_response(
                {"inject": False, "reason": "Context not requested for this prompt"}, event,
            )

        needs = analyze_context_needs(user_prompt, list(history))
        return self.success_response({
            "inject": True,
            "context": {
                "relevant_memories": needs.memory_types,
                "search_queries": needs.search_queries,
                "max_tokens": max_tokens if max_tokens is not None else HOOK_DEFAULTS.max_context_tokens,
                "priority": needs.priority,
            },
            "metadata": {
                "prompt_id": prompt_id,
                "context_type": needs.type,
                "estimated_relevance": needs.relevance,
            },
        }, event)


# ---------------------------------------------------------------------------
# Streaming assistant output
# ---------------------------------------------------------------------------

MESSAGE_TYPES = ("text", "code", "tool_use", "tool_result")

_CHUNK_FILE_OPERATION = re.compile(
    r"\b(created?|wrote|updated?|deleted?|modified)\b.*\.(ts|js|py|java|cpp|c|h|hpp|rs|go|rb|php)",
    re.IGNORECASE,
)
_CODE_BLOCK = re.compile(r"```[\s\S]*?```")
_TOOL_TAG = re.compile(r"<tool>([^<]+)</tool>")
_FILE_MODIFICATION = re.compile(
    r"(?:created?|wrote|updated?|deleted?|modified)\s+(?:file\s+)?([./][\w/-]+\.\w+)",
    re.IGNORECASE | re.ASCII,
)


class MessageBuffer:
    """Chunks of in-flight assistant messages, keyed by message id."""

    max_messages = 100
    keep_messages = 50

    def __init__(self, max_size: int = HOOK_DEFAULTS.buffer_size) -> None:
        self.max_size = max_size
        self._chunks: dict[str, list[tuple[int, str]]] = {}

    def __len__(self) -> int:
        return len(self._chunks)

    def add_chunk(self, message_id: str, index: int, content: str) -> None:
        chunks = self._chunks.setdefault(message_id, [])
        total = sum(len(c) for _, c in chunks) + len(content)
        if total > self.max_size:
            raise TemplateError(f"Message buffer exceeded maximum size of {self.max_size} bytes")
        chunks.append((index, content))

    def get_message(self, message_id: str) -> str | None:
        chunks = self._chunks.get(message_id)
        if chunks is None:
            return None
        return "".join(content for _, content in sorted(chunks, key=lambda c: c[0]))

    def clear_message(self, message_id: str) -> None:
        self._chunks.pop(message_id, None)

    def prune(self) -> None:
        """Keep only the newest messages once too many are left unfinished."""
        if len(self._chunks) > self.max_messages:
            keep = list(self._chunks)[-self.keep_messages:]
            self._chunks = {key: self._chunks[key] for key in keep}


def analyze_chunk(content: str, message_type: str | None = None) -> dict[str, Any]:
    analysis: dict[str, Any] = {"length": len(content), "type": message_type or "text"}
    if "```" in content:
        analysis["has_code_block"] = True
    if message_type == "tool_use" or "<tool>" in content:
        analysis["has_tool_use"] = True
    if _CHUNK_FILE_OPERATION.search(content):
        analysis["has_file_operation"] = True
    return analysis


def analyze_message(message: str) -> dict[str, Any]:
    """Score a complete assistant message by what it contains."""
    importance = 0.5
    categories: list[str] = []
    has_code = has_explanation = has_error = False
    tools: list[str] = []
    files: list[str] = []

    if _CODE_BLOCK.search(message):
        has_code = True
        categories.append("code")
        importance += 0.2
    if any(w in message for w in ("because", "therefore", "explanation", "means that")):
        has_explanation = True
        categories.append("explanation")
        importance += 0.1
    if any(w in message for w in ("error", "failed", "exception", "traceback")):
        has_error = True
        categories.append("error")
        importance += 0.3
    if tool_matches := _TOOL_TAG.findall(message):
        tools = [t.strip() for t in tool_matches]
        categories.append("tool_usage")
        importance += 0.15
    if file_matches := _FILE_MODIFICATION.findall(message):
        files = list(file_matches)
        categories.append("file_operations")
        importance += 0.25

    if len(message) > 1000:
        importance += 0.1
    if len(message) > 5000:
        importance += 0.1

    return {
        "importance": min(1.0, importance),
        "categories": categories or ["general"],
        "has_code": has_code,
        "has_explanation": has_explanation,
        "has_error": has_error,
        "tools_used": tools,
        "files_modified": files,
    }


def indexing_priority(importance: float) -> str:
    if importance >= 0.8:
        return "high"
    if importance >= 0.5:
        return "medium"
    return "low"


class MessageTemplate(BaseHookTemplate):
    """Buffer streamed chunks and analyze the message once the last one arrives."""

    template_type = TemplateType.MESSAGE
    error_code = "MESSAGE_HOOK_ERROR"

    def __init__(self, buffer: MessageBuffer | None = None) -> None:
        super().__init__(timeout_ms=1000, max_retries=1)
        self.buffer = buffer if buffer is not None else MessageBuffer()

    def handle(self, event: TemplateEvent) -> TemplateResponse:
        data = event.data
        message_id = _field(data, "message_id", str)
        prompt_id = _field(data, "prompt_id", str)
        chunk = _field(data, "chunk", Mapping)
        content = _field(chunk, "content", str, where="data.chunk")
        index = _field(chunk, "index", _NUMBER, where="data.chunk")
        _field(chunk, "is_first", bool, required=False, where="data.chunk")
        is_last = _field(chunk, "is_last", bool, required=False, where="data.chunk")
        message_type = _choice(data, "message_type", MESSAGE_TYPES)
        _field(data, "metadata", Mapping, required=False)

        self.buffer.add_chunk(message_id, index, content)
        result: dict[str, Any] = {
            "captured": True,
            "message_id": message_id,
            "prompt_id": prompt_id,
            "chunk_index": index,
            "analysis": analyze_chunk(content, message_type),
        }

        if is_last:
            message = self.buffer.get_message(message_id)
            if message is not None:
                analysis = analyze_message(message)
                result["complete_message"] = {
                    "content": message,
                    "analysis": analysis,
                    "should_store": analysis["importance"] > HOOK_DEFAULTS.quality_threshold,
                    "indexing_priority": indexing_priority(analysis["importance"]),
                }
                self.buffer.clear_message(message_id)

        self.buffer.prune()
        return self.success_response(result, event)


# ---------------------------------------------------------------------------
# Storing the finished exchange
# ---------------------------------------------------------------------------

_LANGUAGES = ("javascript", "typescript", "python", "java", "rust", "go", "cpp", "c++")
_FRAMEWORKS = ("react", "vue", "angular", "express", "django", "flask", "spring")
_TASK_TAGS = (
    ("debugging", ("debug", "error", "fix")),
    ("implementation", ("implement", "create", "build")),
    ("refactoring", ("refactor", "improve", "optimize")),
    ("testing", ("test", "spec", "jest")),
    ("documentation", ("document", "comment", "readme")),
)
_SUMMARY_ACTIONS = (
    (("created", "implemented"), "Created implementation"),
    (("fixed", "resolved"), "Fixed issue"),
    (("explained", "described"), "Provided explanation"),
    (("analyzed", "reviewed"), "Performed analysis"),
    (("suggested", "recommended"), "Provided recommendations"),
)
_FENCED_BLOCK = re.compile(r"```(\w+)?\n([\s\S]*?)```", re.ASCII)
_OUTCOME_VERBS = re.compile(r"\b(created?|updated?|fixed|implemented|resolved)\b", re.IGNORECASE)

_DAY_MS = 24 * 60 * 60 * 1000


def extract_tags(prompt: str, response: str) -> list[str]:
    combined = f"{prompt} {response}".lower()
    tags = [name for name in (*_LANGUAGES, *_FRAMEWORKS) if name in combined]
    tags.extend(tag for tag, words in _TASK_TAGS if any(w in combined for w in words))
    return tags


def summarize(prompt: str, response: str) -> str:
    sentences = [s for s in re.split(r"[.!?]+", prompt) if len(s.strip()) > 10]
    subject = sentences[0].strip() if sentences else prompt[:100]
    action = next(
        (label for words, label in _SUMMARY_ACTIONS if any(w in response for w in words)),
        "Provided assistance",
    )
    return f"{action} for: {subject}"[:200]


def extract_artifacts(response: str, tools: list[str], files: list[str]) -> dict[str, Any]:
    artifacts: dict[str, Any] = {}
    if tools:
        artifacts["tools"] = list(tools)
    if files:
        artifacts["files"] = list(files)
    blocks = [
        {"language": m.group(1) or "unknown", "code": m.group(2)}
        for m in _FENCED_BLOCK.finditer(response)
    ]
    if blocks:
        artifacts["code_blocks"] = blocks
    return artifacts


def searchable_text(prompt: str, response: str, summary: str) -> str:
    sentences = [s for s in re.split(r"[.!?]+", response) if len(s.strip()) > 20][:5]
    text = " ".join([summary, prompt[:500], " ".join(sentences)])
    return _CODE_BLOCK.sub("", text)[:1000]


def conversation_quality(response: str, outcome: Mapping[str, Any] | None = None) -> float:
    score = 0.5
    if outcome:
        score += 0.2 if outcome.get("success") else -0.2
        if errors := _lookup(outcome, "error_count"):
            score -= 0.1 * min(errors, 3)
        if warnings := _lookup(outcome, "warning_count"):
            score -= 0.05 * min(warnings, 3)

    if len(response) > 100:
        score += 0.1
    if len(response) > 500:
        score += 0.1
    if "```" in response:
        score += 0.15
    if _OUTCOME_VERBS.search(response):
        score += 0.15
    if "because" in response or "therefore" in response:
        score += 0.05
    return max(0.0, min(1.0, score))


@dataclass(frozen=True, slots=True)
class StoragePlan:
    store: bool
    indexing: bool
    priority: str
    ttl_ms: int | None = None


def storage_plan(score: float, artifacts: Mapping[str, Any]) -> StoragePlan:
    if score >= 0.7:
        return StoragePlan(store=True, indexing=True, priority="high")
    if score >= 0.4:
        return StoragePlan(store=True, indexing=True, priority="medium", ttl_ms=30 * _DAY_MS)
    if artifacts:
        # Low-quality exchanges are kept briefly only when they produced something
        return StoragePlan(store=True, indexing=False, priority="low", ttl_ms=7 * _DAY_MS)
    return StoragePlan(store=False, indexing=False, priority="low")


def quality_factors(score: float) -> list[str]:
    factors = []
    if score >= 0.8:
        factors.append("high_quality_conversation")
    if score >= 0.6:
        factors.append("complete_response")
    if score >= 0.4:
        factors.append("actionable_content")
    if score < 0.4:
        factors.append("low_quality_interaction")
    if score < 0.2:
        factors.append("minimal_value")
    return factors


def memory_id(prompt_id: str, message_id: str) -> str:
    return hashlib.sha256(f"{prompt_id}-{message_id}".encode()).hexdigest()[:16]


class PostMessageTemplate(BaseHookTemplate):
    """Turn a finished exchange into a memory entry and a storage decision."""

    template_type = TemplateType.POST_MESSAGE
    error_code = "POST_MESSAGE_HOOK_ERROR"

    def __init__(self) -> None:
        super().__init__(timeout_ms=5000, max_retries=2)

    def handle(self, event: TemplateEvent) -> TemplateResponse:
        data = event.data
        message_id = _field(data, "message_id", str)
        prompt_id = _field(data, "prompt_id", str)
        prompt = _field(data, "user_prompt", str)
        response = _field(data, "assistant_response", str)
        conversation_id = _field(data, "conversation_id", str, required=False)

        metadata = _field(data, "metadata", Mapping, required=False) or {}
        where = "data.metadata"
        model = _field(metadata, "model", str, required=False, where=where)
        tokens_used = _field(metadata, "tokens_used", _NUMBER, required=False, where=where)
        execution_time = _field(metadata, "execution_time", _NUMBER, required=False, where=where)
        tools = _string_list(metadata, "tools_used", where)
        files = _string_list(metadata, "files_modified", where)

        outcome = _field(data, "outcome", Mapping, required=False)
        if outcome is not None:
            _field(outcome, "success", bool, where="data.outcome")
            _field(outcome, "error_count", _NUMBER, required=False, where="data.outcome")
            _field(outcome, "warning_count", _NUMBER, required=False, where="data.outcome")

        summary = summarize(prompt, response)
        artifacts = extract_artifacts(response, tools, files)
        score = conversation_quality(response, outcome)
        plan = storage_plan(score, artifacts)
        cross_reference = {
            "prompt_id": prompt_id,
            "message_id": message_id,
            "conversation_id": conversation_id,
        }

        result: dict[str, Any] = {"store": plan.store}
        if plan.store:
            result["memory_entry"] = {
                "id": memory_id(prompt_id, message_id),
                "type": "conversation",
                "timestamp": _now_iso(),
                "workspace": event.context.workspace_path or "unknown",
                "session": event.context.session_id or "unknown",
                "conversation": cross_reference,
                "content": {
                    "user_prompt": prompt,
                    "assistant_response": response,
                    "summary": summary,
                },
                "metadata": {
                    "model": model,
                    "tokens_used": tokens_used,
                    "execution_time": execution_time,
                    "outcome": dict(outcome) if outcome is not None else None,
                },
                "artifacts": artifacts,
                "tags": extract_tags(prompt, response),
                "searchable_text": searchable_text(prompt, response, summary),
            }
        result["indexing"] = {"enabled": plan.indexing, "priority": plan.priority, "ttl_ms": plan.ttl_ms}
        result["quality"] = {"score": score, "factors": quality_factors(score)}
        result["cross_reference"] = cross_reference
        return self.success_response(result, event)


def _string_list(data: Mapping[str, Any], name: str, where: str) -> list[str]:
    values = _field(data, name, (list, tuple), required=False, where=where) or []
    if not all(isinstance(v, str) for v in values):
        raise TemplateError(f"Invalid hook data: {where}.{name} must be a list of strings")
    return list(values)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

TEMPLATES: dict[TemplateType, type[BaseHookTemplate]] = {
    TemplateType.USER_PROMPT_SUBMIT: UserPromptSubmitTemplate,
    TemplateType.PRE_MESSAGE: PreMessageTemplate,
    TemplateType.MESSAGE: MessageTemplate,
    TemplateType.POST_MESSAGE: PostMessageTemplate,
}


def create_template(template_type: TemplateType | str) -> BaseHookTemplate:
    """Instantiate the template registered for *template_type*.

    Raises:
        TemplateError: for an unknown type.
    """
    try:
        key = TemplateType(template_type)
    except ValueError as exc:
        raise TemplateError(f"Unknown hook type: {template_type}") from exc
    return TEMPLATES[key]()
