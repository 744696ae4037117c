"""Wire types shared with the SDK bridge (camelCase JSON, snake_case Python)."""

from __future__ import annotations

from typing import Annotated, Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

PermissionMode: TypeAlias = Literal["default", "acceptEdits", "bypassPermissions", "plan", "delegate", "dontAsk"]
ToolDecision: TypeAlias = Literal["allow", "deny", "ask"]
CodexEffort: TypeAlias = Literal["none", "minimal", "low", "medium", "high", "xhigh"]
CodexApprovalPolicy: TypeAlias = Literal["never", "on-failure", "unless-allow-listed", "always"]
SessionType: TypeAlias = Literal["claude", "codex"]


class WireModel(BaseModel):
    """Base for every payload exchanged with the bridge."""

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Requests
# ============================================================================


class ImageContent(WireModel):
    """Base64 image attached to a prompt (no data-URL prefix)."""

    data: str
    media_type: str | None = None


class ClaudeQueryRequest(WireModel):
    """Start or continue a Claude session."""

    prompt: str
    cwd: str
    images: list[ImageContent] | None = None
    session_id: str | None = None
    fork_session: bool | None = None
    permission_mode: PermissionMode | None = None
    agents: dict[str, Any] | None = None
    allowed_tools: list[str] | None = None
    disallowed_tools: list[str] | None = None
    env: dict[str, str] | None = None
    mcp_servers: dict[str, Any] | None = None
    system_prompt: str | None = None
    system_prompt_mode: Literal["append", "replace"] | None = None
    setting_sources: list[str] | None = None
    plugins: list[dict[str, Any]] | None = None
    max_turns: int | None = None
    max_thinking_tokens: int | None = None
    model: str | None = None
    output_schema: dict[str, Any] | None = None
    kyco_callback_url: str | None = None
    hooks: dict[str, Any] | None = None


class CodexQueryRequest(WireModel):
    """Start or continue a Codex thread."""

    prompt: str
    cwd: str
    images: list[ImageContent] | None = None
    thread_id: str | None = None
    sandbox: str | None = None
    env: dict[str, str] | None = None
    output_schema: dict[str, Any] | None = None
    model: str | None = None
    effort: CodexEffort | None = None
    approval_policy: CodexApprovalPolicy | None = None
    skip_git_repo_check: bool | None = None


class ToolApprovalResponse(WireModel):
    """Decision for a pending tool approval request."""

    request_id: str
    decision: ToolDecision
    reason: str | None = None
    modified_input: Any | None = None


# ============================================================================
# Responses
# ============================================================================


class HealthResponse(WireModel):
    status: str
    version: str
    timestamp: int


class ActiveSessionCounts(WireModel):
    claude: int = 0
    codex: int = 0


class StatusResponse(WireModel):
    active_sessions: ActiveSessionCounts


class StoredSession(WireModel):
    """Persisted session metadata kept by the bridge."""

    id: str
    session_type: str = Field(alias="type")
    created_at: int
    last_active_at: int
    cwd: str
    turn_count: int = 0
    total_tokens: int = 0
    total_cost_usd: float = 0.0


class ToolApprovalRequest(WireModel):
    """Tool use waiting for a decision from KYCO.

    ``/claude/pending-approvals`` does not report the owning session, so
    ``session_id`` is only set when the bridge includes it.
    """

    request_id: str
    session_id: str | None = None
    tool_name: str
    tool_input: Any = None


# ============================================================================
# Streamed events
# ============================================================================


class UsageStats(WireModel):
    input_tokens: int
    output_tokens: int
    cache_read_tokens: int | None = None
    cache_write_tokens: int | None = None


class _Event(WireModel):
    session_id: str
    timestamp: int


class SessionStartEvent(_Event):
    type: Literal["session.start"]
    model: str
    tools: list[str] = Field(default_factory=list)


class TextEvent(_Event):
    type: Literal["text"]
    content: str
    partial: bool


class ToolUseEvent(_Event):
    type: Literal["tool.use"]
    tool_name: str
    tool_input: Any = None
    tool_use_id: str


class ToolResultEvent(_Event):
    type: Literal["tool.result"]
    tool_use_id: str
    success: bool
    output: str
    files_changed: list[str] | None = None


class ErrorEvent(_Event):
    type: Literal["error"]
    message: str
    code: str | None = None


class SessionCompleteEvent(_Event):
    type: Literal["session.complete"]
    success: bool
    result: Any | None = None
    usage: UsageStats | None = None
    cost_usd: float | None = None
    duration_ms: int


class ToolApprovalNeededEvent(_Event):
    type: Literal["tool.approval_needed"]
    request_id: str
    tool_name: str
    tool_input: Any = None


class HookPreToolUseEvent(_Event):
    type: Literal["hook.pre_tool_use"]
    tool_name: str
    tool_input: Any = None
    tool_use_id: str
    transcript_path: str | None = None


class HeartbeatEvent(_Event):
    """Keeps the connection alive while a tool approval is pending."""

    type: Literal["heartbeat"]
    pending_approval_request_id: str | None = None


BridgeEvent = Annotated[
    SessionStartEvent
    | TextEvent
    | ToolUseEvent
    | ToolResultEvent
    | ErrorEvent
    | SessionCompleteEvent
    | ToolApprovalNeededEvent
    | HookPreToolUseEvent
    | HeartbeatEvent,
    Field(discriminator="type"),
]

BRIDGE_EVENT_ADAPTER: TypeAdapter[BridgeEvent] = TypeAdapter(BridgeEvent)
