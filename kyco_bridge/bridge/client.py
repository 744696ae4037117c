"""HTTP client for the SDK bridge: simple calls plus streaming queries."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from kyco_bridge.bridge.retry import RetryPolicy
from kyco_bridge.bridge.stream import EventStream
from kyco_bridge.bridge.types import (
    ClaudeQueryRequest,
    CodexQueryRequest,
    HealthResponse,
    PermissionMode,
    StatusResponse,
    StoredSession,
    ToolApprovalRequest,
    ToolApprovalResponse,
    WireModel,
)
from kyco_bridge.errors import BridgeConnectionError, BridgeError, BridgeProtocolError

M = TypeVar("M", bound=BaseModel)

DEFAULT_BRIDGE_URL = "http://127.0.0.1:17432"


def encode_path_segment(segment: str) -> str:
    """Percent-encode everything outside the RFC 3986 unreserved set."""
    return quote(segment, safe="")


@dataclass(frozen=True, slots=True, kw_only=True)
class Endpoint:
    """Where the bridge listens and how patient to be with it."""

    base_url: str = DEFAULT_BRIDGE_URL
    connect_timeout_s: float = 5.0
    read_timeout_s: float = 300.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @property
    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self.connect_timeout_s,
            read=self.read_timeout_s,
            write=self.connect_timeout_s,
            pool=self.connect_timeout_s,
        )

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"


@dataclass(frozen=True, slots=True, kw_only=True)
class QueryEndpoint:
    """One streaming query backend: its path, request shape and retry policy."""

    backend: str
    path: str
    request_type: type[WireModel]
    retry: RetryPolicy = field(default_factory=RetryPolicy.no_retry)


def claude_query_endpoint(retry: RetryPolicy | None = None) -> QueryEndpoint:
    return QueryEndpoint(
        backend="claude",
        path="/claude/query",
        request_type=ClaudeQueryRequest,
        retry=retry or RetryPolicy.bounded(),
    )


def codex_query_endpoint(retry: RetryPolicy | None = None) -> QueryEndpoint:
    return QueryEndpoint(
        backend="codex",
        path="/codex/query",
        request_type=CodexQueryRequest,
        retry=retry or RetryPolicy.no_retry(),
    )


class BridgeClient:
    """Blocking client for one bridge endpoint.

    Safe to share between threads. Run each long query on its own thread so a
    silent session does not hold up health checks or control calls.
    """

    def __init__(
        self,
        endpoint: Endpoint | None = None,
        *,
        claude_retry: RetryPolicy | None = None,
        codex_retry: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint or Endpoint()
        self.claude = claude_query_endpoint(claude_retry)
        self.codex = codex_query_endpoint(codex_retry)
        self._http = httpx.Client(timeout=self.endpoint.timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "BridgeClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = self.endpoint.url(path)
        logger.debug("bridge {} {}", method, url)
        try:
            response = self._http.request(method, url, json=json, params=params)
        except httpx.RequestError as e:
            raise self._request_failed(operation, e) from e
        return response

    def _request_failed(self, operation: str, error: httpx.RequestError) -> BridgeError:
        if isinstance(error, httpx.TransportError):
            return BridgeConnectionError(operation, f"bridge unreachable at {self.endpoint.base_url}: {error}")
        # Decoding or redirect failures: the bridge answered, but not usably.
        return BridgeProtocolError(operation, f"{type(error).__name__}: {error}")

    @staticmethod
    def _raise_for_status(response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return
        body = response.text[:800]
        raise BridgeProtocolError(
            operation,
            f"HTTP {response.status_code}: {body}",
            status_code=response.status_code,
            body=body,
        )

    @staticmethod
    def _json(response: httpx.Response, operation: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise BridgeProtocolError(
                operation,
                f"invalid JSON body: {e}",
                status_code=response.status_code,
                body=response.text[:800],
            ) from e
        if not isinstance(data, dict):
            raise BridgeProtocolError(
                operation,
                "expected a JSON object",
                status_code=response.status_code,
                body=response.text[:800],
            )
        return data

    def _call(self, method: str, path: str, operation: str, **kwargs: Any) -> dict[str, Any]:
        response = self._request(method, path, operation, **kwargs)
        self._raise_for_status(response, operation)
        return self._json(response, operation)

    @staticmethod
    def _parse(model: type[M], data: Any, operation: str) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise BridgeProtocolError(operation, f"unexpected response shape: {e}") from e

    @staticmethod
    def _success(data: dict[str, Any], operation: str) -> bool:
        success = data.get("success")
        if not isinstance(success, bool):
            raise BridgeProtocolError(operation, f"response has no boolean 'success': {data!r}"[:800])
        return success

    # ------------------------------------------------------------------
    # Health & status
    # ------------------------------------------------------------------

    def health(self) -> HealthResponse:
        operation = "health check"
        return self._parse(HealthResponse, self._call("GET", "/health", operation), operation)

    def is_healthy(self) -> bool:
        try:
            self.health()
        except BridgeError:
            return False
        return True

    def status(self) -> StatusResponse:
        operation = "bridge status"
        return self._parse(StatusResponse, self._call("GET", "/status", operation), operation)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def list_sessions(self, session_type: str | None = None) -> list[StoredSession]:
        operation = "list sessions"
        params = {"type": session_type} if session_type else None
        data = self._call("GET", "/sessions", operation, params=params)
        return [self._parse(StoredSession, item, operation) for item in data.get("sessions") or []]

    def get_session(self, session_id: str) -> StoredSession | None:
        """Fetch one session; ``None`` when the bridge does not know the id."""
        operation = f"get session {session_id!r}"
        response = self._request("GET", f"/sessions/{encode_path_segment(session_id)}", operation)
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        self._raise_for_status(response, operation)
        data = self._json(response, operation)
        return self._parse(StoredSession, data.get("session"), operation)

    # ------------------------------------------------------------------
    # Control calls (never retried here)
    # ------------------------------------------------------------------

    def interrupt_claude(self, session_id: str) -> bool:
        operation = f"interrupt claude session {session_id!r}"
        data = self._call("POST", f"/claude/interrupt/{encode_path_segment(session_id)}", operation)
        return self._success(data, operation)

    def set_claude_permission_mode(self, session_id: str, permission_mode: PermissionMode) -> bool:
        operation = f"set permission mode for claude session {session_id!r}"
        data = self._call(
            "POST",
            f"/claude/set-permission-mode/{encode_path_segment(session_id)}",
            operation,
            json={"permissionMode": permission_mode},
        )
        return self._success(data, operation)

    def send_tool_approval(self, response: ToolApprovalResponse) -> bool:
        operation = f"tool approval {response.request_id!r}"
        data = self._call("POST", "/claude/tool-approval", operation, json=response.to_wire())
        return self._success(data, operation)

    def list_pending_approvals(self) -> list[ToolApprovalRequest]:
        operation = "list pending approvals"
        data = self._call("GET", "/claude/pending-approvals", operation)
        return [self._parse(ToolApprovalRequest, item, operation) for item in data.get("pending") or []]

    def interrupt_codex(self, thread_id: str) -> bool:
        operation = f"interrupt codex thread {thread_id!r}"
        data = self._call("POST", f"/codex/interrupt/{encode_path_segment(thread_id)}", operation)
        return self._success(data, operation)

    def list_codex_threads(self) -> list[str]:
        data = self._call("GET", "/codex/threads", "list codex threads")
        return [str(thread) for thread in data.get("threads") or []]

    def clear_codex_thread(self, thread_id: str) -> bool:
        operation = f"clear codex thread {thread_id!r}"
        data = self._call("DELETE", f"/codex/threads/{encode_path_segment(thread_id)}", operation)
        return self._success(data, operation)

    # ------------------------------------------------------------------
    # Streaming queries
    # ------------------------------------------------------------------

    def claude_query(self, request: ClaudeQueryRequest) -> EventStream:
        return self.submit_and_stream(self.claude, request)

    def codex_query(self, request: CodexQueryRequest) -> EventStream:
        return self.submit_and_stream(self.codex, request)

    def submit_and_stream(self, endpoint: QueryEndpoint, request: WireModel) -> EventStream:
        """POST ``request`` to ``endpoint`` and return the open event stream.

        Connection failures while opening the stream are retried according to
        ``endpoint.retry``. A non-success status is not retried. Nothing is
        retried once the stream is open.
        """
        if not isinstance(request, endpoint.request_type):
            raise TypeError(
                f"{endpoint.backend} query expects {endpoint.request_type.__name__}, "
                f"got {type(request).__name__}"
            )
        operation = f"{endpoint.backend} query"
        payload = request.to_wire()
        policy = endpoint.retry
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._open_stream(endpoint, payload, operation)
            except BridgeConnectionError as e:
                if not policy.should_retry(attempt):
                    if policy.retries:
                        raise BridgeConnectionError(
                            operation,
                            f"failed to start {endpoint.backend} query after {attempt} attempts: {e}",
                            attempts=attempt,
                        ) from e
                    raise
                delay_ms = policy.delay_ms(attempt)
                logger.warning(
                    "{} attempt {}/{} failed: {}; retrying in {}ms",
                    operation,
                    attempt,
                    policy.max_attempts,
                    e,
                    delay_ms,
                )
                time.sleep(delay_ms / 1000.0)

    def _open_stream(self, endpoint: QueryEndpoint, payload: dict[str, Any], operation: str) -> EventStream:
        url = self.endpoint.url(endpoint.path)
        logger.debug("bridge POST {} (stream)", url)
        request = self._http.build_request("POST", url, json=payload)
        try:
            response = self._http.send(request, stream=True)
        except httpx.RequestError as e:
            raise self._request_failed(operation, e) from e

        if not response.is_success:
            try:
                body = response.read().decode("utf-8", errors="replace")[:800]
            except httpx.HTTPError:
                body = ""
            finally:
                response.close()
            raise BridgeProtocolError(
                operation,
                f"HTTP {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )
        return EventStream.from_response(response, operation=operation)
