"""Supervision of, and streaming protocol client for, the local SDK bridge."""

from kyco_bridge.bridge.client import BridgeClient, Endpoint, QueryEndpoint, encode_path_segment
from kyco_bridge.bridge.locator import BridgeLocator
from kyco_bridge.bridge.process import (
    Attached,
    BridgeProcessSupervisor,
    Owned,
    ProcessHandle,
    SupervisorState,
)
from kyco_bridge.bridge.retry import RetryPolicy
from kyco_bridge.bridge.stream import EventStream

__all__ = [
    "Attached",
    "BridgeClient",
    "BridgeLocator",
    "BridgeProcessSupervisor",
    "Endpoint",
    "EventStream",
    "Owned",
    "ProcessHandle",
    "QueryEndpoint",
    "RetryPolicy",
    "SupervisorState",
    "encode_path_segment",
]
