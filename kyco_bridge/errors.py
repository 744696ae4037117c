"""Error taxonomy for bridge supervision and the bridge protocol.

Every error names the operation it came from and chains the underlying cause
(``raise ... from exc``). A 404 on a by-id lookup is not represented here: the
client returns ``None`` for it.
"""

from __future__ import annotations


class BridgeError(RuntimeError):
    """Base class for all bridge failures."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class BridgeConnectionError(BridgeError):
    """The bridge could not be reached, or the connection broke mid-stream."""

    def __init__(self, operation: str, message: str, *, attempts: int = 1):
        super().__init__(operation, message)
        self.attempts = attempts


class BridgeProtocolError(BridgeError):
    """The bridge answered with a non-success status or an unparseable body."""

    def __init__(self, operation: str, message: str, *, status_code: int | None = None, body: str = ""):
        super().__init__(operation, message)
        self.status_code = status_code
        self.body = body


class StreamDecodeError(BridgeError):
    """One NDJSON line could not be decoded; the stream it came from is over."""

    def __init__(self, operation: str, message: str, *, line_number: int, line: str):
        super().__init__(operation, message)
        self.line_number = line_number
        self.line = line


class BridgeInstallError(BridgeError):
    """Download, extraction, dependency install or build failed."""

    def __init__(self, step: str, message: str, *, output: str = ""):
        super().__init__(step, message)
        self.step = step
        self.output = output


class BridgeProcessError(BridgeError):
    """The bridge process could not be spawned or never became healthy."""

    def __init__(self, operation: str, message: str, *, attempts: int = 0):
        super().__init__(operation, message)
        self.attempts = attempts
