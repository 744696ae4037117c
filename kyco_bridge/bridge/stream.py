"""Lazy NDJSON decoder over an open bridge response body."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator

import httpx
from loguru import logger
from pydantic import ValidationError

from kyco_bridge.bridge.types import BRIDGE_EVENT_ADAPTER, BridgeEvent
from kyco_bridge.errors import BridgeConnectionError, StreamDecodeError


class EventStream:
    """Forward-only iterator of ``BridgeEvent`` decoded from NDJSON lines.

    Blank (keep-alive) lines are skipped. The first undecodable line is raised
    once as ``StreamDecodeError`` and the stream is finished from then on; there
    is no attempt to resynchronize. End of body ends iteration without error.

    Each pull blocks on the underlying reader. To cancel, stop iterating and
    call ``close()`` (or leave the ``with`` block).
    """

    def __init__(
        self,
        lines: Iterable[str],
        *,
        operation: str = "event stream",
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self._lines: Iterator[str] = iter(lines)
        self._operation = operation
        self._on_close = on_close
        self._line_number = 0
        self._finished = False
        self._closed = False

    @classmethod
    def from_response(cls, response: httpx.Response, *, operation: str) -> "EventStream":
        return cls(response.iter_lines(), operation=operation, on_close=response.close)

    @property
    def finished(self) -> bool:
        return self._finished

    def __iter__(self) -> "EventStream":
        return self

    def __next__(self) -> BridgeEvent:
        if self._finished:
            raise StopIteration

        # Loop, never recurse: a bridge may send any number of keep-alive blanks.
        while True:
            try:
                line = next(self._lines)
            except StopIteration:
                self._finish()
                raise
            except httpx.HTTPError as e:
                self._finish()
                raise BridgeConnectionError(
                    self._operation,
                    f"stream broke after line {self._line_number}: {e}",
                ) from e
            self._line_number += 1
            if line.strip():
                break

        try:
            return BRIDGE_EVENT_ADAPTER.validate_json(line)
        except ValidationError as e:
            self._finish()
            logger.warning("{}: undecodable line {}: {}", self._operation, self._line_number, line[:200])
            raise StreamDecodeError(
                self._operation,
                f"malformed event on line {self._line_number}: {e.errors()[0].get('msg', e)}",
                line_number=self._line_number,
                line=line,
            ) from e

    def _finish(self) -> None:
        self._finished = True
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._finished = True
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> "EventStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
