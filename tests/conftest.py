"""Root test configuration for ssrf-guard.

Clears the SSRF_GUARD_* environment variables and the default config search
paths for every test, so a developer's own ``~/.ssrf-guard/config.yaml`` or
shell environment never changes the outcome of a test.

Also provides an in-memory connection factory (FakeConnectionFactory) whose
connections never touch the network. Tests drive name resolution by calling
``FakeConnection.emit_lookup()`` directly.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Union

import pytest

from ssrf_guard.guard.connection import (
    ConnectCallback,
    Connection,
    ConnectionFactory,
    ConnectionParams,
    LookupListener,
)
from ssrf_guard.models.events import BlockEvent, LogLevel


@pytest.fixture(autouse=True)
def isolate_guard_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove environment overrides and default config paths for all tests.

    Config tests that exercise SSRF_GUARD_MODE / SSRF_GUARD_CONFIG set them
    again with their own monkeypatch calls (runs after this one and wins).
    """
    monkeypatch.delenv("SSRF_GUARD_MODE", raising=False)
    monkeypatch.delenv("SSRF_GUARD_CONFIG", raising=False)
    monkeypatch.setattr("ssrf_guard.config.DEFAULT_CONFIG_PATHS", [])


# ─── Fake connection layer ────────────────────────────────────────────────────


class FakeConnection(Connection):
    """In-flight connection that records destroy() and replays lookups on demand."""

    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self.listeners: list[LookupListener] = []
        self.destroy_calls: list[Optional[BaseException]] = []
        self._destroyed = False
        self._error: Optional[BaseException] = None

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def on_lookup(self, listener: LookupListener) -> None:
        self.listeners.append(listener)

    def emit_lookup(self, error: Optional[BaseException], addresses: list[str]) -> None:
        listeners, self.listeners = self.listeners, []
        for listener in listeners:
            listener(error, addresses)

    def destroy(self, error: Optional[BaseException] = None) -> None:
        self.destroy_calls.append(error)
        if self._destroyed:
            return
        self._destroyed = True
        self._error = error

    async def wait_connected(self) -> Any:
        raise NotImplementedError("FakeConnection never connects")


class FakeConnectionFactory(ConnectionFactory):
    """Records every create_connection() call and hands back a FakeConnection."""

    scheme = "http"
    default_port = 80

    def __init__(self, return_none: bool = False) -> None:
        self.calls: list[ConnectionParams] = []
        self.connections: list[FakeConnection] = []
        self.return_none = return_none

    def create_connection(
        self,
        params: Union[ConnectionParams, Mapping[str, Any]],
        callback: Optional[ConnectCallback] = None,
    ) -> Optional[Connection]:
        params = ConnectionParams.coerce(params)
        self.calls.append(params)
        if self.return_none:
            return None
        connection = FakeConnection(params.host or "localhost", params.port or self.default_port)
        self.connections.append(connection)
        return connection


class RecordingLogger:
    """Options.logger callback that keeps every (level, message, event) call."""

    def __init__(self) -> None:
        self.calls: list[tuple[LogLevel, str, Optional[BlockEvent]]] = []

    def __call__(self, level: LogLevel, message: str, event: Optional[BlockEvent] = None) -> None:
        self.calls.append((level, message, event))

    @property
    def levels(self) -> list[str]:
        return [level for level, _, _ in self.calls]

    @property
    def events(self) -> list[BlockEvent]:
        return [event for _, _, event in self.calls if event is not None]


@pytest.fixture
def fake_factory() -> FakeConnectionFactory:
    return FakeConnectionFactory()


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def null_factory() -> FakeConnectionFactory:
    """A factory that declines to start a connection (returns None)."""
    return FakeConnectionFactory(return_none=True)
