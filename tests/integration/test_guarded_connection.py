"""Integration tests — guarded factories over real asyncio connections.

End-to-end scenarios with a local server on 127.0.0.1 and a patched resolver
that maps test hostnames to chosen addresses:

  1. block mode, IP literal target   → SSRFBlockedError raised synchronously
  2. block mode, name → 127.0.0.1    → connection destroyed (dns_rebinding),
                                       server never sees a connection
  3. report mode, name → 127.0.0.1   → warning reported, connection succeeds
  4. allow mode                      → no checks, no logger calls
"""

from __future__ import annotations

import asyncio
import contextlib
import socket
from typing import AsyncIterator

import pytest

from ssrf_guard import Options, create_guarded_factory
from ssrf_guard.exceptions import SSRFBlockedError
from ssrf_guard.models.validation import BlockReason, Mode

pytestmark = pytest.mark.asyncio


@contextlib.asynccontextmanager
async def _local_server() -> AsyncIterator[tuple[int, list[str]]]:
    accepted: list[str] = []

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        accepted.append(writer.get_extra_info("peername")[0])
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    try:
        yield server.sockets[0].getsockname()[1], accepted
    finally:
        server.close()
        await server.wait_closed()


def _patch_resolver(monkeypatch: pytest.MonkeyPatch, table: dict[str, list[str]]) -> None:
    async def getaddrinfo(host, port, *, family=0, type=0, proto=0, flags=0):
        if host not in table:
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        return [
            (socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP, "", (address, port))
            for address in table[host]
        ]

    monkeypatch.setattr(asyncio.get_running_loop(), "getaddrinfo", getaddrinfo)


async def _close_streams(streams) -> None:
    _, writer = streams
    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()


class TestBlockMode:
    async def test_ip_literal_blocked_before_connecting(self, recording_logger) -> None:
        factory = create_guarded_factory("http://127.0.0.1", Options(logger=recording_logger))
        async with _local_server() as (port, accepted):
            with pytest.raises(SSRFBlockedError) as exc_info:
                factory.create_connection({"host": "127.0.0.1", "port": port})

        assert exc_info.value.reason is BlockReason.PRIVATE_IP
        assert accepted == []
        assert recording_logger.levels == ["error"]

    async def test_rebinding_destroys_connection(self, monkeypatch: pytest.MonkeyPatch, recording_logger) -> None:
        _patch_resolver(monkeypatch, {"legitimate.test": ["127.0.0.1"]})
        callbacks: list[object] = []
        factory = create_guarded_factory("http://legitimate.test", Options(logger=recording_logger))

        async with _local_server() as (port, accepted):
            connection = factory.create_connection(
                {"host": "legitimate.test", "port": port},
                lambda err, conn: callbacks.append(err),
            )
            assert not connection.destroyed

            with pytest.raises(SSRFBlockedError) as exc_info:
                await connection.wait_connected()
            await asyncio.sleep(0.05)

        error = exc_info.value
        assert error.reason is BlockReason.DNS_REBINDING
        assert error.hostname == "legitimate.test"
        assert error.ip == "127.0.0.1"
        assert connection.destroyed
        assert callbacks == [error]
        assert accepted == []
        assert recording_logger.events[0].ip == "127.0.0.1"

    async def test_any_unsafe_address_blocks(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _patch_resolver(monkeypatch, {"mixed.test": ["93.184.216.34", "10.0.0.7"]})
        factory = create_guarded_factory("http://mixed.test")

        connection = factory.create_connection({"host": "mixed.test", "port": 80})
        with pytest.raises(SSRFBlockedError) as exc_info:
            await connection.wait_connected()
        assert exc_info.value.ip == "10.0.0.7"

    async def test_rebinding_check_disabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _patch_resolver(monkeypatch, {"legitimate.test": ["127.0.0.1"]})
        factory = create_guarded_factory("http://legitimate.test", Options(detect_dns_rebinding=False))

        async with _local_server() as (port, accepted):
            connection = factory.create_connection({"host": "legitimate.test", "port": port})
            await _close_streams(await connection.wait_connected())
            await asyncio.sleep(0.05)

        assert accepted == ["127.0.0.1"]

    async def test_resolution_failure_propagates_unchanged(self, monkeypatch: pytest.MonkeyPatch, recording_logger) -> None:
        _patch_resolver(monkeypatch, {})
        factory = create_guarded_factory("http://missing.test", Options(logger=recording_logger))

        connection = factory.create_connection({"host": "missing.test", "port": 80})
        with pytest.raises(socket.gaierror):
            await connection.wait_connected()
        assert recording_logger.calls == []


class TestReportMode:
    async def test_rebinding_reported_and_connection_proceeds(
        self, monkeypatch: pytest.MonkeyPatch, recording_logger
    ) -> None:
        _patch_resolver(monkeypatch, {"legitimate.test": ["127.0.0.1"]})
        factory = create_guarded_factory(
            "http://legitimate.test", Options(mode=Mode.REPORT, logger=recording_logger)
        )

        async with _local_server() as (port, accepted):
            connection = factory.create_connection({"host": "legitimate.test", "port": port})
            await _close_streams(await connection.wait_connected())
            await asyncio.sleep(0.05)

        assert accepted == ["127.0.0.1"]
        assert recording_logger.levels == ["warn"]
        level, message, event = recording_logger.calls[0]
        assert message == "SSRF detected (report mode): dns_rebinding"
        assert event.ip == "127.0.0.1"
        assert event.hostname == "legitimate.test"

    async def test_ip_literal_reported_once(self, recording_logger) -> None:
        factory = create_guarded_factory("http://127.0.0.1", Options(mode=Mode.REPORT, logger=recording_logger))
        async with _local_server() as (port, accepted):
            connection = factory.create_connection({"host": "127.0.0.1", "port": port})
            await _close_streams(await connection.wait_connected())

        assert recording_logger.levels == ["warn"]
        assert recording_logger.events[0].reason is BlockReason.PRIVATE_IP


class TestAllowMode:
    async def test_no_checks(self, recording_logger) -> None:
        factory = create_guarded_factory("http://127.0.0.1", Options(mode=Mode.ALLOW, logger=recording_logger))
        async with _local_server() as (port, accepted):
            connection = factory.create_connection({"host": "127.0.0.1", "port": port})
            await _close_streams(await connection.wait_connected())
            await asyncio.sleep(0.05)

        assert accepted == ["127.0.0.1"]
        assert recording_logger.calls == []
