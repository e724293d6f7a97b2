"""Tests for the recognition -> dispatcher WebSocket channel."""

import asyncio
import json
import logging
import socket
import time

import websockets

from gestureflow.gestures import GestureLabel
from gestureflow.messages import GestureMessage, PointerMessage
from gestureflow.transport import MessageTransport


def free_port():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestUnavailableDispatcher:
    def test_send_never_raises(self):
        transport = MessageTransport(f"ws://127.0.0.1:{free_port()}/ws", connect_timeout=0.5)

        async def go():
            ok = await transport.send(GestureMessage(GestureLabel.OPEN_PALM))
            await transport.close()
            return ok

        assert asyncio.run(go()) is False
        assert transport.dropped == 1
        assert not transport.connected

    def test_reconnect_rate_limited(self):
        transport = MessageTransport(f"ws://127.0.0.1:{free_port()}/ws", reconnect_interval=60)
        attempts = []
        real_connect = transport.connect

        async def counting_connect():
            attempts.append(1)
            return await real_connect()

        transport.connect = counting_connect

        async def go():
            for _ in range(5):
                await transport.send(PointerMessage(0.5, 0.5))
                await asyncio.sleep(0.05)
            await transport.close()

        asyncio.run(go())
        assert len(attempts) == 1
        assert transport.dropped == 5

    def test_warns_once_per_outage(self, caplog):
        transport = MessageTransport(f"ws://127.0.0.1:{free_port()}/ws", reconnect_interval=0)

        async def go():
            for _ in range(3):
                await transport.send(PointerMessage(0.5, 0.5))
                await asyncio.sleep(0.05)
            await transport.close()

        with caplog.at_level(logging.DEBUG, logger="gestureflow.transport"):
            asyncio.run(go())
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1

    def test_hung_dispatcher_does_not_block_sends(self):
        # Accepts TCP but never answers the WebSocket handshake
        listener = socket.socket()
        listener.bind(("127.0.0.1", 0))
        listener.listen(8)
        port = listener.getsockname()[1]
        transport = MessageTransport(
            f"ws://127.0.0.1:{port}/ws", connect_timeout=2.0, reconnect_interval=0.1,
        )

        async def go():
            worst = 0.0
            for _ in range(30):
                t0 = time.monotonic()
                await transport.send(PointerMessage(0.5, 0.5))
                worst = max(worst, time.monotonic() - t0)
                await asyncio.sleep(0.02)
            await transport.close()
            return worst

        try:
            worst = asyncio.run(go())
        finally:
            listener.close()
        assert worst < 0.1
        assert transport.sent == 0
        assert transport.dropped == 30

    def test_reconnects_in_background(self):
        received = []

        async def handler(ws, *args):
            async for raw in ws:
                received.append(json.loads(raw))

        async def go():
            async with websockets.serve(handler, "127.0.0.1", 0) as server:
                port = server.sockets[0].getsockname()[1]
                transport = MessageTransport(f"ws://127.0.0.1:{port}/ws", connect_timeout=0.3)
                first = await transport.send(GestureMessage(GestureLabel.PINCH))
                for _ in range(100):
                    if transport.connected:
                        break
                    await asyncio.sleep(0.01)
                second = await transport.send(GestureMessage(GestureLabel.SPREAD))
                for _ in range(100):
                    if received:
                        break
                    await asyncio.sleep(0.01)
                await transport.close()
                return first, second

        first, second = asyncio.run(go())
        assert (first, second) == (False, True)
        assert received == [{"type": "gesture", "gesture": "SPREAD"}]


class TestDelivery:
    def test_messages_arrive_in_order(self):
        received = []

        async def handler(ws, *args):
            await ws.send(json.dumps({"type": "connected", "bindings": {"next": "helper"}}))
            async for raw in ws:
                received.append(json.loads(raw))

        async def go():
            async with websockets.serve(handler, "127.0.0.1", 0) as server:
                port = server.sockets[0].getsockname()[1]
                async with MessageTransport(f"ws://127.0.0.1:{port}/ws") as transport:
                    await transport.send(GestureMessage(GestureLabel.SWIPE_RIGHT))
                    await transport.send(PointerMessage(0.1, 0.9))
                    await transport.send(GestureMessage(GestureLabel.CLOSED_FIST))
                    info = transport.server_info
                    sent = transport.sent
                for _ in range(100):
                    if len(received) == 3:
                        break
                    await asyncio.sleep(0.01)
            return info, sent

        info, sent = asyncio.run(go())
        assert sent == 3
        assert info["bindings"] == {"next": "helper"}
        assert received == [
            {"type": "gesture", "gesture": "SWIPE_RIGHT"},
            {"type": "pointer", "x": 0.1, "y": 0.9},
            {"type": "gesture", "gesture": "CLOSED_FIST"},
        ]

    def test_no_greeting_is_fine(self):
        async def handler(ws, *args):
            async for _ in ws:
                pass

        async def go():
            async with websockets.serve(handler, "127.0.0.1", 0) as server:
                port = server.sockets[0].getsockname()[1]
                transport = MessageTransport(f"ws://127.0.0.1:{port}/ws", connect_timeout=0.3)
                await transport.connect()
                ok = await transport.send(GestureMessage(GestureLabel.PINCH))
                await transport.close()
                return ok, transport.server_info

        ok, info = asyncio.run(go())
        assert ok is True
        assert info == {}
