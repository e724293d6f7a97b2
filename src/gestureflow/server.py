"""Dispatcher server: the listening end of the transport.

Accepts WebSocket connections from the recognition loop and hands every
inbound frame to the action dispatcher.

Endpoints:
    WS   / and /ws       gesture/pointer messages in, one greeting out
    GET  /api/status     backends, bindings and counters
    GET  /api/actions    gesture -> action table
    POST /api/dispatch   dispatch one message and wait for its result
    GET  /metrics        Prometheus metrics

Usage:
    gestureflow bridge
    # or
    uvicorn --factory gestureflow.server:create_app --port 3001
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from gestureflow import __version__
from gestureflow.config import GestureFlowConfig, load_config
from gestureflow.dispatcher import ActionDispatcher
from gestureflow.errors import MessageDecodeError
from gestureflow.executors import ExecutorChain
from gestureflow.messages import decode_message

logger = logging.getLogger("gestureflow.server")


class WireMessage(BaseModel):
    type: str
    gesture: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None


class ServerState:
    def __init__(self, dispatcher: ActionDispatcher):
        self.dispatcher = dispatcher
        self.clients: set[WebSocket] = set()
        self.started = time.time()


def create_app(
    config: Optional[GestureFlowConfig] = None,
    dispatcher: Optional[ActionDispatcher] = None,
) -> FastAPI:
    """Build the dispatcher app. Executors start with the app and stop with it."""
    if dispatcher is None:
        config = config or load_config()
        dispatcher = ActionDispatcher(ExecutorChain.from_config(config.dispatcher))
    state = ServerState(dispatcher)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # NoExecutorError propagates and aborts startup
        await state.dispatcher.start()
        yield
        await state.dispatcher.close()
        logger.info("Dispatcher stopped")

    app = FastAPI(title="GestureFlow", version=__version__, lifespan=lifespan)
    app.state.gestureflow = state
    metrics = dispatcher.metrics

    @app.get("/api/status")
    async def api_status():
        chain = state.dispatcher.chain
        return {
            "version": __version__,
            "uptime": round(time.time() - state.started, 1),
            "clients": len(state.clients),
            "backends": [ex.name for ex in chain.active],
            "bindings": chain.bindings,
            "per_call_fallback": chain.per_call_fallback,
            "screen": list(chain.screen_size()),
            "received": state.dispatcher.received,
            "rejected": state.dispatcher.rejected,
            "in_flight": state.dispatcher.in_flight,
            "recent": [r.to_dict() for r in state.dispatcher.recent],
        }

    @app.get("/api/actions")
    async def api_actions():
        return {"actions": state.dispatcher.action_table()}

    @app.post("/api/dispatch")
    async def api_dispatch(body: WireMessage):
        try:
            message = decode_message(body.model_dump(exclude_none=True))
        except MessageDecodeError as e:
            raise HTTPException(status_code=400, detail=str(e))

        task = state.dispatcher.dispatch(message)
        if task is None:
            return {"status": "ignored"}
        result = await task
        return {"status": "done", "result": result.to_dict()}

    @app.get("/metrics")
    async def api_metrics():
        metrics.set_connections(len(state.clients))
        return PlainTextResponse(
            metrics.render(),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    async def websocket_endpoint(ws: WebSocket):
        await ws.accept()
        state.clients.add(ws)
        logger.info("Client connected (%d total)", len(state.clients))

        try:
            chain = state.dispatcher.chain
            await ws.send_json({
                "type": "connected",
                "bindings": chain.bindings,
                "screen": list(chain.screen_size()),
            })
            while True:
                frame = await ws.receive()
                if frame["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(frame.get("code", 1000))
                # text or binary, both carry the same JSON
                state.dispatcher.handle_raw(frame.get("text") or frame.get("bytes") or "")
        except WebSocketDisconnect:
            pass
        finally:
            state.clients.discard(ws)
            logger.info("Client disconnected (%d total)", len(state.clients))

    app.add_api_websocket_route("/ws", websocket_endpoint)
    app.add_api_websocket_route("/", websocket_endpoint)

    return app


def main():
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="GestureFlow dispatcher server")
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--host", default=None, help="Bind address")
    parser.add_argument("--port", type=int, default=None, help="Port")
    args = parser.parse_args()

    config = load_config(args.config)
    host = args.host or config.dispatcher.host
    port = args.port or config.dispatcher.port
    logging.basicConfig(level=config.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(create_app(config), host=host, port=port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
