from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from .config import Settings, get_settings
from .hub import Hub
from .liveness import LivenessMonitor
from .meteors import MeteorScheduler

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    hub = Hub(debug_log_msgs=settings.debug_log_msgs)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        tasks = [
            asyncio.create_task(
                LivenessMonitor(
                    hub,
                    interval_s=settings.heartbeat_interval_s,
                    close_timeout_s=settings.connection_timeout_s,
                ).run()
            )
        ]
        if settings.meteors_enabled:
            tasks.append(
                asyncio.create_task(
                    MeteorScheduler(
                        hub,
                        min_interval_s=settings.meteor_min_interval_s,
                        max_interval_s=settings.meteor_max_interval_s,
                    ).run()
                )
            )
        try:
            yield
        finally:
            for task in tasks:
                task.cancel()
            for task in tasks:
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    app = FastAPI(lifespan=lifespan)
    app.state.hub = hub
    app.state.settings = settings

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "clients": hub.registry.count}

    @app.websocket("/ws")
    async def ws(ws: WebSocket):
        await ws.accept()
        ip = getattr(ws.client, "host", None)
        info = await hub.join(ws, ip)
        if ws not in hub.registry:
            return

        try:
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                text = message.get("text")
                if text is None:
                    logger.warning("binary frame from %s ignored", info.client_id)
                    continue
                await hub.handle_text(ws, text)
                if ws not in hub.registry:
                    # evicted while handling (send failure or liveness)
                    break
        except WebSocketDisconnect as e:
            logger.debug("socket closed: %s (code %s)", info.client_id, e.code)
        except Exception:
            logger.exception("connection handler failed: %s", info.client_id)
        finally:
            await hub.leave(ws)

    return app


app = create_app()
