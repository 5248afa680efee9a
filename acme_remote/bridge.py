import asyncio
import logging
from typing import Optional, Set
from contextlib import asynccontextmanager
from acme_remote.engine import SyncEngine
from acme_remote.models.player import PlayerModel
from acme_remote.models.common import PROTOCOL_REVISION
from acme_remote.errors import SessionClosedError, ValidationError
from fastapi import Body, FastAPI, HTTPException, WebSocket, WebSocketDisconnect


logger = logging.getLogger(__name__)


def state_payload(engine: SyncEngine, state: Optional[PlayerModel] = None) -> dict:
    state = state or engine.current_state()
    return {
        "status": engine.status.value,
        "reason": engine.status_reason,
        "protocol": PROTOCOL_REVISION,
        "state": state.model_dump(mode="json"),
        "outstanding": engine.ledger.outstanding,
        "pending": engine.pending
    }


def create_app(engine: SyncEngine, manage_engine: bool = True) -> FastAPI:
    """
    Тонкий HTTP/WebSocket слой поверх SyncEngine для UI.
    manage_engine=False - движком управляет вызывающий код (тесты, встраивание).
    """
    connected_websockets: Set[WebSocket] = set()

    async def broadcast(state: PlayerModel):
        if not connected_websockets:
            return
        msg = state_payload(engine, state)
        dead_sockets = set()
        for ws in list(connected_websockets):
            try:
                await asyncio.wait_for(ws.send_json(msg), timeout=1.5)
            except Exception as e:
                logger.warning(f"Failed to send update to WS {id(ws)}: {e}")
                dead_sockets.add(ws)
        connected_websockets.difference_update(dead_sockets)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine.on_receive = broadcast
        if manage_engine:
            logger.info("Starting remote control bridge...")
            await engine.start()
        yield
        if manage_engine:
            logger.info("Shutting down remote control bridge...")
            await engine.close()

    app = FastAPI(lifespan=lifespan)
    app.state.engine = engine

    @app.get("/state")
    async def get_state():
        return state_payload(engine)

    @app.post("/control/{op}")
    async def control(op: str, fields: Optional[dict] = Body(default=None)):
        try:
            code = engine.issue_command(op, **(fields or {}))
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except SessionClosedError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return {"code": code, "status": engine.status.value}

    @app.post("/reconnect")
    async def reconnect():
        await engine.session.reconnect()
        return {"status": engine.status.value}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        connected_websockets.add(websocket)
        logger.info(f"WS client connected ({len(connected_websockets)} total)")

        try:
            await websocket.send_json(state_payload(engine))
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("WS client disconnected")
        finally:
            connected_websockets.discard(websocket)

    return app
