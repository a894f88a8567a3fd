"""WebSocket router - /ws endpoint."""

from fastapi import FastAPI, WebSocket


def register(app: FastAPI):
    @app.websocket("/ws")
    async def ws_dashboard(ws: WebSocket):
        srv = getattr(app.state, "server", None)
        if srv is None or srv.broadcaster is None:
            await ws.close(code=1013, reason="Service unavailable")
            return
        await srv.broadcaster.handle_connection(ws)
