"""
FastAPI dependencies
"""

from fastapi import HTTPException, Request, WebSocket, status

from app.services.container import Services


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting up")
    return services


def get_ws_services(websocket: WebSocket) -> Services:
    return websocket.app.state.services
