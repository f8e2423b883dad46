"""Dependencies exposing the realtime hub to HTTP routes."""

from typing import Annotated

from fastapi import Depends, Request

from app.sockets.hub import RealtimeHub


def get_realtime(request: Request) -> RealtimeHub:
    """Hub created by the app factory and stored on app.state."""
    return request.app.state.realtime


Realtime = Annotated[RealtimeHub, Depends(get_realtime)]
