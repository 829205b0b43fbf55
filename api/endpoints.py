"""
API Endpoints for Bubbles.

This module defines the REST and WebSocket endpoints of the map: listing,
creating and voting on bubbles, the live update channel, and two maintenance
triggers.

Endpoints Provided:
- `GET /api/bubbles`: All currently visible bubbles.
- `POST /api/bubbles`: Create a bubble from a multipart form with an optional
  media attachment.
- `POST /api/bubbles/{bubble_id}/vote`: Cast or reverse a vote.
- `GET /api/bubbles/{bubble_id}/vote`: The caller's current vote.
- `POST /api/scrape`: Run a bot import cycle now.
- `POST /api/cleanup`: Remove user bubbles far from the map centre.
- `/ws`: WebSocket channel that receives `{type, ...}` events.

Architectural Design:
- Dependency Injection: Services come from the container built in the
  application lifespan, and the caller's identity comes from the identity
  provider dependency.
- Error Handling: Services raise `BubbleMapException` subclasses, which the
  error handling middleware turns into status codes and error tags.
"""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from core.exceptions import BubbleMapException
from core.logging_config import log_duration
from core.models import Bubble
from providers.media_provider import LocalMediaStorage
from services.bubble_service import BubbleService
from services.importer_service import BotImporterService
from .dependencies import (
    ServiceContainer,
    get_bubble_service,
    get_container,
    get_identity,
    get_importer,
    get_media_storage,
)

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api", tags=["Bubbles"])
websocket_router = APIRouter(tags=["WebSocket Communication"])


# Request/Response Models
class VoteRequest(BaseModel):
    vote: Any = None


class VoteResponse(BaseModel):
    success: bool = True
    newScore: int
    yourVote: int


class MyVoteResponse(BaseModel):
    vote: int


# REST Endpoints
@router.get("/bubbles", response_model=List[Bubble])
async def list_bubbles(bubble_svc: BubbleService = Depends(get_bubble_service)):
    """Visible bubbles: recent user bubbles and bot events that have not ended"""
    return await bubble_svc.list_visible()


@router.post("/bubbles", response_model=Bubble)
async def create_bubble(
    lat: Optional[str] = Form(None),
    lng: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    caption: Optional[str] = Form(None),
    media: Optional[UploadFile] = File(None),
    identity: str = Depends(get_identity),
    bubble_svc: BubbleService = Depends(get_bubble_service),
    media_storage: LocalMediaStorage = Depends(get_media_storage),
):
    """Drop a new bubble on the map"""
    stored_media = await media_storage.save(media) if media else None
    try:
        return await bubble_svc.create_bubble(
            lat=lat,
            lng=lng,
            title=title,
            caption=caption,
            identity=identity,
            media=stored_media,
        )
    except BubbleMapException:
        if stored_media:
            media_storage.discard(stored_media)
        raise


@router.post("/bubbles/{bubble_id}/vote", response_model=VoteResponse)
async def vote_on_bubble(
    bubble_id: str,
    request: VoteRequest,
    identity: str = Depends(get_identity),
    bubble_svc: BubbleService = Depends(get_bubble_service),
):
    """Vote +1 or -1 on a bubble; voting the other way reverses the vote"""
    result = await bubble_svc.vote(bubble_id, identity, request.vote)
    return VoteResponse(newScore=result.new_score, yourVote=result.your_vote)


@router.get("/bubbles/{bubble_id}/vote", response_model=MyVoteResponse)
async def get_my_vote(
    bubble_id: str,
    identity: str = Depends(get_identity),
    bubble_svc: BubbleService = Depends(get_bubble_service),
):
    """The caller's vote on a bubble: -1, 0 or 1"""
    return MyVoteResponse(vote=await bubble_svc.get_vote(bubble_id, identity))


@router.post("/scrape")
@log_duration(logger)
async def trigger_import(importer: BotImporterService = Depends(get_importer)):
    """Run the bot importer now instead of waiting for the next cycle"""
    report = await importer.run_import_cycle()
    return {"success": True, "message": "Scrapers executed", **report.to_dict()}


@router.post("/cleanup")
async def cleanup_distant_bubbles(container: ServiceContainer = Depends(get_container)):
    """Remove user bubbles too far from the map centre"""
    settings = container.settings
    deleted = await container.bubble_service.prune_distant(
        settings.MAP_CENTER_LAT, settings.MAP_CENTER_LNG, settings.MAX_DISTANCE_KM
    )
    return {"success": True, "deleted": deleted}


# WebSocket Endpoint
@websocket_router.websocket("/ws")
async def live_updates(websocket: WebSocket):
    """Push bubble and suggestion events to a connected viewer"""
    hub = websocket.app.state.container.hub

    await websocket.accept()
    hub.register(websocket)

    try:
        # Keep connection alive and answer heartbeats
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.debug("Viewer closed the live channel")
    finally:
        hub.unregister(websocket)
