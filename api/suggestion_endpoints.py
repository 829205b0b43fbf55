"""
API Endpoints for the Suggestion Board.

- `GET /api/suggestions`: All suggestions, most voted first.
- `POST /api/suggestions`: Create a suggestion.
- `POST /api/suggestions/{suggestion_id}/vote`: Toggle the caller's vote.
- `GET /api/suggestions/{suggestion_id}/vote`: Whether the caller voted.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.models import Suggestion
from services.suggestion_service import SuggestionService
from .dependencies import get_identity, get_suggestion_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/suggestions", tags=["Suggestions"])


class SuggestionRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class ToggleVoteResponse(BaseModel):
    success: bool = True
    votes: int
    voted: bool


class VotedResponse(BaseModel):
    voted: bool


@router.get("", response_model=List[Suggestion])
async def list_suggestions(
    suggestion_svc: SuggestionService = Depends(get_suggestion_service),
):
    return await suggestion_svc.list_suggestions()


@router.post("", response_model=Suggestion)
async def create_suggestion(
    request: SuggestionRequest,
    identity: str = Depends(get_identity),
    suggestion_svc: SuggestionService = Depends(get_suggestion_service),
):
    return await suggestion_svc.create_suggestion(request.title, request.description, identity)


@router.post("/{suggestion_id}/vote", response_model=ToggleVoteResponse)
async def toggle_suggestion_vote(
    suggestion_id: str,
    identity: str = Depends(get_identity),
    suggestion_svc: SuggestionService = Depends(get_suggestion_service),
):
    """Vote for a suggestion, or withdraw an existing vote"""
    result = await suggestion_svc.toggle_vote(suggestion_id, identity)
    return ToggleVoteResponse(votes=result.votes, voted=result.voted)


@router.get("/{suggestion_id}/vote", response_model=VotedResponse)
async def get_my_suggestion_vote(
    suggestion_id: str,
    identity: str = Depends(get_identity),
    suggestion_svc: SuggestionService = Depends(get_suggestion_service),
):
    return VotedResponse(voted=await suggestion_svc.has_voted(suggestion_id, identity))
