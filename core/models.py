"""
Core data models for the Bubble Map API

Defines the stored tables (Bubble, Vote, Suggestion, SuggestionVote) and the
typed records passed between the services and the API layer.
Timestamps are epoch milliseconds, as compared by the browser client.
"""

import time
from typing import Optional
from sqlmodel import SQLModel, Field
from pydantic import BaseModel

BOT_FINGERPRINT = "bot"  # Reserved creator identity for imported bubbles


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


class Bubble(SQLModel, table=True):
    """
    A geotagged post. User bubbles have no bot_source; bot bubbles carry the
    tag of the event feed that produced them.
    """

    __tablename__ = "bubbles"

    id: str = Field(primary_key=True, max_length=36)
    lat: float = Field(index=True)
    lng: float = Field(index=True)
    title: str = Field(max_length=255)
    caption: Optional[str] = Field(default=None, max_length=2048)
    media_url: Optional[str] = Field(default=None, max_length=1024)
    media_type: Optional[str] = Field(default=None, max_length=16)  # image, video, audio
    score: int = Field(default=0)
    created_at: int = Field(index=True)
    last_interaction: int = Field(index=True)
    creator_fingerprint: str = Field(max_length=128)
    bot_source: Optional[str] = Field(default=None, max_length=50)
    event_url: Optional[str] = Field(default=None, max_length=1024)
    event_date: Optional[int] = Field(default=None)
    event_end_date: Optional[int] = Field(default=None)

    @property
    def is_bot(self) -> bool:
        return self.bot_source is not None


class Vote(SQLModel, table=True):
    """One vote per (bubble, voter) pair, value -1 or +1"""

    __tablename__ = "votes"

    bubble_id: str = Field(primary_key=True, max_length=36)
    fingerprint: str = Field(primary_key=True, max_length=128)
    vote: int


class Suggestion(SQLModel, table=True):
    """Feature suggestion. Never expires."""

    __tablename__ = "suggestions"

    id: str = Field(primary_key=True, max_length=36)
    title: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, max_length=4096)
    votes: int = Field(default=0)
    created_at: int = Field(index=True)
    creator_fingerprint: str = Field(max_length=128)


class SuggestionVote(SQLModel, table=True):
    """Presence means the voter currently supports the suggestion"""

    __tablename__ = "suggestion_votes"

    suggestion_id: str = Field(primary_key=True, max_length=36)
    fingerprint: str = Field(primary_key=True, max_length=128)


class EventCandidate(BaseModel):
    """
    Raw event descriptor produced by an event source.
    Not stored directly - the importer turns it into a bot Bubble.
    """

    title: str
    lat: float
    lng: float
    caption: str = ""
    bot_source: str
    event_url: Optional[str] = None
    event_date: Optional[int] = None
    event_end_date: Optional[int] = None


class Venue(BaseModel):
    """A venue whose coordinates have already been resolved"""

    name: str
    lat: float
    lng: float


class VoteResult(BaseModel):
    new_score: int
    your_vote: int


class ToggleResult(BaseModel):
    votes: int
    voted: bool
