"""
Bubble Lifecycle Engine.

This module provides the `BubbleService`, which owns every rule about how a
bubble is created, scored, kept visible and finally expired. It is the only
writer of the `bubbles` and `votes` tables.

Key Components:
- Creation: `create_bubble` validates user input and stores a new bubble with
  a zero score; `import_bot_bubble` is the importer's path, which skips user
  validation, attributes the bubble to the reserved bot identity and refuses
  duplicates of an existing bot bubble.
- Voting: `vote` implements the directional vote state machine. A first vote
  applies its value to the score, a reversed vote applies twice its value and
  overwrites the stored vote, a repeated vote is rejected and creators may not
  vote on their own bubbles. Every accepted vote refreshes `last_interaction`.
- Visibility: `list_visible` returns user bubbles touched within the retention
  window plus bot bubbles whose event has not ended.
- Expiry: `sweep_expired` deletes everything `list_visible` no longer returns,
  together with the votes on those bubbles.
- Distance pruning: `prune_distant` removes user bubbles far from the map
  centre.

Architectural Design:
- Incremental Score: `score` is adjusted by the vote delta on every vote and
  never recomputed, so listing the map needs no aggregation.
- Engagement-Based Retention: votes push `last_interaction` forward, so popular
  bubbles outlive quiet ones.
- Serialized Mutations: every mutating method holds the database write lock
  from its first read to its commit. Broadcasts happen after the lock is
  released.
- Injectable Clock: `clock` returns epoch milliseconds and defaults to the
  wall clock, which lets tests move time without sleeping.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from sqlalchemy import and_, delete, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select

from core.database import Database
from core.exceptions import (
    DuplicateVoteError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from core.models import (
    BOT_FINGERPRINT,
    Bubble,
    EventCandidate,
    Vote,
    VoteResult,
    now_ms,
)
from providers.media_provider import StoredMedia
from services.broadcast_service import (
    CLEANUP,
    NEW_BUBBLE,
    UPDATE_BUBBLE,
    BroadcastHub,
)

logger = logging.getLogger(__name__)

VALID_VOTES = (-1, 1)
EARTH_RADIUS_KM = 6371.0


@dataclass
class SweepResult:
    user_bubbles: int = 0
    bot_bubbles: int = 0
    votes: int = 0

    @property
    def total_bubbles(self) -> int:
        return self.user_bubbles + self.bot_bubbles


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres"""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _parse_coordinate(field: str, value: Any, limit: float) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(field, value, "Missing required field")
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise ValidationError(field, value, "Must be a number")
    if math.isnan(parsed) or not -limit <= parsed <= limit:
        raise ValidationError(field, value, f"Must be between -{limit:g} and {limit:g}")
    return parsed


class BubbleService:
    """Creation, voting, visibility and expiry of bubbles"""

    def __init__(
        self,
        database: Database,
        hub: BroadcastHub,
        retention_hours: int = 24,
        dedup_epsilon: float = 0.001,
        clock: Callable[[], int] = now_ms,
    ):
        self.database = database
        self.hub = hub
        self.retention_ms = retention_hours * 60 * 60 * 1000
        self.dedup_epsilon = dedup_epsilon
        self.clock = clock

    async def _commit(self, session, operation: str) -> None:
        try:
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Commit failed during {operation}: {e}")
            raise StorageError(operation, str(e))

    # Creation

    async def create_bubble(
        self,
        lat: Any,
        lng: Any,
        title: Optional[str],
        identity: str,
        caption: Optional[str] = None,
        media: Optional[StoredMedia] = None,
    ) -> Bubble:
        """
        Create a user bubble.

        Raises:
            ValidationError: lat, lng or title missing or malformed
        """
        parsed_lat = _parse_coordinate("lat", lat, 90)
        parsed_lng = _parse_coordinate("lng", lng, 180)
        if not title or not title.strip():
            raise ValidationError("title", title, "Missing required field")

        now = self.clock()
        bubble = Bubble(
            id=str(uuid.uuid4()),
            lat=parsed_lat,
            lng=parsed_lng,
            title=title.strip(),
            caption=caption or "",
            media_url=media.url if media else None,
            media_type=media.media_type if media else None,
            score=0,
            created_at=now,
            last_interaction=now,
            creator_fingerprint=identity,
        )

        async with self.database.write_lock:
            async with self.database.session() as session:
                session.add(bubble)
                await self._commit(session, "create_bubble")

        logger.info(
            f"Bubble created: {bubble.title}",
            extra={"bubble_id": bubble.id, "has_media": media is not None},
        )
        await self.hub.broadcast(NEW_BUBBLE, {"bubble": bubble.model_dump()})
        return bubble

    async def find_duplicate_bot_bubble(
        self, session, candidate: EventCandidate
    ) -> Optional[Bubble]:
        """Existing bot bubble with the same title and source at about the same spot"""
        statement = select(Bubble).where(
            Bubble.title == candidate.title,
            Bubble.bot_source == candidate.bot_source,
            func.abs(Bubble.lat - candidate.lat) < self.dedup_epsilon,
            func.abs(Bubble.lng - candidate.lng) < self.dedup_epsilon,
        )
        result = await session.exec(statement)
        return result.first()

    async def import_bot_bubble(self, candidate: EventCandidate) -> Optional[Bubble]:
        """
        Store a bot bubble unless an equivalent one already exists.

        Returns:
            The new bubble, or None if the candidate was a duplicate
        """
        async with self.database.write_lock:
            async with self.database.session() as session:
                if await self.find_duplicate_bot_bubble(session, candidate):
                    return None

                now = self.clock()
                bubble = Bubble(
                    id=str(uuid.uuid4()),
                    lat=candidate.lat,
                    lng=candidate.lng,
                    title=candidate.title,
                    caption=candidate.caption,
                    score=0,
                    created_at=now,
                    last_interaction=now,
                    creator_fingerprint=BOT_FINGERPRINT,
                    bot_source=candidate.bot_source,
                    event_url=candidate.event_url,
                    event_date=candidate.event_date,
                    event_end_date=candidate.event_end_date,
                )
                session.add(bubble)
                await self._commit(session, "import_bot_bubble")

        logger.debug(f"Imported {bubble.bot_source} event: {bubble.title}")
        await self.hub.broadcast(NEW_BUBBLE, {"bubble": bubble.model_dump()})
        return bubble

    # Voting

    async def vote(self, bubble_id: str, identity: str, value: Any) -> VoteResult:
        """
        Cast or reverse a vote.

        Raises:
            ValidationError: value is not -1 or +1
            NotFoundError: bubble does not exist
            ForbiddenError: identity created the bubble
            DuplicateVoteError: identity already voted this way
        """
        if type(value) is not int or value not in VALID_VOTES:
            raise ValidationError(
                "vote", value, "Vote must be 1 or -1", error_code="INVALID_VOTE"
            )

        async with self.database.write_lock:
            async with self.database.session() as session:
                bubble = await session.get(Bubble, bubble_id)
                if bubble is None:
                    raise NotFoundError("bubble", bubble_id)

                if bubble.creator_fingerprint == identity:
                    raise ForbiddenError(bubble_id)

                existing = await session.get(Vote, (bubble_id, identity))
                if existing is not None:
                    if existing.vote == value:
                        raise DuplicateVoteError(bubble_id, value)
                    # Undo the old vote and apply the new one in one step
                    delta = 2 * value
                    existing.vote = value
                    session.add(existing)
                else:
                    delta = value
                    session.add(Vote(bubble_id=bubble_id, fingerprint=identity, vote=value))

                bubble.score += delta
                bubble.last_interaction = self.clock()
                session.add(bubble)
                await self._commit(session, "vote")
                snapshot = bubble.model_dump()

        logger.info(
            f"Vote {value:+d} on bubble {bubble_id}, score now {snapshot['score']}",
            extra={"bubble_id": bubble_id, "delta": delta},
        )
        await self.hub.broadcast(UPDATE_BUBBLE, {"bubble": snapshot})
        return VoteResult(new_score=snapshot["score"], your_vote=value)

    async def get_vote(self, bubble_id: str, identity: str) -> int:
        """The identity's current vote on a bubble: -1, 0 or 1"""
        async with self.database.session() as session:
            existing = await session.get(Vote, (bubble_id, identity))
            return existing.vote if existing else 0

    async def get_bubble(self, bubble_id: str) -> Bubble:
        async with self.database.session() as session:
            bubble = await session.get(Bubble, bubble_id)
            if bubble is None:
                raise NotFoundError("bubble", bubble_id)
            return bubble

    # Visibility and expiry

    def _visible_user(self, now: int):
        return and_(
            col(Bubble.bot_source).is_(None),
            col(Bubble.last_interaction) > now - self.retention_ms,
        )

    def _visible_bot(self, now: int):
        return and_(
            col(Bubble.bot_source).is_not(None),
            or_(col(Bubble.event_end_date).is_(None), col(Bubble.event_end_date) > now),
        )

    async def list_visible(self, now: Optional[int] = None) -> List[Bubble]:
        """User bubbles inside the retention window plus unexpired bot bubbles"""
        now = self.clock() if now is None else now
        statement = (
            select(Bubble)
            .where(or_(self._visible_user(now), self._visible_bot(now)))
            .order_by(col(Bubble.created_at))
        )
        async with self.database.session() as session:
            result = await session.exec(statement)
            return list(result.all())

    async def sweep_expired(self, now: Optional[int] = None) -> SweepResult:
        """
        Delete bubbles that are no longer visible, and their votes.
        Emits a single cleanup event when anything was removed.
        """
        now = self.clock() if now is None else now
        cutoff = now - self.retention_ms

        async with self.database.write_lock:
            async with self.database.session() as session:
                user_result = await session.exec(
                    delete(Bubble).where(
                        col(Bubble.bot_source).is_(None),
                        col(Bubble.last_interaction) <= cutoff,
                    )
                )
                bot_result = await session.exec(
                    delete(Bubble).where(
                        col(Bubble.bot_source).is_not(None),
                        col(Bubble.event_end_date).is_not(None),
                        col(Bubble.event_end_date) <= now,
                    )
                )
                votes_result = await session.exec(
                    delete(Vote).where(col(Vote.bubble_id).not_in(select(Bubble.id)))
                )
                await self._commit(session, "sweep_expired")

        result = SweepResult(
            user_bubbles=user_result.rowcount or 0,
            bot_bubbles=bot_result.rowcount or 0,
            votes=votes_result.rowcount or 0,
        )

        if result.total_bubbles > 0:
            logger.info(
                f"Cleaned up {result.user_bubbles} old user bubbles, "
                f"{result.bot_bubbles} past events, {result.votes} votes"
            )
            await self.hub.broadcast(CLEANUP)
        return result

    async def prune_distant(
        self, center_lat: float, center_lng: float, max_distance_km: float
    ) -> int:
        """Delete user bubbles farther than max_distance_km from the centre"""
        async with self.database.write_lock:
            async with self.database.session() as session:
                result = await session.exec(
                    select(Bubble).where(col(Bubble.bot_source).is_(None))
                )
                distant_ids = [
                    bubble.id
                    for bubble in result.all()
                    if haversine_km(center_lat, center_lng, bubble.lat, bubble.lng)
                    > max_distance_km
                ]

                if distant_ids:
                    await session.exec(
                        delete(Vote).where(col(Vote.bubble_id).in_(distant_ids))
                    )
                    await session.exec(
                        delete(Bubble).where(col(Bubble.id).in_(distant_ids))
                    )
                    await self._commit(session, "prune_distant")

        logger.info(f"Removed {len(distant_ids)} distant bubbles")
        await self.hub.broadcast(CLEANUP)
        return len(distant_ids)
