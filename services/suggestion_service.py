"""
Suggestion Board Service.

Feature suggestions with a toggle vote: voting on a suggestion you already
support withdraws the vote. Suggestions never expire.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select

from core.database import Database
from core.exceptions import NotFoundError, StorageError, ValidationError
from core.models import Suggestion, SuggestionVote, ToggleResult, now_ms
from services.broadcast_service import NEW_SUGGESTION, UPDATE_SUGGESTION, BroadcastHub

logger = logging.getLogger(__name__)


class SuggestionService:
    """Create, list and toggle-vote feature suggestions"""

    def __init__(
        self,
        database: Database,
        hub: BroadcastHub,
        title_min_length: int = 5,
        clock=now_ms,
    ):
        self.database = database
        self.hub = hub
        self.title_min_length = title_min_length
        self.clock = clock

    async def _commit(self, session, operation: str) -> None:
        try:
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Commit failed during {operation}: {e}")
            raise StorageError(operation, str(e))

    async def create_suggestion(
        self, title: Optional[str], description: Optional[str], identity: str
    ) -> Suggestion:
        title = (title or "").strip()
        if len(title) < self.title_min_length:
            raise ValidationError(
                "title", title, f"Must be at least {self.title_min_length} characters"
            )

        suggestion = Suggestion(
            id=str(uuid.uuid4()),
            title=title,
            description=description.strip() if description and description.strip() else None,
            votes=0,
            created_at=self.clock(),
            creator_fingerprint=identity,
        )

        async with self.database.write_lock:
            async with self.database.session() as session:
                session.add(suggestion)
                await self._commit(session, "create_suggestion")

        logger.info(f"Suggestion created: {suggestion.title}")
        await self.hub.broadcast(NEW_SUGGESTION, {"suggestion": suggestion.model_dump()})
        return suggestion

    async def toggle_vote(self, suggestion_id: str, identity: str) -> ToggleResult:
        """Add the identity's vote, or remove it if already present"""
        async with self.database.write_lock:
            async with self.database.session() as session:
                suggestion = await session.get(Suggestion, suggestion_id)
                if suggestion is None:
                    raise NotFoundError("suggestion", suggestion_id)

                existing = await session.get(SuggestionVote, (suggestion_id, identity))
                if existing is not None:
                    await session.delete(existing)
                    suggestion.votes -= 1
                    voted = False
                else:
                    session.add(SuggestionVote(suggestion_id=suggestion_id, fingerprint=identity))
                    suggestion.votes += 1
                    voted = True

                session.add(suggestion)
                await self._commit(session, "toggle_vote")
                snapshot = suggestion.model_dump()

        await self.hub.broadcast(UPDATE_SUGGESTION, {"suggestion": snapshot})
        return ToggleResult(votes=snapshot["votes"], voted=voted)

    async def has_voted(self, suggestion_id: str, identity: str) -> bool:
        async with self.database.session() as session:
            existing = await session.get(SuggestionVote, (suggestion_id, identity))
            return existing is not None

    async def list_suggestions(self) -> List[Suggestion]:
        """Most votes first, newest first among equals"""
        statement = select(Suggestion).order_by(
            col(Suggestion.votes).desc(), col(Suggestion.created_at).desc()
        )
        async with self.database.session() as session:
            result = await session.exec(statement)
            return list(result.all())
