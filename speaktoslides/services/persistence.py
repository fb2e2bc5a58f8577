"""Database-backed persistence gateway for conversations, decks and usage.

Every public method runs in its own transaction and returns immutable
domain snapshots, never ORM rows. Mutations that must not race (build
claims, view counts, active-conversation creation) are expressed as
conditional statements checked at the database.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from speaktoslides.core.database import Database
from speaktoslides.core.exceptions import NotFoundError
from speaktoslides.database.models import (
    ConversationMessageRecord,
    ConversationRecord,
    DeckRecord,
    UsageRecord,
)
from speaktoslides.domain.conversation import (
    Conversation,
    ConversationMessage,
    ConversationState,
    MessageRole,
)
from speaktoslides.domain.deck import Deck
from speaktoslides.domain.outline import SlideOutline

logger = logging.getLogger(__name__)

_UNSET: Any = object()


@dataclass(frozen=True)
class StoredDeck:
    """A deck row: the Deck value plus storage metadata."""

    id: str
    deck: Deck
    html_content: str
    owner_id: Optional[str]
    prompt: Optional[str]
    is_public: bool
    is_pro: bool
    view_count: int
    conversation_id: Optional[str]
    created_at: datetime
    updated_at: datetime

    @property
    def title(self) -> str:
        return self.deck.title

    @property
    def slide_count(self) -> int:
        return self.deck.slide_count


class PersistenceGateway:
    """CRUD and conditional updates over the SQLAlchemy models."""

    def __init__(self, database: Database):
        self.database = database

    # Conversations
    def get_or_create_conversation(self, chat_handle: str, channel: str = "telegram") -> Conversation:
        """Return the active conversation for ``chat_handle``, creating one if needed.

        The most recent active row wins. A concurrent create that loses the
        race on the active-handle unique index re-reads the winner's row.
        """
        existing = self.get_active_conversation(chat_handle)
        if existing is not None:
            return existing

        try:
            with self.database.session() as db:
                record = ConversationRecord(
                    chat_handle=chat_handle,
                    channel=channel,
                    state=ConversationState.GATHERING.value,
                )
                db.add(record)
                db.flush()
                conversation = self._to_conversation(record)
        except IntegrityError:
            logger.info(
                "Concurrent conversation create, using existing",
                extra={"chat_handle": chat_handle},
            )
            existing = self.get_active_conversation(chat_handle)
            if existing is None:
                raise
            return existing

        logger.info(
            "Created conversation",
            extra={"conversation_id": conversation.id, "chat_handle": chat_handle},
        )
        return conversation

    def get_active_conversation(self, chat_handle: str) -> Optional[Conversation]:
        with self.database.session() as db:
            record = self._active_query(db, chat_handle).first()
            return self._to_conversation(record) if record else None

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        with self.database.session() as db:
            record = db.get(ConversationRecord, conversation_id)
            return self._to_conversation(record) if record else None

    def append_message(self, conversation_id: str, role: MessageRole, content: str) -> None:
        """Append one message to a conversation's history."""
        with self.database.session() as db:
            record = self._get_conversation_or_raise(db, conversation_id)
            db.add(
                ConversationMessageRecord(
                    conversation_id=conversation_id,
                    role=MessageRole(role).value,
                    content=content,
                )
            )
            record.updated_at = datetime.utcnow()

    def update_conversation(
        self,
        conversation_id: str,
        state: Optional[ConversationState] = _UNSET,
        outline: Optional[SlideOutline] = _UNSET,
        deck_id: Optional[str] = _UNSET,
    ) -> Conversation:
        """Update the given fields; omitted fields are left alone.

        Leaving the building state clears the build lease.

        Raises:
            NotFoundError: If the conversation doesn't exist
        """
        with self.database.session() as db:
            record = self._get_conversation_or_raise(db, conversation_id)

            if state is not _UNSET:
                record.state = ConversationState(state).value
                if record.state != ConversationState.BUILDING.value:
                    record.building_started_at = None
            if outline is not _UNSET:
                record.outline = outline.to_dict() if outline is not None else None
            if deck_id is not _UNSET:
                record.deck_id = deck_id
            record.updated_at = datetime.utcnow()

            db.flush()
            return self._to_conversation(record)

    def try_begin_build(self, conversation_id: str, lease_seconds: int) -> bool:
        """Atomically move a conversation into ``building``.

        Succeeds unless the conversation is done, or another build holds a
        lease younger than ``lease_seconds``.

        Returns:
            True if this caller now owns the build
        """
        now = datetime.utcnow()
        cutoff = now - timedelta(seconds=lease_seconds)

        with self.database.session() as db:
            claimed = (
                db.query(ConversationRecord)
                .filter(
                    ConversationRecord.id == conversation_id,
                    ConversationRecord.state != ConversationState.DONE.value,
                    or_(
                        ConversationRecord.state != ConversationState.BUILDING.value,
                        ConversationRecord.building_started_at.is_(None),
                        ConversationRecord.building_started_at < cutoff,
                    ),
                )
                .update(
                    {
                        ConversationRecord.state: ConversationState.BUILDING.value,
                        ConversationRecord.building_started_at: now,
                        ConversationRecord.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )

        logger.info(
            "Build claim",
            extra={"conversation_id": conversation_id, "claimed": claimed == 1},
        )
        return claimed == 1

    def release_stale_build(
        self,
        conversation_id: str,
        lease_seconds: int,
        revert_to: ConversationState = ConversationState.CONFIRMING,
    ) -> bool:
        """Revert a build whose lease has expired.

        Returns:
            True if a stale build was reverted
        """
        now = datetime.utcnow()
        cutoff = now - timedelta(seconds=lease_seconds)

        with self.database.session() as db:
            reverted = (
                db.query(ConversationRecord)
                .filter(
                    ConversationRecord.id == conversation_id,
                    ConversationRecord.state == ConversationState.BUILDING.value,
                    or_(
                        ConversationRecord.building_started_at.is_(None),
                        ConversationRecord.building_started_at < cutoff,
                    ),
                )
                .update(
                    {
                        ConversationRecord.state: revert_to.value,
                        ConversationRecord.building_started_at: None,
                        ConversationRecord.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )

        if reverted:
            logger.warning(
                "Reverted stale build",
                extra={"conversation_id": conversation_id, "revert_to": revert_to.value},
            )
        return reverted == 1

    def reset_conversations(self, chat_handle: str) -> int:
        """Mark every active conversation for ``chat_handle`` as done.

        Returns:
            Number of conversations ended
        """
        with self.database.session() as db:
            count = (
                db.query(ConversationRecord)
                .filter(
                    ConversationRecord.chat_handle == chat_handle,
                    ConversationRecord.state != ConversationState.DONE.value,
                )
                .update(
                    {
                        ConversationRecord.state: ConversationState.DONE.value,
                        ConversationRecord.building_started_at: None,
                        ConversationRecord.updated_at: datetime.utcnow(),
                    },
                    synchronize_session=False,
                )
            )

        logger.info("Reset conversations", extra={"chat_handle": chat_handle, "count": count})
        return count

    # Decks
    def insert_deck(
        self,
        deck: Deck,
        html_content: str,
        prompt: Optional[str] = None,
        owner_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
        is_pro: bool = False,
    ) -> str:
        """Store a new deck and return its id."""
        with self.database.session() as db:
            record = DeckRecord(
                owner_id=owner_id,
                title=deck.title,
                prompt=prompt,
                theme=deck.theme.value,
                slides_json=deck.slides_as_dicts(),
                slide_count=deck.slide_count,
                html_content=html_content,
                is_pro=is_pro,
                conversation_id=conversation_id,
            )
            db.add(record)
            db.flush()
            deck_id = record.id

        logger.info(
            "Stored deck",
            extra={"deck_id": deck_id, "slide_count": deck.slide_count, "conversation_id": conversation_id},
        )
        return deck_id

    def get_deck(self, deck_id: str) -> Optional[StoredDeck]:
        with self.database.session() as db:
            record = db.get(DeckRecord, deck_id)
            return self._to_stored_deck(record) if record else None

    def update_deck(self, deck_id: str, deck: Deck, html_content: str) -> StoredDeck:
        """Replace a deck's slides, title and rendered document in one transaction.

        Raises:
            NotFoundError: If the deck doesn't exist
        """
        with self.database.session() as db:
            record = db.get(DeckRecord, deck_id)
            if record is None:
                raise NotFoundError(f"Deck not found: {deck_id}")

            record.title = deck.title
            record.theme = deck.theme.value
            record.slides_json = deck.slides_as_dicts()
            record.slide_count = deck.slide_count
            record.html_content = html_content
            record.updated_at = datetime.utcnow()
            db.flush()

            logger.info(
                "Updated deck",
                extra={"deck_id": deck_id, "slide_count": deck.slide_count},
            )
            return self._to_stored_deck(record)

    def increment_view_count(self, deck_id: str) -> None:
        with self.database.session() as db:
            db.query(DeckRecord).filter(DeckRecord.id == deck_id).update(
                {DeckRecord.view_count: DeckRecord.view_count + 1},
                synchronize_session=False,
            )

    # Usage
    @staticmethod
    def _usage_count(db: Session, user_id: Optional[str], ip_address: Optional[str]) -> int:
        query = db.query(func.count(UsageRecord.id))
        if user_id:
            query = query.filter(UsageRecord.user_id == user_id)
        elif ip_address:
            query = query.filter(and_(UsageRecord.ip_address == ip_address, UsageRecord.user_id.is_(None)))
        else:
            return 0
        return query.scalar() or 0

    def count_usage(self, user_id: Optional[str], ip_address: Optional[str]) -> int:
        """Generations recorded so far for the user, or for the IP among anonymous rows."""
        with self.database.session() as db:
            return self._usage_count(db, user_id, ip_address)

    def record_usage(self, user_id: Optional[str], ip_address: Optional[str]) -> None:
        with self.database.session() as db:
            db.add(UsageRecord(user_id=user_id, ip_address=ip_address))

    def record_usage_and_count_prior(self, user_id: Optional[str], ip_address: Optional[str]) -> int:
        """Record one deck generation and return how many came before it.

        Signed-in callers are counted by user id; anonymous callers by IP
        address among anonymous rows.
        """
        with self.database.session() as db:
            prior = self._usage_count(db, user_id, ip_address)
            db.add(UsageRecord(user_id=user_id, ip_address=ip_address))

        return prior

    # Helpers
    @staticmethod
    def _active_query(db: Session, chat_handle: str):
        return (
            db.query(ConversationRecord)
            .filter(
                ConversationRecord.chat_handle == chat_handle,
                ConversationRecord.state != ConversationState.DONE.value,
            )
            .order_by(ConversationRecord.updated_at.desc(), ConversationRecord.created_at.desc())
        )

    @staticmethod
    def _get_conversation_or_raise(db: Session, conversation_id: str) -> ConversationRecord:
        record = db.get(ConversationRecord, conversation_id)
        if record is None:
            raise NotFoundError(f"Conversation not found: {conversation_id}")
        return record

    @staticmethod
    def _to_conversation(record: ConversationRecord) -> Conversation:
        return Conversation(
            id=record.id,
            chat_handle=record.chat_handle,
            channel=record.channel,
            state=ConversationState(record.state),
            messages=tuple(
                ConversationMessage(
                    role=MessageRole(m.role),
                    content=m.content,
                    timestamp=m.created_at,
                )
                for m in record.messages
            ),
            outline=SlideOutline.model_validate(record.outline) if record.outline else None,
            deck_id=record.deck_id,
            building_started_at=record.building_started_at,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    @staticmethod
    def _to_stored_deck(record: DeckRecord) -> StoredDeck:
        return StoredDeck(
            id=record.id,
            deck=Deck.from_stored(record.slides_json, record.theme, record.title),
            html_content=record.html_content,
            owner_id=record.owner_id,
            prompt=record.prompt,
            is_public=record.is_public,
            is_pro=record.is_pro,
            view_count=record.view_count,
            conversation_id=record.conversation_id,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
