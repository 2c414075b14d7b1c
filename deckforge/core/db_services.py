"""Database services for decks and user accounts."""

from __future__ import annotations

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import delete, func, select
from sqlalchemy.orm import selectinload

from deckforge.core.config import settings
from deckforge.core.db.schemas.auth import User
from deckforge.core.db.schemas.decks import Deck, DeckCard
from deckforge.modules.decks.models import (
    DeckMetadata,
    DeckRecord,
    Density,
    ValidatedCard,
)


def _to_record(deck: Deck) -> DeckRecord:
    return DeckRecord(
        id=deck.id,
        owner_id=deck.user_id,
        name=deck.name,
        pdf_file_name=deck.pdf_file_name,
        density=Density(deck.density),
        cards=[
            ValidatedCard(front=c.front, back=c.back, tags=c.tags or [])
            for c in deck.cards
        ],
        metadata=DeckMetadata(**deck.generation_meta) if deck.generation_meta else None,
        created_at=deck.created_at,
    )


class SqlDeckRepository:
    """Stores decks and their ordered cards; one session per operation."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def create_deck(
        self,
        owner_id: int,
        name: str,
        cards: list[ValidatedCard],
        density: Density,
        metadata: DeckMetadata,
        *,
        pdf_file_name: str,
    ) -> DeckRecord:
        """Insert the deck and all its cards in one transaction."""
        async with self.session_maker() as session:
            db_deck = Deck(
                user_id=owner_id,
                name=name,
                pdf_file_name=pdf_file_name,
                density=density.value,
                generation_meta=metadata.model_dump(),
            )
            db_deck.cards = [
                DeckCard(front=c.front, back=c.back, tags=list(c.tags), order_index=i)
                for i, c in enumerate(cards)
            ]
            session.add(db_deck)
            await session.commit()
            return await self._load(session, db_deck.id, owner_id)

    async def _load(
        self, session: AsyncSession, deck_id: int, owner_id: int
    ) -> Optional[DeckRecord]:
        result = await session.execute(
            select(Deck)
            .options(selectinload(Deck.cards))
            .where(Deck.id == deck_id, Deck.user_id == owner_id)
            .execution_options(populate_existing=True)
        )
        deck = result.scalar_one_or_none()
        return _to_record(deck) if deck else None

    async def list_decks(
        self, owner_id: int, *, limit: int = 50, skip: int = 0
    ) -> tuple[list[DeckRecord], int]:
        async with self.session_maker() as session:
            rows = await session.execute(
                select(Deck)
                .options(selectinload(Deck.cards))
                .where(Deck.user_id == owner_id)
                .order_by(Deck.created_at.desc(), Deck.id.desc())
                .offset(skip)
                .limit(limit)
            )
            decks = [_to_record(d) for d in rows.scalars().all()]
            total = (
                await session.execute(
                    select(func.count(Deck.id)).where(Deck.user_id == owner_id)
                )
            ).scalar() or 0
            return decks, total

    async def get_deck(self, deck_id: int, owner_id: int) -> Optional[DeckRecord]:
        async with self.session_maker() as session:
            return await self._load(session, deck_id, owner_id)

    async def rename_deck(
        self, deck_id: int, owner_id: int, name: str
    ) -> Optional[DeckRecord]:
        async with self.session_maker() as session:
            row = await session.execute(
                select(Deck).where(Deck.id == deck_id, Deck.user_id == owner_id)
            )
            deck = row.scalar_one_or_none()
            if not deck:
                return None
            deck.name = name
            await session.commit()
            return await self._load(session, deck_id, owner_id)

    async def delete_deck(self, deck_id: int, owner_id: int) -> bool:
        async with self.session_maker() as session:
            row = await session.execute(
                select(Deck).where(Deck.id == deck_id, Deck.user_id == owner_id)
            )
            deck = row.scalar_one_or_none()
            if not deck:
                return False
            await session.execute(delete(DeckCard).where(DeckCard.deck_id == deck_id))
            await session.execute(delete(Deck).where(Deck.id == deck_id))
            await session.commit()
            return True


class UserAccountService:
    """Account rows that hold credits and monthly quota."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_user(
        self, *, email: str, plan: str = "free", credits: Optional[int] = None
    ) -> User:
        user = User(
            email=email,
            plan=plan,
            credits=settings.billing.default_credits if credits is None else credits,
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def get_user(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()
