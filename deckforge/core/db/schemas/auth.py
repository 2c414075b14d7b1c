from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from deckforge.core.db.base import Base

if TYPE_CHECKING:
    from .decks import Deck


class User(Base):
    """Account row; authentication lives upstream, this only holds balances."""

    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    plan: Mapped[str] = mapped_column(String(32), nullable=False, default="free")

    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    monthly_pdf_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # "YYYY-MM" of the month monthly_pdf_count belongs to
    pdf_usage_month: Mapped[str] = mapped_column(String(7), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    decks: Mapped[list["Deck"]] = relationship(
        "Deck", back_populates="user", cascade="all, delete-orphan"
    )


__all__ = ["User"]
