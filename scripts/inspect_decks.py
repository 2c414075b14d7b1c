"""Quick DB inspector for decks and balances.

Summarizes deck counts, recent decks with their generation metadata, and the
users holding the most credits.

Usage:
  uv run scripts/inspect_decks.py
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

# Ensure project root is on sys.path so `deckforge` package imports resolve
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload

from deckforge.core.db.base import get_session
from deckforge.core.db.schemas.auth import User
from deckforge.core.db.schemas.decks import Deck, DeckCard


async def main() -> int:
    async for session in get_session():  # get_session is an async generator
        total_decks = (await session.execute(select(func.count(Deck.id)))).scalar() or 0
        total_cards = (
            await session.execute(select(func.count(DeckCard.id)))
        ).scalar() or 0

        print("Decks DB summary:")
        print(f"- Decks: {total_decks}")
        print(f"- Cards: {total_cards}")

        recent_q = (
            select(Deck)
            .options(selectinload(Deck.cards))
            .order_by(Deck.created_at.desc())
            .limit(5)
        )
        recent = (await session.execute(recent_q)).scalars().all()

        if not recent:
            print("- No decks found.")
        else:
            print("\nRecent decks:")
            for d in recent:
                meta = d.generation_meta or {}
                print(
                    f"  • ID {d.id} | name={d.name!r} | density={d.density} | "
                    f"cards={len(d.cards)} | chunks={meta.get('chunks')} | "
                    f"generated={meta.get('total_generated')} -> "
                    f"deduped={meta.get('after_deduplication')} -> final={meta.get('final_count')}"
                )

            print("\nSample cards (most recent deck):")
            for c in recent[0].cards[:3]:
                print(f"  - Q: {c.front[:100]!r}")
                print(f"    A: {c.back[:120]!r}")

        print("\nTop balances:")
        users = (
            await session.execute(select(User).order_by(User.credits.desc()).limit(5))
        ).scalars().all()
        for u in users:
            print(
                f"  • User {u.id} plan={u.plan} credits={u.credits} "
                f"pdfs_this_month={u.monthly_pdf_count} ({u.pdf_usage_month or '-'})"
            )

        return 0
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
