from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from deckforge.apis.deps import CurrentUser, current_user, get_deck_service
from deckforge.core.config import settings
from deckforge.modules.decks.main import DeckService


router = APIRouter()


class BalanceResponse(BaseModel):
    mode: str
    unit: str
    balance: int
    generation_in_progress: bool


@router.get(
    f"/{settings.app.version}/credits",
    response_model=BalanceResponse,
    tags=["credits"],
)
async def read_balance(
    user: Annotated[CurrentUser, Depends(current_user)],
    svc: Annotated[DeckService, Depends(get_deck_service)],
) -> BalanceResponse:
    """Remaining credits (or PDFs left this month) for the caller."""
    ledger = svc.pipeline.ledger
    return BalanceResponse(
        mode=svc.pipeline.billing_mode,
        unit=ledger.unit,
        balance=await ledger.balance(user.id),
        generation_in_progress=await svc.pipeline.gate.is_busy(user.id),
    )
