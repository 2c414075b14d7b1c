from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from deckforge.core.db.base import get_session
from deckforge.core.db_services import UserAccountService
from deckforge.modules.decks.main import DeckService


class CurrentUser(BaseModel):
    id: int
    plan: str = "free"


async def current_user(
    x_user_id: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> CurrentUser:
    """Resolve the caller from the ``X-User-Id`` header set by the auth proxy.

    Authentication happens upstream; deployments with their own auth override
    this dependency.
    """
    if not x_user_id or not x_user_id.strip().isdigit():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    user = await UserAccountService(session).get_user(int(x_user_id))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return CurrentUser(id=user.id, plan=user.plan)


def get_deck_service(request: Request) -> DeckService:
    return request.app.state.deck_service
