from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response

from deckforge.apis.deps import CurrentUser, current_user, get_deck_service
from deckforge.apis.errors import to_http
from deckforge.core.config import settings
from deckforge.core.errors import DeckforgeError
from deckforge.modules.decks.export import export_filename
from deckforge.modules.decks.main import DeckService
from deckforge.modules.decks.models import Density
from .schemas import (
    DeckListResponse,
    DeckRead,
    DeckSummary,
    GenerateDeckResponse,
    RenameDeckRequest,
)


router = APIRouter()

User = Annotated[CurrentUser, Depends(current_user)]
Service = Annotated[DeckService, Depends(get_deck_service)]

PDF_CONTENT_TYPE = "application/pdf"
READ_BLOCK_SIZE = 1024 * 1024


def _too_large(limit: int) -> HTTPException:
    return HTTPException(
        status_code=413,
        detail=f"PDF must be at most {limit // (1024 * 1024)} MB",
    )


async def _read_upload(file: UploadFile, limit: int) -> bytes:
    """Read the upload in blocks, stopping as soon as it exceeds ``limit``."""
    if file.size is not None and file.size > limit:
        raise _too_large(limit)
    data = bytearray()
    while block := await file.read(READ_BLOCK_SIZE):
        data.extend(block)
        if len(data) > limit:
            raise _too_large(limit)
    return bytes(data)


@router.post(
    f"/{settings.app.version}/decks/generate",
    response_model=GenerateDeckResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["decks"],
)
async def generate_deck(
    user: User,
    svc: Service,
    file: UploadFile = File(...),
    density: Density = Form(Density.LOW),
) -> GenerateDeckResponse:
    """Generate a deck from an uploaded PDF and return it once persisted."""
    filename = file.filename or "document.pdf"
    if not filename.lower().endswith(".pdf") or file.content_type != PDF_CONTENT_TYPE:
        raise HTTPException(status_code=400, detail="PDF file is required")
    pdf_bytes = await _read_upload(file, settings.generation.max_upload_bytes)
    if not pdf_bytes:
        raise HTTPException(status_code=400, detail="PDF file is required")

    try:
        result = await svc.generate(user.id, pdf_bytes, filename, density, plan=user.plan)
    except DeckforgeError as e:
        raise to_http(e) from e

    return GenerateDeckResponse(deck_id=result.deck.id, cards=result.cards, meta=result.meta)


@router.get(
    f"/{settings.app.version}/decks",
    response_model=DeckListResponse,
    tags=["decks"],
)
async def list_decks(
    user: User,
    svc: Service,
    limit: int = 50,
    skip: int = 0,
) -> DeckListResponse:
    limit = max(1, min(limit, 100))
    skip = max(0, skip)
    decks, total = await svc.list_decks(user.id, limit=limit, skip=skip)
    return DeckListResponse(
        decks=[DeckSummary.from_record(d) for d in decks],
        total=total,
        limit=limit,
        skip=skip,
    )


@router.get(
    f"/{settings.app.version}/decks/{{deck_id:int}}",
    response_model=DeckRead,
    tags=["decks"],
)
async def get_deck(deck_id: int, user: User, svc: Service) -> DeckRead:
    try:
        return DeckRead(deck=await svc.get_deck(deck_id, user.id))
    except DeckforgeError as e:
        raise to_http(e) from e


@router.patch(
    f"/{settings.app.version}/decks/{{deck_id:int}}",
    response_model=DeckRead,
    tags=["decks"],
)
async def rename_deck(
    deck_id: int, req: RenameDeckRequest, user: User, svc: Service
) -> DeckRead:
    try:
        return DeckRead(deck=await svc.rename_deck(deck_id, user.id, req.name))
    except DeckforgeError as e:
        raise to_http(e) from e


@router.delete(
    f"/{settings.app.version}/decks/{{deck_id:int}}",
    tags=["decks"],
)
async def delete_deck(deck_id: int, user: User, svc: Service) -> dict:
    try:
        await svc.delete_deck(deck_id, user.id)
    except DeckforgeError as e:
        raise to_http(e) from e
    return {"message": "Deck deleted successfully"}


@router.get(
    f"/{settings.app.version}/decks/{{deck_id:int}}/export",
    tags=["decks"],
)
async def export_deck(deck_id: int, user: User, svc: Service) -> Response:
    try:
        deck, data = await svc.export_deck(deck_id, user.id)
    except DeckforgeError as e:
        raise to_http(e) from e
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(deck)}"'},
    )
