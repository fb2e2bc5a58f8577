"""Deck endpoints: generate, read, render, edit and attach images.

All blocking operations are wrapped with asyncio.to_thread for multi-user concurrency.
Errors from the services are mapped to status codes by the app's exception handlers.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse

from speaktoslides.api.dependencies import (
    AppContext,
    client_ip,
    get_context,
    require_internal_secret,
)
from speaktoslides.api.schemas.requests import (
    AttachImageRequest,
    EditDeckRequest,
    GenerateDeckRequest,
)
from speaktoslides.api.schemas.responses import (
    DeckResponse,
    DeckUpdateResponse,
    GenerateDeckResponse,
)
from speaktoslides.core.exceptions import NotFoundError
from speaktoslides.rendering import render_deck

logger = logging.getLogger(__name__)

router = APIRouter(tags=["decks"])

FRAME_CSP = (
    "default-src 'none'; img-src http: https: data:; style-src 'unsafe-inline'; "
    "script-src 'unsafe-inline'; base-uri 'none'; form-action 'none'; frame-ancestors 'self'"
)


def _deck_url(context: AppContext, deck_id: str) -> str:
    return f"{context.settings.api.base_url}/d/{deck_id}"


def _generate(context: AppContext, request: GenerateDeckRequest, ip_address: str | None) -> GenerateDeckResponse:
    decision = context.usage.check_and_record(request.user_id, ip_address)
    if not decision.allowed:
        raise HTTPException(status_code=429, detail=decision.reason)

    # Signed-in callers get the higher-quality model
    quality = request.user_id is not None
    deck = context.compiler.generate_deck(request.prompt, pro_tier=quality)

    pro_tier = context.settings.conversation.pro_tier
    deck_id = context.gateway.insert_deck(
        deck,
        render_deck(deck, pro_tier=pro_tier),
        prompt=request.prompt,
        owner_id=request.user_id,
        is_pro=pro_tier,
    )
    return GenerateDeckResponse(
        deck_id=deck_id,
        url=_deck_url(context, deck_id),
        title=deck.title,
        slide_count=deck.slide_count,
        theme=deck.theme.value,
    )


@router.post("/api/generate-deck", response_model=GenerateDeckResponse)
async def generate_deck(
    request: GenerateDeckRequest,
    http_request: Request,
    context: AppContext = Depends(get_context),
):
    """Generate, render and store a deck from a prompt.

    Raises:
        HTTPException: 422 for a too-short prompt, 429 when the usage limit
            is reached, 502 when the model fails
    """
    ip_address = client_ip(http_request)
    logger.info(
        "Generate deck request",
        extra={"prompt_length": len(request.prompt), "signed_in": request.user_id is not None},
    )
    result = await asyncio.to_thread(_generate, context, request, ip_address)
    logger.info("Generated deck", extra={"deck_id": result.deck_id, "slide_count": result.slide_count})
    return result


@router.get("/api/decks/{deck_id}", response_model=DeckResponse)
async def get_deck(deck_id: str, context: AppContext = Depends(get_context)):
    """Deck metadata and slides."""
    stored = await asyncio.to_thread(context.gateway.get_deck, deck_id)
    if stored is None:
        raise NotFoundError(f"Deck not found: {deck_id}")

    return DeckResponse(
        id=stored.id,
        title=stored.title,
        theme=stored.deck.theme.value,
        slide_count=stored.slide_count,
        slides=stored.deck.slides_as_dicts(),
        view_count=stored.view_count,
        is_pro=stored.is_pro,
        url=_deck_url(context, stored.id),
        created_at=stored.created_at,
        updated_at=stored.updated_at,
    )


@router.get("/d/{deck_id}/frame", response_class=HTMLResponse)
async def deck_frame(deck_id: str, context: AppContext = Depends(get_context)):
    """The rendered deck document, meant for a sandboxed iframe."""
    stored = await asyncio.to_thread(context.gateway.get_deck, deck_id)
    if stored is None:
        raise NotFoundError(f"Deck not found: {deck_id}")

    await asyncio.to_thread(context.gateway.increment_view_count, deck_id)

    return HTMLResponse(
        content=stored.html_content,
        headers={
            "Cache-Control": "no-store, must-revalidate",
            "Content-Security-Policy": FRAME_CSP,
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "no-referrer",
        },
    )


@router.post(
    "/api/decks/{deck_id}/edit",
    response_model=DeckUpdateResponse,
    dependencies=[Depends(require_internal_secret)],
)
async def edit_deck(
    deck_id: str,
    request: EditDeckRequest,
    context: AppContext = Depends(get_context),
):
    """Apply a natural-language edit to a deck (same id, same link)."""
    deck = await asyncio.to_thread(context.engine.apply_edit, deck_id, request.edit_request)
    return DeckUpdateResponse(
        deck_id=deck_id,
        title=deck.title,
        slide_count=deck.slide_count,
        url=_deck_url(context, deck_id),
    )


@router.put(
    "/api/decks/{deck_id}/slides/{slide_index}/image",
    response_model=DeckUpdateResponse,
    dependencies=[Depends(require_internal_secret)],
)
async def attach_image(
    deck_id: str,
    slide_index: int,
    request: AttachImageRequest,
    context: AppContext = Depends(get_context),
):
    """Place an image URL on one slide (0-based index)."""
    deck = await asyncio.to_thread(context.engine.attach_image, deck_id, slide_index, request.image_url)
    return DeckUpdateResponse(
        deck_id=deck_id,
        title=deck.title,
        slide_count=deck.slide_count,
        url=_deck_url(context, deck_id),
    )
