"""Telegram webhook.

Always answers 200 ``{"ok": true}`` so Telegram never retries; requests
without the configured secret are dropped unprocessed.
"""

import asyncio
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from pydantic import ValidationError as PydanticValidationError

from speaktoslides.api.dependencies import AppContext, get_context
from speaktoslides.channels.telegram_bot import TelegramUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/telegram", tags=["telegram"])

OK = {"ok": True}


@router.post("")
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: Optional[str] = Header(None),
    context: AppContext = Depends(get_context),
):
    expected = context.settings.telegram_webhook_secret
    if not expected:
        logger.error("TELEGRAM_WEBHOOK_SECRET not configured, rejecting update")
        return OK
    if not x_telegram_bot_api_secret_token or not secrets.compare_digest(
        x_telegram_bot_api_secret_token, expected
    ):
        logger.warning("Telegram webhook secret mismatch")
        return OK

    try:
        payload = await request.json()
        update = TelegramUpdate.model_validate(payload)
    except (ValueError, PydanticValidationError):
        logger.warning("Ignoring malformed Telegram update")
        return OK

    await asyncio.to_thread(context.bot.handle_update, update)
    return OK
