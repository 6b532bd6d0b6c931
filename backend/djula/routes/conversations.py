# /djula/routes/conversations.py

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query

from djula.config.settings import settings
from djula.services.context_service import context_service
from djula.utils.dependencies import verify_api_key
from djula.models.api import APIResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/conversations",
    tags=["Conversations"],
    dependencies=[Depends(verify_api_key)]
)


@router.delete("/{customer_id}", response_model=APIResponse)
async def clear_conversation(customer_id: str):
    """Forgets a customer's history, context and session state."""
    await context_service.clear(customer_id)
    logger.info(f"Conversation cleared for {customer_id} by operator")
    return APIResponse(
        success=True,
        message="Conversation cleared",
        version=settings.api_version
    )


@router.get("/{customer_id}/search", response_model=APIResponse)
async def search_conversation(
    customer_id: str,
    q: str = Query(..., min_length=1, description="Case-insensitive text to look for"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0)
):
    messages = await context_service.search_history(customer_id, q, limit=limit, offset=offset)
    return APIResponse(
        success=True,
        message=f"{len(messages)} messages found",
        data={"messages": [m.model_dump(mode="json") for m in messages]},
        version=settings.api_version
    )


@router.get("/{customer_id}/stats", response_model=APIResponse)
async def conversation_stats(
    customer_id: str,
    language: Optional[str] = Query(None, pattern="^(fr|en)$")
):
    stats = await context_service.get_conversation_stats(customer_id, language)
    return APIResponse(
        success=True,
        message="Conversation stats retrieved",
        data=stats.model_dump(mode="json"),
        version=settings.api_version
    )
