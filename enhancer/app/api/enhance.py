"""Prompt enhancement endpoints."""

import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from enhancer.app.api.dependencies import (
    get_analytics,
    get_enhancer,
    get_history_repository,
    read_json_body,
)
from enhancer.app.core.logging import get_log_context, get_logger
from enhancer.app.middleware.request_id import get_request_id
from enhancer.app.services.analytics import PROMPT_GENERATED, Analytics
from enhancer.app.services.enhancer import PromptEnhancer
from enhancer.app.services.storage import PromptHistoryItem, PromptHistoryRepository
from enhancer.app.services.validation import (
    MODIFIER_OPTIONS,
    OutputStructure,
    PromptMode,
    validate_prompt_input,
)

router = APIRouter(prefix="/api", tags=["enhance"])
logger = get_logger(__name__)


@router.post("/enhance")
async def enhance_prompt(
    request: Request,
    enhancer: PromptEnhancer = Depends(get_enhancer),
    history: PromptHistoryRepository = Depends(get_history_repository),
    analytics: Analytics = Depends(get_analytics),
) -> Dict[str, Any]:
    """Validate a prompt idea, enhance it and record it in history.

    Rate limiting happens in RateLimitMiddleware before this handler runs;
    a failure here does not give the consumed slot back.
    """
    request_id = get_request_id(request)

    body = await read_json_body(request)
    prompt_request = validate_prompt_input(body)
    result = await enhancer.enhance(prompt_request, request_id=request_id)

    item = PromptHistoryItem(id=str(uuid.uuid4()), input=prompt_request, output=result)
    history.append(item)
    analytics.track(
        PROMPT_GENERATED,
        {
            "mode": prompt_request.prompt_mode.value,
            "outputStructure": prompt_request.output_structure.value,
        },
    )

    logger.info(
        "Prompt enhancement completed",
        extra=get_log_context(request_id=request_id, history_id=item.id),
    )
    return {"id": item.id, **result.model_dump(by_alias=True, exclude_none=True)}


@router.get("/options")
async def list_options() -> Dict[str, Any]:
    """Prompt modes, output structures and suggested modifier values."""
    return {
        "promptModes": [m.value for m in PromptMode],
        "outputStructures": [s.value for s in OutputStructure],
        "modifiers": MODIFIER_OPTIONS,
    }
