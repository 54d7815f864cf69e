"""History and favorites endpoints."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from enhancer.app.api.dependencies import get_analytics, get_history_repository
from enhancer.app.exceptions import HistoryItemNotFoundError
from enhancer.app.services.analytics import (
    PROMPT_FAVORITED,
    PROMPT_UNFAVORITED,
    Analytics,
)
from enhancer.app.services.storage import PromptHistoryRepository

router = APIRouter(prefix="/api/history", tags=["history"])


@router.get("")
def list_history(
    history: PromptHistoryRepository = Depends(get_history_repository),
) -> List[Dict[str, Any]]:
    favorites = history.get_favorites()
    return [item.to_api(item.id in favorites) for item in history.get_history()]


@router.get("/favorites")
def list_favorites(
    history: PromptHistoryRepository = Depends(get_history_repository),
) -> List[Dict[str, Any]]:
    return [item.to_api(True) for item in history.get_favorite_items()]


@router.post("/{item_id}/favorite")
def toggle_favorite(
    item_id: str,
    history: PromptHistoryRepository = Depends(get_history_repository),
    analytics: Analytics = Depends(get_analytics),
) -> Dict[str, Any]:
    if history.get_item(item_id) is None:
        raise HistoryItemNotFoundError(item_id)
    is_favorite = history.toggle(item_id)
    analytics.track(PROMPT_FAVORITED if is_favorite else PROMPT_UNFAVORITED, {"id": item_id})
    return {"id": item_id, "favorite": is_favorite}


@router.delete("", status_code=204)
def clear_history(
    history: PromptHistoryRepository = Depends(get_history_repository),
) -> None:
    history.clear()
