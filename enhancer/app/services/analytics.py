"""Usage analytics: per-session event log plus persisted counters."""

import threading
import time
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from enhancer.app.core.logging import get_logger
from enhancer.app.exceptions import StorageError
from enhancer.app.services.storage import STORAGE_KEYS, KeyValueStore

logger = get_logger(__name__)

PROMPT_GENERATED = "prompt_generated"
PROMPT_FAVORITED = "prompt_favorited"
PROMPT_UNFAVORITED = "prompt_unfavorited"


class AnalyticsEvent(BaseModel):
    event: str
    properties: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AnalyticsData(BaseModel):
    """Counters that survive restarts. Events stay in memory per session."""
    prompts_generated: int = 0
    favorite_prompts: int = 0
    most_used_mode: str = "Text"
    mode_counts: Dict[str, int] = Field(default_factory=dict)
    total_sessions: int = 1


def generate_session_id() -> str:
    return f"session_{time.time_ns() // 1_000_000}_{uuid.uuid4().hex[:9]}"


class Analytics:
    """Tracks usage events. Only the newest ``max_events`` stay in memory."""

    DEFAULT_MAX_EVENTS = 1000

    def __init__(self, store: KeyValueStore, max_events: int = DEFAULT_MAX_EVENTS):
        self.store = store
        self.session_id = generate_session_id()
        self.events: Deque[AnalyticsEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()
        self.data = self._load()

    def _load(self) -> AnalyticsData:
        stored = self.store.get(STORAGE_KEYS["analytics"])
        if not stored:
            return AnalyticsData()
        try:
            data = AnalyticsData.model_validate(stored)
        except ValidationError as e:
            logger.warning(f"Failed to load analytics data: {e.error_count()} errors")
            return AnalyticsData()
        data.total_sessions += 1
        self._save(data)
        return data

    def _save(self, data: AnalyticsData) -> None:
        # Failed writes are logged, never raised
        try:
            self.store.set(STORAGE_KEYS["analytics"], data.model_dump(mode="json"))
        except StorageError as e:
            logger.warning(f"Failed to save analytics data: {e}")

    def track(self, event: str, properties: Optional[Dict[str, Any]] = None) -> None:
        properties = properties or {}
        with self._lock:
            self.events.append(AnalyticsEvent(event=event, properties=properties))

            if event == PROMPT_GENERATED:
                self.data.prompts_generated += 1
                mode = properties.get("mode")
                if mode:
                    self._update_most_used_mode(str(mode))
            elif event == PROMPT_FAVORITED:
                self.data.favorite_prompts += 1
            elif event == PROMPT_UNFAVORITED:
                self.data.favorite_prompts = max(0, self.data.favorite_prompts - 1)

            self._save(self.data)

    def _update_most_used_mode(self, mode: str) -> None:
        counts = self.data.mode_counts
        counts[mode] = counts.get(mode, 0) + 1
        # Ties keep the current leader
        if counts[mode] > counts.get(self.data.most_used_mode, 0):
            self.data.most_used_mode = mode

    def get_stats(self) -> Dict[str, Any]:
        return {
            "promptsGenerated": self.data.prompts_generated,
            "favoritePrompts": self.data.favorite_prompts,
            "mostUsedMode": self.data.most_used_mode,
            "totalSessions": self.data.total_sessions,
            "sessionId": self.session_id,
        }

    def get_events(self, limit: Optional[int] = None) -> List[AnalyticsEvent]:
        if limit:
            return list(self.events)[-limit:]
        return list(self.events)

    def clear_data(self) -> None:
        with self._lock:
            self.events.clear()
            self.data = AnalyticsData()
            self._save(self.data)
