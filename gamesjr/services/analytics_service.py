"""
In-memory analytics counters. Everything is lost on restart.
"""
import logging
import threading
from typing import Any, Dict, Mapping

logger = logging.getLogger(__name__)


class AnalyticsTracker:
    def __init__(self):
        self._lock = threading.Lock()
        self.game_plays: Dict[str, int] = {}
        self.page_views: Dict[str, int] = {}
        self.api_usage: Dict[str, Dict[str, float]] = {}

    def track(self, event: str, data: Mapping[str, Any]) -> None:
        """Count one event; unknown events and events without their key are ignored."""
        with self._lock:
            if event == "game_play":
                slug = data.get("gameSlug")
                if slug:
                    self.game_plays[slug] = self.game_plays.get(slug, 0) + 1
            elif event == "page_view":
                page = data.get("page")
                if page:
                    self.page_views[page] = self.page_views.get(page, 0) + 1
            elif event == "api_usage":
                session_id = data.get("sessionId")
                if session_id:
                    current = self.api_usage.get(session_id, {"calls": 0, "cost": 0})
                    self.api_usage[session_id] = {
                        "calls": current["calls"] + 1,
                        "cost": current["cost"] + float(data.get("cost") or 0),
                    }
            else:
                logger.debug(f"Ignoring unknown analytics event: {event}")

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "gamePlays": dict(self.game_plays),
                "pageViews": dict(self.page_views),
                "apiUsage": {k: dict(v) for k, v in self.api_usage.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self.game_plays.clear()
            self.page_views.clear()
            self.api_usage.clear()


tracker = AnalyticsTracker()
