"""
Events the engine hands back to the UI layer.

- RankChange: a user's tier moved up or down (rendered as a dialog).
  Emitted exactly once per transition, whatever caused it.
- InteractionOutcome: result of like/comment/share/join/leave/attendance
  (rendered as a toast). Its rank_change is the same RankChange object,
  kept only for the toast text; drive rank dialogs from RankChange events.

UI code registers callbacks with add_listener(); emit() calls every
listener and never lets one listener's failure break the action that
produced the event.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional


@dataclass
class RankChange:
    uid: str
    direction: str          # "promote" | "demote"
    tier_name: str
    badge_image: str
    previous_tier: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "direction": self.direction,
            "tierName": self.tier_name,
            "badgeImage": self.badge_image,
            "previousTier": self.previous_tier,
        }


@dataclass
class InteractionOutcome:
    action: str
    ok: bool
    message: str
    points_earned: int = 0
    uid: Optional[str] = None
    campaign_id: Optional[str] = None
    rank_change: Optional[RankChange] = None

    @property
    def status(self) -> str:
        return "success" if self.ok else "failure"

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status
        d["rank_change"] = self.rank_change.to_dict() if self.rank_change else None
        return d


_listeners: List[Callable[[Any], None]] = []


def add_listener(callback: Callable[[Any], None]) -> Callable[[], None]:
    """Register a callback for every event. Returns an unsubscribe function."""
    _listeners.append(callback)

    def _unsubscribe():
        if callback in _listeners:
            _listeners.remove(callback)

    return _unsubscribe


def clear_listeners():
    _listeners.clear()


def emit(event) -> None:
    for callback in list(_listeners):
        try:
            callback(event)
        except Exception as e:
            print(f"[Warning] Notification listener failed: {e}")
