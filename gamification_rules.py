"""
GAMIFICATION RULES MODULE
-------------------------
The "Rule Book" of the points-and-rank engine. Everything here is pure:
no Firestore access, no printing except warnings on bad configuration.

KEY RULES:
1. A user's frame tier is the highest-threshold rank whose threshold <= points.
2. Equal thresholds: the most recently created rank wins.
3. No qualifying rank (or an empty table): the UNRANKED sentinel, never "".
4. Point values are non-negative integers.
"""

from __future__ import annotations

import datetime as _dt
from typing import Any, Dict, Iterable, List, Optional, Tuple

import config

# ==========================================
# 1. TIERS
# ==========================================

UNRANKED = "unranked"
DEFAULT_BADGE = "/badges/BRONZE.png"

# Seed table used when an administrator has not configured one yet.
DEFAULT_RANKS = [
    {"name": "bronze", "points": 0, "image": "/badges/BRONZE.png"},
    {"name": "silver", "points": 501, "image": "/badges/SILVER.png"},
    {"name": "gold", "points": 1501, "image": "/badges/GOLD.png"},
    {"name": "platinum", "points": 3501, "image": "/badges/PLATINUM.png"},
    {"name": "diamond", "points": 5001, "image": "/badges/DIAMOND.png"},
]

SENTINEL_RANK = {"name": UNRANKED, "points": None, "image": DEFAULT_BADGE}

PROMOTE = "promote"
DEMOTE = "demote"
NONE = "none"

# ==========================================
# 2. POINT ACTIONS (The "Price List" keys)
# ==========================================

INTERACTION_TYPES = ("like", "comment", "share", "join")
APPROVAL_FIELDS = INTERACTION_TYPES + ("campaignManager",)


class InvariantViolation(Exception):
    """Configuration or programmer error (raised only in development mode)."""


def _violation(msg):
    if config.STRICT_INVARIANTS:
        raise InvariantViolation(msg)
    print(f"[Warning] {msg}")


# ==========================================
# 3. RANK ENGINE
# ==========================================

def _created_key(rank: Dict[str, Any]) -> float:
    v = rank.get("createdAt")
    if v is None:
        return float("-inf")
    if isinstance(v, _dt.datetime):
        if v.tzinfo is None:
            v = v.replace(tzinfo=_dt.timezone.utc)
        return v.timestamp()
    if isinstance(v, (int, float)):
        return float(v)
    try:
        return _dt.datetime.fromisoformat(str(v).replace("Z", "+00:00")).timestamp()
    except ValueError:
        return float("-inf")


def sort_rank_table(ranks: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Ascending by threshold; ties ordered oldest first so the newest sorts last."""
    valid = []
    for r in ranks or []:
        if not r or r.get("points") is None or not r.get("name"):
            continue
        valid.append(r)
    return sorted(valid, key=lambda r: (int(r["points"]), _created_key(r)))


def compute_rank(points: int, ranks: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Returns the rank entry a point total falls into.
    Falls back to SENTINEL_RANK when nothing qualifies.
    """
    chosen = None
    for rank in sort_rank_table(ranks):
        if int(rank["points"]) <= int(points or 0):
            chosen = rank
        else:
            break
    return chosen if chosen is not None else SENTINEL_RANK


def compute_tier(points: int, ranks: Iterable[Dict[str, Any]]) -> str:
    return compute_rank(points, ranks)["name"]


def find_rank(tier_name: str, ranks: Iterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Rank entry for a tier name; with duplicate names the newest entry wins."""
    found = None
    for rank in sort_rank_table(ranks):
        if rank["name"] == tier_name:
            if found is None or _created_key(rank) >= _created_key(found):
                found = rank
    return found


def badge_for_tier(tier_name: str, ranks: Iterable[Dict[str, Any]]) -> str:
    rank = find_rank(tier_name, ranks)
    if rank and rank.get("image"):
        return rank["image"]
    return DEFAULT_BADGE


def detect_transition(old_tier: Optional[str], new_tier: str,
                      ranks: Iterable[Dict[str, Any]],
                      old_threshold: Optional[int] = None) -> str:
    """
    Compares two tiers by threshold: 'promote', 'demote' or 'none'.

    The sentinel (or a missing old tier) sits below every rank. An empty
    table never produces a notification. An old label that is no longer in
    the table (renamed or deleted) is compared by old_threshold, the
    threshold stored with the tier when it was assigned. Without one it is
    a configuration error: raised in development, 'none' in production
    (the caller still persists the new tier).
    """
    table = sort_rank_table(ranks)
    if not table or old_tier == new_tier:
        return NONE

    if not old_tier or old_tier == UNRANKED:
        old_t = None
    else:
        old_rank = find_rank(old_tier, table)
        if old_rank is not None:
            old_t = int(old_rank["points"])
        elif old_threshold is not None:
            old_t = int(old_threshold)
        else:
            _violation(f"Tier label '{old_tier}' not found in rank table.")
            return NONE

    if new_tier == UNRANKED:
        return NONE if old_t is None else DEMOTE
    new_rank = find_rank(new_tier, table)
    if new_rank is None:
        _violation(f"Tier label '{new_tier}' not found in rank table.")
        return NONE
    new_t = int(new_rank["points"])

    if old_t is None:
        return PROMOTE
    if new_t > old_t:
        return PROMOTE
    if new_t < old_t:
        return DEMOTE
    # Same threshold, different label (tie resolved by createdAt)
    return NONE


def evaluate_rank(points: int, old_tier: Optional[str],
                  ranks: Iterable[Dict[str, Any]],
                  old_threshold: Optional[int] = None) -> Tuple[Dict[str, Any], str]:
    """Convenience: (new rank entry, direction) for a point total."""
    table = sort_rank_table(ranks)
    if not table:
        print("[Warning] Rank table is empty. Using the unranked tier.")
    rank = compute_rank(points, table)
    return rank, detect_transition(old_tier, rank["name"], table, old_threshold)


# ==========================================
# 4. POINT VALUES
# ==========================================

def _as_points(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def validate_point_values(values: Dict[str, Any], fields=INTERACTION_TYPES,
                          partial: bool = False) -> Tuple[bool, Any]:
    """
    Validates admin-supplied point values.
    partial=True accepts any subset of `fields` (edit); otherwise all are required.

    Returns:
        (ok, cleaned_dict_or_error)
    """
    if not isinstance(values, dict):
        return False, "Error: Point values are required."

    unknown = [k for k in values if k not in fields]
    if unknown:
        return False, f"Error: Unknown point field(s): {', '.join(sorted(unknown))}."

    cleaned = {}
    for field in fields:
        if field not in values:
            if partial:
                continue
            return False, f"Error: '{field}' points are required."
        pts = _as_points(values[field])
        if pts is None:
            return False, f"Error: '{field}' points must be a whole number."
        if pts < 0:
            return False, f"Error: '{field}' points cannot be negative."
        cleaned[field] = pts

    if partial and not cleaned:
        return False, "Error: Nothing to update."
    return True, cleaned


def sanitize_points_config(raw: Optional[Dict[str, Any]]) -> Dict[str, int]:
    """Stored PointsConfig -> {like, comment, share, join}, bad values become 0."""
    raw = raw or {}
    out = {}
    for field in INTERACTION_TYPES:
        pts = _as_points(raw.get(field, 0))
        if pts is None:
            _violation(f"PointsConfig field '{field}' is not a number ({raw.get(field)!r}).")
            pts = 0
        elif pts < 0:
            _violation(f"PointsConfig field '{field}' is negative ({pts}).")
            pts = 0
        out[field] = pts
    return out


def get_points_for_action(points_config: Dict[str, int], action_key: str) -> int:
    """
    Returns the points for a specific action.
    """
    if action_key in INTERACTION_TYPES:
        return int((points_config or {}).get(action_key, 0))
    return 0
