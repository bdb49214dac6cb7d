"""
rank_table.py

The Rank Table: administrator-managed tiers.

Firestore data model:
  rankDescription/{rank_id}

Each rank document stores:
- name (tier label, unique)
- points (threshold, non-negative integer)
- image (badge URL)
- createdAt

Reads go through a TTL cache. The cache is cleared on every local write
and on every push from the real-time listener (see rank_watch.py).
"""

from __future__ import annotations

import time
from typing import Any

from firebase_admin import firestore

import config
from config import get_db
import gamification_rules
import user_service


# ==========================================
# CACHING LAYER (TTL-based)
# ==========================================

_rank_cache: tuple[list, float] | None = None  # (ranks_list, timestamp)


def clear_rank_cache():
    """Invalidate the cached rank table."""
    global _rank_cache
    _rank_cache = None


def _clean(s: Any) -> str:
    """Convert input to a trimmed string safely."""
    return str(s).strip() if s is not None else ""


def _rank_to_dict(doc) -> dict:
    d = doc.to_dict() or {}
    d["id"] = doc.id
    return d


def _validate_threshold(points) -> tuple[bool, Any]:
    ok, cleaned = gamification_rules.validate_point_values({"points": points}, fields=("points",))
    if not ok:
        return False, cleaned.replace("'points' points", "Rank threshold")
    return True, cleaned["points"]


# ==========================================
# READ
# ==========================================

def get_rank_table(use_cache: bool = True) -> list[dict]:
    """
    All rank entries, ascending by threshold (ties: oldest first).
    An empty list is a valid answer; callers fall back to the sentinel tier.
    """
    global _rank_cache
    if use_cache and _rank_cache is not None:
        ranks, ts = _rank_cache
        if time.time() - ts < config.RANK_CACHE_TTL_SECONDS:
            return list(ranks)

    db = get_db()
    q = db.collection(config.RANKS_COL).order_by("points", direction=firestore.Query.ASCENDING)
    ranks = gamification_rules.sort_rank_table(
        _rank_to_dict(doc) for doc in q.stream(timeout=config.REMOTE_TIMEOUT)
    )
    if not ranks:
        print("[Warning] Rank table is empty. Users will be shown as unranked.")

    _rank_cache = (ranks, time.time())
    return list(ranks)


def get_rank(rank_id: str) -> dict | None:
    db = get_db()
    doc = db.collection(config.RANKS_COL).document(_clean(rank_id)).get(timeout=config.REMOTE_TIMEOUT)
    return _rank_to_dict(doc) if doc.exists else None


def _name_taken(name: str, exclude_id: str | None = None) -> bool:
    db = get_db()
    q = db.collection(config.RANKS_COL).where("name", "==", name).limit(2)
    for doc in q.stream(timeout=config.REMOTE_TIMEOUT):
        if doc.id != exclude_id:
            return True
    return False


# ==========================================
# WRITE (admin)
# ==========================================

def _require_admin(actor_uid: str) -> str | None:
    if not user_service.is_admin(user_service.get_user_details(actor_uid)):
        return "Error: Only administrators can manage ranks."
    return None


def create_rank(actor_uid: str, name: str, points, image: str = "") -> tuple[bool, str]:
    """
    Create a new tier (admin only).

    Returns:
        (ok, rank_id_or_error)
    """
    name = _clean(name)
    image = _clean(image)
    if not name:
        return False, "Error: Rank name is required."
    if name == gamification_rules.UNRANKED:
        return False, f"Error: '{name}' is reserved."

    ok, threshold = _validate_threshold(points)
    if not ok:
        return False, threshold

    try:
        refusal = _require_admin(actor_uid)
        if refusal:
            return False, refusal
        if _name_taken(name):
            return False, f"Error: A rank named '{name}' already exists."

        ref = get_db().collection(config.RANKS_COL).document()
        ref.set({
            "name": name,
            "points": threshold,
            "image": image or gamification_rules.DEFAULT_BADGE,
            "createdAt": firestore.SERVER_TIMESTAMP,
        }, timeout=config.REMOTE_TIMEOUT)
        clear_rank_cache()
        print(f"[Rank] Created tier '{name}' at {threshold} points.")
        return True, ref.id
    except Exception as e:
        return False, f"System Error: {e}. Please try again."


def edit_rank(actor_uid: str, rank_id: str, name: str | None = None, points=None,
              image: str | None = None) -> tuple[bool, str]:
    """
    Edit any subset of name / points / image (admin only).
    Existing score logs keep the tier that was active when they were written.
    """
    rank_id = _clean(rank_id)
    updates: dict[str, Any] = {}

    if name is not None:
        name = _clean(name)
        if not name:
            return False, "Error: Rank name is required."
        if name == gamification_rules.UNRANKED:
            return False, f"Error: '{name}' is reserved."
        updates["name"] = name
    if points is not None:
        ok, threshold = _validate_threshold(points)
        if not ok:
            return False, threshold
        updates["points"] = threshold
    if image is not None:
        updates["image"] = _clean(image) or gamification_rules.DEFAULT_BADGE

    if not updates:
        return False, "Error: Nothing to update."

    try:
        refusal = _require_admin(actor_uid)
        if refusal:
            return False, refusal
        ref = get_db().collection(config.RANKS_COL).document(rank_id)
        if not ref.get(timeout=config.REMOTE_TIMEOUT).exists:
            return False, "Error: Rank not found."
        if "name" in updates and _name_taken(updates["name"], exclude_id=rank_id):
            return False, f"Error: A rank named '{updates['name']}' already exists."

        ref.update(updates, timeout=config.REMOTE_TIMEOUT)
        clear_rank_cache()
        return True, "Success: Rank updated."
    except Exception as e:
        return False, f"System Error: {e}. Please try again."


def delete_rank(actor_uid: str, rank_id: str) -> tuple[bool, str]:
    """Admin only. Users holding the tier move down on the next reconcile."""
    try:
        refusal = _require_admin(actor_uid)
        if refusal:
            return False, refusal
        ref = get_db().collection(config.RANKS_COL).document(_clean(rank_id))
        if not ref.get(timeout=config.REMOTE_TIMEOUT).exists:
            return False, "Error: Rank not found."
        ref.delete(timeout=config.REMOTE_TIMEOUT)
        clear_rank_cache()
        return True, "Success: Rank deleted."
    except Exception as e:
        return False, f"System Error: {e}. Please try again."


def seed_default_ranks() -> int:
    """
    Writes DEFAULT_RANKS if the table is empty.
    Returns the number of tiers written (0 when a table already exists).
    """
    db = get_db()
    col = db.collection(config.RANKS_COL)

    # Skip if a table already exists
    if next(iter(col.limit(1).stream(timeout=config.REMOTE_TIMEOUT)), None) is not None:
        return 0

    batch = db.batch()
    for rank in gamification_rules.DEFAULT_RANKS:
        batch.set(col.document(), {**rank, "createdAt": firestore.SERVER_TIMESTAMP})
    batch.commit(timeout=config.REMOTE_TIMEOUT)
    clear_rank_cache()

    print(f"[Rank] Seeded {len(gamification_rules.DEFAULT_RANKS)} default tiers.")
    return len(gamification_rules.DEFAULT_RANKS)


def prime_rank_cache(ranks: list[dict]):
    """Replace the cached table (used by the real-time listener)."""
    global _rank_cache
    _rank_cache = (gamification_rules.sort_rank_table(ranks), time.time())
