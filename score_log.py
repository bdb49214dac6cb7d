from __future__ import annotations

from typing import Optional, List, Dict, Any

from firebase_admin import firestore

import config
from config import get_db

# ==========================================
# SCORE LOG (append-only audit trail)
# ==========================================
# One row per point mutation. Rows freeze the tier and badge that were
# active right after the award and are never updated or deleted.

LOG_TYPES = ("like", "comment", "share", "join", "leave", "campaignManager")


def log_ref(event_key: Optional[str] = None):
    """Reference for a new row. A fixed event_key makes the row an idempotency guard."""
    col = get_db().collection(config.SCORE_LOG_COL)
    return col.document(event_key) if event_key else col.document()


def build_entry(log_type: str, score: int, user: Dict[str, Any], frame_tier: str,
                rank_image: str, campaign_id: Optional[str] = None,
                extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    if log_type not in LOG_TYPES:
        raise ValueError(f"Unknown score log type: {log_type}")
    entry = {
        "uid": user.get("uid"),
        "displayName": user.get("displayName", ""),
        "email": user.get("email", ""),
        "profilepictureURL": user.get("profilepictureURL", ""),
        "type": log_type,
        "score": int(score),
        "frameTier": frame_tier,
        "rankImage": rank_image,
        "campaignId": campaign_id,
        "createdAt": firestore.SERVER_TIMESTAMP,
    }
    if extra:
        entry.update(extra)
    return entry


def has_entry(event_key: str) -> bool:
    """True if an award guarded by event_key was already committed."""
    doc = log_ref(event_key).get(timeout=config.REMOTE_TIMEOUT)
    return doc.exists


def _doc_to_dict(doc):
    d = doc.to_dict() or {}
    d["id"] = doc.id
    v = d.get("createdAt")
    if hasattr(v, "isoformat"):
        d["createdAt"] = v.isoformat()
    return d


def get_user_log(uid: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    db = get_db()
    q = (db.collection(config.SCORE_LOG_COL)
           .where("uid", "==", uid)
           .order_by("createdAt", direction=firestore.Query.DESCENDING))
    if limit:
        q = q.limit(int(limit))
    return [_doc_to_dict(doc) for doc in q.stream(timeout=config.REMOTE_TIMEOUT)]


def get_campaign_log(campaign_id: str, log_type: Optional[str] = None) -> List[Dict[str, Any]]:
    db = get_db()
    q = db.collection(config.SCORE_LOG_COL).where("campaignId", "==", campaign_id)
    if log_type:
        q = q.where("type", "==", log_type)
    rows = [_doc_to_dict(doc) for doc in q.stream(timeout=config.REMOTE_TIMEOUT)]
    return sorted(rows, key=lambda r: str(r.get("createdAt") or ""), reverse=True)


def ledger_total(uid: str) -> int:
    """Sum of every logged score for a user (should equal users/{uid}.points)."""
    return sum(int(r.get("score", 0)) for r in get_user_log(uid))
