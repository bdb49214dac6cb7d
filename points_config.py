"""
points_config.py

Per-campaign point values.

Firestore data model:
  campaigns/{campaign_id}/points/{campaign_id}

The document id IS the campaign id, so there is exactly one config per
campaign. Campaigns written before that convention may hold one or more
auto-id documents in the same sub-collection; the oldest one is used.
"""

from __future__ import annotations

from typing import Any

from firebase_admin import firestore

import config
from config import get_db
import campaign_lifecycle
import gamification_rules
import user_service


def points_ref(campaign_id: str):
    return (get_db().collection(config.CAMPAIGNS_COL).document(campaign_id)
            .collection(config.POINTS_SUBCOL).document(campaign_id))


def build_points_config(values: dict) -> dict:
    """Document body for a new config (values already validated)."""
    doc = {field: int(values.get(field, 0)) for field in gamification_rules.INTERACTION_TYPES}
    doc["createdAt"] = firestore.SERVER_TIMESTAMP
    return doc


def _legacy_config(campaign_id: str) -> dict | None:
    col = (get_db().collection(config.CAMPAIGNS_COL).document(campaign_id)
           .collection(config.POINTS_SUBCOL))
    docs = [d for d in col.stream(timeout=config.REMOTE_TIMEOUT) if d.id != campaign_id]
    if not docs:
        return None
    if len(docs) > 1:
        print(f"[Warning] Campaign {campaign_id} has {len(docs)} point configs. Using the oldest.")
    docs.sort(key=lambda d: str((d.to_dict() or {}).get("createdAt") or ""))
    return docs[0].to_dict()


def get_points_config(campaign_id: str) -> dict[str, int]:
    """
    {like, comment, share, join} for a campaign, all non-negative ints.
    A missing config yields zeros (and a warning) instead of failing.
    """
    doc = points_ref(campaign_id).get(timeout=config.REMOTE_TIMEOUT)
    raw = doc.to_dict() if doc.exists else _legacy_config(campaign_id)
    if raw is None:
        print(f"[Warning] No points config for campaign {campaign_id}. Awarding 0 points.")
    return gamification_rules.sanitize_points_config(raw)


def edit_points_config(actor_uid: str, campaign_id: str, values: dict[str, Any]) -> tuple[bool, str]:
    """
    Replace any subset of like/comment/share/join (admin only).
    Negative or non-integer values are refused.
    """
    ok, cleaned = gamification_rules.validate_point_values(values, partial=True)
    if not ok:
        return False, cleaned

    try:
        if not user_service.is_admin(user_service.get_user_details(actor_uid)):
            return False, "Error: Only administrators can edit points."

        campaign_doc = (get_db().collection(config.CAMPAIGNS_COL).document(campaign_id)
                        .get(timeout=config.REMOTE_TIMEOUT))
        campaign = campaign_doc.to_dict() if campaign_doc.exists else None
        refusal = campaign_lifecycle.check_action(campaign, "edit_points")
        if refusal:
            return False, refusal

        ref = points_ref(campaign_id)
        if ref.get(timeout=config.REMOTE_TIMEOUT).exists:
            ref.update(cleaned, timeout=config.REMOTE_TIMEOUT)
        else:
            # Migrate a legacy auto-id config into the keyed document
            base = gamification_rules.sanitize_points_config(_legacy_config(campaign_id))
            base.update(cleaned)
            ref.set(build_points_config(base), timeout=config.REMOTE_TIMEOUT)

        return True, "Success: Points updated."
    except Exception as e:
        return False, f"System Error: {e}. Please try again."
