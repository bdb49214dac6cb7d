"""
interactions.py

The Interaction Ledger: likes, comments, shares and joins on a campaign,
and the point award each of them triggers.

Firestore data model:
  campaigns/{campaign_id}/likes/{uid}    {uid, type: like|dislike}
  comments/{comment_id}                  {uid, displayName, comment, timestamp,
                                          campaignRef, campaignId, frameTier, rankImage, ...}
  participation/{campaign_id}_{uid}      {status: "joined", isPresent, joindate, ...}
  participation/{auto_id}                {status: "shared", joindate, ...}

Award rules:
- like:    once per (user, campaign) ever; toggling like/dislike never pays again.
- comment: every comment pays.
- share:   every share pays.
- join:    once per (user, campaign) ever; leaving costs a flat LEAVE_PENALTY.

Every function returns (ok, result_or_message).
"""

from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from google.api_core import exceptions as gapi_exceptions

import config
from config import get_db
import campaign_lifecycle
import campaign_manager
import gamification_rules
import points_config
import rank_table
import score_log
import user_service


def _clean(s: Any) -> str:
    """Convert input to a trimmed string safely."""
    return str(s).strip() if s is not None else ""


def _participations():
    return get_db().collection(config.PARTICIPATION_COL)


def _likes(campaign_id: str):
    return (get_db().collection(config.CAMPAIGNS_COL).document(campaign_id)
            .collection(config.LIKES_SUBCOL))


def _load(uid: str, campaign_id: str, action: str):
    """
    Shared eligibility check.

    Returns:
        (user, campaign, None) or (None, None, error_message)
    """
    user = user_service.get_user_details(_clean(uid))
    refusal = user_service.eligibility_error(user)
    if refusal:
        return None, None, refusal

    campaign = campaign_manager.get_campaign(campaign_id)
    refusal = campaign_lifecycle.check_action(campaign, action)
    if refusal:
        return None, None, refusal
    return user, campaign, None


def _result(award: dict | None, msg: str, **extra) -> dict:
    award = award or {}
    out = {
        "points_earned": award.get("points_earned", 0),
        "new_total": award.get("new_total"),
        "frame_tier": award.get("frame_tier"),
        "rank_change": award.get("rank_change"),
        "msg": msg,
    }
    out.update(extra)
    return out


# ==========================================
# LIKE (toggle)
# ==========================================

def _find_like(uid: str, campaign_id: str):
    ref = _likes(campaign_id).document(uid)
    doc = ref.get(timeout=config.REMOTE_TIMEOUT)
    if doc.exists:
        return doc
    # Likes written with auto ids
    legacy = _likes(campaign_id).where("uid", "==", uid).limit(1).stream(timeout=config.REMOTE_TIMEOUT)
    return next(iter(legacy), None)


def like_campaign(uid: str, campaign_id: str) -> tuple[bool, Any]:
    """
    First like creates the record and pays `like` points.
    Later calls flip like <-> dislike without touching points.
    """
    try:
        user, campaign, refusal = _load(uid, campaign_id, "like")
        if refusal:
            return False, refusal
        uid, cid = user["uid"], campaign["id"]

        existing = _find_like(uid, cid)
        if existing is not None:
            new_type = "dislike" if (existing.to_dict() or {}).get("type") == "like" else "like"
            existing.reference.update({"type": new_type}, timeout=config.REMOTE_TIMEOUT)
            verb = "liked" if new_type == "like" else "unliked"
            return True, _result(None, f"You {verb} the campaign.", liked=new_type == "like")

        like_ref = _likes(cid).document(uid)
        record = {"uid": uid, "type": "like"}
        event_key = f"like_{cid}_{uid}"

        if score_log.has_entry(event_key):
            like_ref.set(record, timeout=config.REMOTE_TIMEOUT)
            return True, _result(None, "You liked the campaign!", liked=True)

        pts = gamification_rules.get_points_for_action(points_config.get_points_config(cid), "like")
        try:
            award = user_service.apply_award(
                uid, "like", pts, campaign_id=cid, event_key=event_key,
                extra_writes=[("set", like_ref, record)],
            )
        except gapi_exceptions.AlreadyExists:
            like_ref.set(record, timeout=config.REMOTE_TIMEOUT)
            return True, _result(None, "You liked the campaign!", liked=True)

        return True, _result(award, f"You liked the campaign! You earned {pts} points!", liked=True)

    except Exception as e:
        return False, f"System Error: {e}. Please try again."


# ==========================================
# COMMENT
# ==========================================

def comment_on_campaign(uid: str, campaign_id: str, text: str) -> tuple[bool, Any]:
    """Every comment pays `comment` points. Author details are frozen on the comment."""
    text = _clean(text)
    if not text:
        return False, "Error: Comment cannot be empty."

    try:
        user, campaign, refusal = _load(uid, campaign_id, "comment")
        if refusal:
            return False, refusal
        uid, cid = user["uid"], campaign["id"]

        ranks = rank_table.get_rank_table()
        tier = user.get("frameTier") or gamification_rules.compute_tier(int(user.get("points") or 0), ranks)

        campaign_ref = get_db().collection(config.CAMPAIGNS_COL).document(cid)
        comment_ref = get_db().collection(config.COMMENTS_COL).document()
        comment = {
            "comment": text,
            "uid": uid,
            "displayName": user.get("displayName") or "Anonymous",
            "email": user.get("email", ""),
            "userPhotoURL": user.get("profilepictureURL", ""),
            "frameTier": tier,
            "rankImage": gamification_rules.badge_for_tier(tier, ranks),
            "campaignRef": campaign_ref,
            "campaignId": cid,
            "timestamp": firestore.SERVER_TIMESTAMP,
        }

        pts = gamification_rules.get_points_for_action(points_config.get_points_config(cid), "comment")
        award = user_service.apply_award(
            uid, "comment", pts, campaign_id=cid, event_key=f"comment_{comment_ref.id}",
            extra_writes=[("create", comment_ref, comment)],
        )
        return True, _result(award, f"Comment added successfully and earned {pts} points!",
                             comment_id=comment_ref.id)

    except Exception as e:
        return False, f"System Error: {e}. Please try again."


def delete_comment(actor_uid: str, comment_id: str) -> tuple[bool, str]:
    """Author or admin. Points earned by the comment are kept."""
    try:
        ref = get_db().collection(config.COMMENTS_COL).document(_clean(comment_id))
        doc = ref.get(timeout=config.REMOTE_TIMEOUT)
        if not doc.exists:
            return False, "Error: Comment not found."

        actor = user_service.get_user_details(actor_uid)
        if not (user_service.is_admin(actor) or (actor and actor.get("uid") == doc.to_dict().get("uid"))):
            return False, "Error: You cannot delete this comment."

        ref.delete(timeout=config.REMOTE_TIMEOUT)
        return True, "Success: Comment deleted."
    except Exception as e:
        return False, f"System Error: {e}. Please try again."


# ==========================================
# SHARE
# ==========================================

def share_campaign(uid: str, campaign_id: str) -> tuple[bool, Any]:
    """Shares are repeatable: each one is recorded and pays `share` points."""
    try:
        user, campaign, refusal = _load(uid, campaign_id, "share")
        if refusal:
            return False, refusal
        uid, cid = user["uid"], campaign["id"]

        share_ref = _participations().document()
        record = {
            "campaignid": cid,
            "uid": uid,
            "displayName": user.get("displayName") or "Anonymous",
            "joindate": firestore.SERVER_TIMESTAMP,
            "status": "shared",
        }

        pts = gamification_rules.get_points_for_action(points_config.get_points_config(cid), "share")
        award = user_service.apply_award(
            uid, "share", pts, campaign_id=cid, event_key=f"share_{share_ref.id}",
            extra_writes=[("create", share_ref, record)],
        )
        return True, _result(award, f"Campaign shared successfully and earned {pts} points!",
                             share_id=share_ref.id)

    except Exception as e:
        return False, f"System Error: {e}. Please try again."


# ==========================================
# JOIN / LEAVE
# ==========================================

def participation_id(campaign_id: str, uid: str) -> str:
    return f"{campaign_id}_{uid}"


def _find_join(uid: str, campaign_id: str):
    doc = _participations().document(participation_id(campaign_id, uid)).get(timeout=config.REMOTE_TIMEOUT)
    if doc.exists:
        return doc
    # Participations written with auto ids
    legacy = (_participations()
              .where("campaignid", "==", campaign_id)
              .where("uid", "==", uid)
              .where("status", "==", "joined")
              .limit(1)
              .stream(timeout=config.REMOTE_TIMEOUT))
    return next(iter(legacy), None)


def join_campaign(uid: str, campaign_id: str) -> tuple[bool, Any]:
    """
    Volunteers only. One joined record per (user, campaign).
    `join` points are paid the first time only; re-joining after leaving pays nothing.
    """
    try:
        user, campaign, refusal = _load(uid, campaign_id, "join")
        if refusal:
            return False, refusal
        if user.get("role") != "volunteer":
            return False, "Error: Only volunteers can join campaigns."
        uid, cid = user["uid"], campaign["id"]

        if _find_join(uid, cid) is not None:
            return False, "Error: You already joined this campaign."

        part_ref = _participations().document(participation_id(cid, uid))
        record = {
            "campaignid": cid,
            "uid": uid,
            "displayName": user.get("displayName") or "Anonymous",
            "profilepictureURL": user.get("profilepictureURL", ""),
            "frameTier": user.get("frameTier"),
            "joindate": firestore.SERVER_TIMESTAMP,
            "status": "joined",
            "isPresent": False,
        }
        event_key = f"join_{cid}_{uid}"

        if score_log.has_entry(event_key):
            part_ref.create(record, timeout=config.REMOTE_TIMEOUT)
            return True, _result(None, "You re-joined the campaign. Join points are only earned once.")

        pts = gamification_rules.get_points_for_action(points_config.get_points_config(cid), "join")
        award = user_service.apply_award(
            uid, "join", pts, campaign_id=cid, event_key=event_key,
            extra_writes=[("create", part_ref, record)],
        )
        return True, _result(award, f"Successfully joined the campaign and earned {pts} points!")

    except gapi_exceptions.AlreadyExists:
        return False, "Error: You already joined this campaign."
    except Exception as e:
        return False, f"System Error: {e}. Please try again."


def leave_campaign(uid: str, campaign_id: str) -> tuple[bool, Any]:
    """
    Removes the joined record and deducts the flat LEAVE_PENALTY
    (never below 0 points), whatever the join originally paid.
    The deduction is capped at the current total; see "Leave penalty" in DESIGN.md.
    """
    try:
        user = user_service.get_user_details(_clean(uid))
        if not user:
            return False, "Error: You must be logged in."
        campaign = campaign_manager.get_campaign(campaign_id)
        refusal = campaign_lifecycle.check_action(campaign, "leave")
        if refusal:
            return False, refusal
        uid, cid = user["uid"], campaign["id"]

        part = _find_join(uid, cid)
        if part is None:
            return False, "Error: You have not joined this campaign."

        penalty = min(config.LEAVE_PENALTY, max(int(user.get("points") or 0), 0))
        award = user_service.apply_award(
            uid, "leave", -penalty, campaign_id=cid,
            extra_writes=[("delete", part.reference, None)],
        )
        return True, _result(award, f"Successfully left the campaign and lost {penalty} points.")

    except Exception as e:
        return False, f"System Error: {e}. Please try again."


# ==========================================
# COUNTS / LISTS
# ==========================================

def count_likes(campaign_id: str) -> int:
    q = _likes(campaign_id).where("type", "==", "like")
    return sum(1 for _ in q.stream(timeout=config.REMOTE_TIMEOUT))


def count_shares(campaign_id: str) -> int:
    q = (_participations()
         .where("campaignid", "==", campaign_id)
         .where("status", "==", "shared"))
    return sum(1 for _ in q.stream(timeout=config.REMOTE_TIMEOUT))


def list_joined_volunteers(campaign_id: str) -> list[dict]:
    q = (_participations()
         .where("campaignid", "==", campaign_id)
         .where("status", "==", "joined"))
    out = []
    for doc in q.stream(timeout=config.REMOTE_TIMEOUT):
        d = doc.to_dict()
        d["id"] = doc.id
        out.append(d)
    return out


def list_user_participations(uid: str) -> list[dict]:
    q = _participations().where("uid", "==", uid).where("status", "==", "joined")
    out = []
    for doc in q.stream(timeout=config.REMOTE_TIMEOUT):
        d = doc.to_dict()
        d["id"] = doc.id
        out.append(d)
    return out


def list_comments(campaign_id: str) -> list[dict]:
    """Newest first."""
    q = get_db().collection(config.COMMENTS_COL).where("campaignId", "==", campaign_id)
    out = []
    for doc in q.stream(timeout=config.REMOTE_TIMEOUT):
        d = doc.to_dict()
        d["id"] = doc.id
        d.pop("campaignRef", None)
        out.append(d)
    out.sort(key=lambda c: str(c.get("timestamp") or ""), reverse=True)
    return out
