"""
campaign_manager.py

Campaigns are proposed by campaign managers and moderated by admins.

Firestore data model:
  campaigns/{campaign_id}
  campaigns/{campaign_id}/points/{campaign_id}   (see points_config.py)
  campaigns/{campaign_id}/likes/{uid}            (see interactions.py)

Each campaign document stores:
- title
- description {what, where, when}
- photoURLs
- managerUid, managerDisplayName, managerPhotoURL
- status ("pending" | "approved")
- isDone, isScoreApplied
- createdAt

Lifecycle rules live in campaign_lifecycle.py; this module performs the
transitions and their side effects.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from firebase_admin import firestore
from google.api_core import exceptions as gapi_exceptions

import config
from config import get_db
import campaign_lifecycle
import gamification_rules
import points_config
import user_service


def _clean(s: Any) -> str:
    """Convert input to a trimmed string safely."""
    return str(s).strip() if s is not None else ""


def _campaigns():
    return get_db().collection(config.CAMPAIGNS_COL)


def _parse_when(value) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    s = _clean(value)
    if not s:
        return None
    try:
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _validate_description(description) -> tuple[bool, Any]:
    if not isinstance(description, dict):
        return False, "Error: Description (what, where, when) is required."
    what = _clean(description.get("what"))
    where = _clean(description.get("where"))
    when = _parse_when(description.get("when"))
    if not what:
        return False, "Error: 'What' is required."
    if not where:
        return False, "Error: 'Where' is required."
    if when is None:
        return False, "Error: 'When' must be a valid date."
    return True, {"what": what, "where": where, "when": when}


def _clean_photos(photo_urls) -> list[str]:
    return [u for u in (_clean(p) for p in (photo_urls or [])) if u]


def _can_manage(user, campaign) -> bool:
    """Admins, or the campaign's own manager."""
    if user_service.is_admin(user):
        return True
    return bool(user) and not user.get("blocked") and user.get("uid") == campaign.get("managerUid")


# ==========================================
# READ
# ==========================================

def get_campaign(campaign_id: str) -> dict | None:
    campaign_id = _clean(campaign_id)
    if not campaign_id:
        return None
    doc = _campaigns().document(campaign_id).get(timeout=config.REMOTE_TIMEOUT)
    if not doc.exists:
        return None
    data = doc.to_dict()
    data["id"] = doc.id
    return data


def list_campaigns(status: str | None = None, manager_uid: str | None = None) -> list[dict]:
    """Newest first. Optional filters on status and owner."""
    q = _campaigns()
    if status:
        q = q.where("status", "==", status)
    if manager_uid:
        q = q.where("managerUid", "==", manager_uid)

    out = []
    for doc in q.stream(timeout=config.REMOTE_TIMEOUT):
        d = doc.to_dict()
        d["id"] = doc.id
        out.append(d)
    out.sort(key=lambda c: str(c.get("createdAt") or ""), reverse=True)
    return out


# ==========================================
# SUBMIT / EDIT
# ==========================================

def submit_campaign(manager_uid: str, title: str, description: dict,
                    photo_urls: list[str] | None = None) -> tuple[bool, str]:
    """
    Create a campaign in "pending".
    Only approved, unblocked campaign-manager accounts may submit.

    Returns:
        (ok, campaign_id_or_error)
    """
    title = _clean(title)
    if not title:
        return False, "Error: Title is required."
    ok, desc = _validate_description(description)
    if not ok:
        return False, desc

    try:
        manager = user_service.get_user_details(manager_uid)
        if not manager:
            return False, "Error: User not found."
        if manager.get("role") != "campaignManager":
            return False, "Error: Only campaign managers can create campaigns."
        if manager.get("blocked"):
            return False, "Error: Your account is blocked."
        if manager.get("status") != "approved":
            return False, "Error: Your campaign manager account is not approved yet."

        ref = _campaigns().document()
        ref.set({
            "title": title,
            "description": desc,
            "photoURLs": _clean_photos(photo_urls),
            "managerUid": manager_uid,
            "managerDisplayName": manager.get("displayName", ""),
            "managerPhotoURL": manager.get("profilepictureURL", ""),
            "status": campaign_lifecycle.PENDING,
            "isDone": False,
            "isScoreApplied": False,
            "createdAt": firestore.SERVER_TIMESTAMP,
        }, timeout=config.REMOTE_TIMEOUT)
        return True, ref.id
    except Exception as e:
        return False, f"System Error: {e}. Please try again."


def edit_campaign(actor_uid: str, campaign_id: str, title: str | None = None,
                  description: dict | None = None,
                  photo_urls: list[str] | None = None) -> tuple[bool, str]:
    updates: dict[str, Any] = {}
    if title is not None:
        title = _clean(title)
        if not title:
            return False, "Error: Title is required."
        updates["title"] = title
    if description is not None:
        ok, desc = _validate_description(description)
        if not ok:
            return False, desc
        updates["description"] = desc
    if photo_urls is not None:
        updates["photoURLs"] = _clean_photos(photo_urls)
    if not updates:
        return False, "Error: Nothing to update."

    try:
        campaign = get_campaign(campaign_id)
        refusal = campaign_lifecycle.check_action(campaign, "edit")
        if refusal:
            return False, refusal
        if not _can_manage(user_service.get_user_details(actor_uid), campaign):
            return False, "Error: You cannot edit this campaign."

        _campaigns().document(campaign["id"]).update(updates, timeout=config.REMOTE_TIMEOUT)
        return True, "Success: Campaign updated."
    except Exception as e:
        return False, f"System Error: {e}. Please try again."


# ==========================================
# MODERATION (admin)
# ==========================================

def approve_campaign(admin_uid: str, campaign_id: str, points: dict[str, Any]) -> tuple[bool, Any]:
    """
    pending -> approved. Creates the campaign's PointsConfig and pays the
    manager the one-off `campaignManager` bonus, all in one batch.

    points: {like, comment, share, join, campaignManager}

    Returns:
        (ok, award_summary_or_error)
    """
    ok, values = gamification_rules.validate_point_values(
        points, fields=gamification_rules.APPROVAL_FIELDS)
    if not ok:
        return False, values

    try:
        if not user_service.is_admin(user_service.get_user_details(admin_uid)):
            return False, "Error: Only administrators can approve campaigns."

        campaign = get_campaign(campaign_id)
        refusal = campaign_lifecycle.check_action(campaign, "approve")
        if refusal:
            return False, refusal

        campaign_ref = _campaigns().document(campaign["id"])
        writes = [
            ("update", campaign_ref, {"status": campaign_lifecycle.APPROVED}),
            ("set", points_config.points_ref(campaign["id"]), points_config.build_points_config(values)),
        ]

        try:
            result = user_service.apply_award(
                campaign["managerUid"], "campaignManager", values["campaignManager"],
                campaign_id=campaign["id"],
                event_key=f"campaignManager_{campaign['id']}",
                extra_writes=writes,
            )
        except LookupError:
            print(f"[Warning] Manager {campaign['managerUid']} not found. Approving without bonus.")
            batch = get_db().batch()
            for op, ref, data in writes:
                getattr(batch, op)(ref, data)
            batch.commit(timeout=config.REMOTE_TIMEOUT)
            result = {"uid": campaign["managerUid"], "points_earned": 0, "rank_change": None}

        return True, result

    except gapi_exceptions.AlreadyExists:
        return False, "Error: This campaign was already approved."
    except Exception as e:
        return False, f"System Error: {e}. Please try again."


def _delete_campaign_tree(campaign_id: str):
    db = get_db()
    campaign_ref = _campaigns().document(campaign_id)

    batch = db.batch()
    ops = 0
    for sub in (config.POINTS_SUBCOL, config.LIKES_SUBCOL):
        for d in campaign_ref.collection(sub).stream(timeout=config.REMOTE_TIMEOUT):
            batch.delete(d.reference)
            ops += 1
            if ops >= 400:
                batch.commit(timeout=config.REMOTE_TIMEOUT)
                batch = db.batch()
                ops = 0
    batch.delete(campaign_ref)
    batch.commit(timeout=config.REMOTE_TIMEOUT)


def reject_campaign(admin_uid: str, campaign_id: str) -> tuple[bool, str]:
    """Rejecting a pending campaign deletes it; no rejected record is kept."""
    try:
        if not user_service.is_admin(user_service.get_user_details(admin_uid)):
            return False, "Error: Only administrators can reject campaigns."

        campaign = get_campaign(campaign_id)
        refusal = campaign_lifecycle.check_action(campaign, "reject")
        if refusal:
            return False, refusal

        _delete_campaign_tree(campaign["id"])
        return True, "Success: Campaign rejected."
    except Exception as e:
        return False, f"System Error: {e}. Please try again."


def delete_campaign(actor_uid: str, campaign_id: str) -> tuple[bool, str]:
    """
    Admin or owning manager. Participations, comments and score logs are
    left in place as history.
    """
    try:
        campaign = get_campaign(campaign_id)
        if not campaign:
            return False, "Error: Campaign not found."
        if not _can_manage(user_service.get_user_details(actor_uid), campaign):
            return False, "Error: You cannot delete this campaign."

        _delete_campaign_tree(campaign["id"])
        return True, "Success: Campaign deleted."
    except Exception as e:
        return False, f"System Error: {e}. Please try again."


# ==========================================
# COMPLETION
# ==========================================

def _joined_participations(campaign_id: str):
    q = (get_db().collection(config.PARTICIPATION_COL)
         .where("campaignid", "==", campaign_id)
         .where("status", "==", "joined"))
    return list(q.stream(timeout=config.REMOTE_TIMEOUT))


def mark_done(actor_uid: str, campaign_id: str,
              present_participation_ids: list[str] | None = None) -> tuple[bool, str]:
    """
    approved -> done. Only the managing user may do this.
    present_participation_ids: joined participations to flag isPresent=True
    first (written in the same batch as isDone).
    """
    try:
        campaign = get_campaign(campaign_id)
        refusal = campaign_lifecycle.check_action(campaign, "mark_done")
        if refusal:
            return False, refusal

        actor = user_service.get_user_details(actor_uid)
        if not actor or actor.get("blocked") or actor.get("uid") != campaign.get("managerUid"):
            return False, "Error: Only the campaign manager can mark this campaign as done."

        wanted = {_clean(pid) for pid in (present_participation_ids or []) if _clean(pid)}
        joined = {d.id: d for d in _joined_participations(campaign["id"])}
        unknown = wanted - set(joined)
        if unknown:
            return False, f"Error: Not joined to this campaign: {', '.join(sorted(unknown))}."

        batch = get_db().batch()
        for pid in wanted:
            batch.update(joined[pid].reference, {"isPresent": True})
        batch.update(_campaigns().document(campaign["id"]), {"isDone": True})
        batch.commit(timeout=config.REMOTE_TIMEOUT)

        return True, f"Success: Campaign marked as done ({len(wanted)} present)."
    except Exception as e:
        return False, f"System Error: {e}. Please try again."


def apply_attendance_score(actor_uid: str, campaign_id: str,
                           score=None) -> tuple[bool, Any]:
    """
    done -> scored. Every present volunteer earns `score` points once.

    Each volunteer's award is its own batch guarded by the key
    attendance_{campaign}_{uid}, so a retry after a partial failure skips
    volunteers already paid. isScoreApplied is set only after all awards
    went through; with no present volunteers it is set immediately.

    Returns:
        (ok, {"awarded": [...uids], "skipped": [...uids], "score": n}) or (False, error)
    """
    if score is None:
        score = config.DEFAULT_ATTENDANCE_SCORE
    ok, cleaned = gamification_rules.validate_point_values({"join": score}, fields=("join",))
    if not ok:
        return False, "Error: Score must be a whole number of at least 0."
    score = cleaned["join"]

    try:
        campaign = get_campaign(campaign_id)
        refusal = campaign_lifecycle.check_action(campaign, "apply_score")
        if refusal:
            return False, refusal
        if not _can_manage(user_service.get_user_details(actor_uid), campaign):
            return False, "Error: Only an administrator or the campaign manager can apply scores."

        awarded, skipped = [], []
        for doc in _joined_participations(campaign["id"]):
            part = doc.to_dict()
            if not part.get("isPresent"):
                continue
            uid = part.get("uid")
            try:
                user_service.apply_award(
                    uid, "join", score,
                    campaign_id=campaign["id"],
                    event_key=f"attendance_{campaign['id']}_{uid}",
                    extra_writes=[("update", doc.reference, {"scoreApplied": True})],
                    log_extra={"attendance": True},
                )
                awarded.append(uid)
            except gapi_exceptions.AlreadyExists:
                print(f"[Score] Attendance for {uid} on {campaign['id']} already applied. Skipping.")
                skipped.append(uid)
            except LookupError:
                print(f"[Warning] Volunteer {uid} no longer exists. Skipping attendance score.")
                skipped.append(uid)

        _campaigns().document(campaign["id"]).update({"isScoreApplied": True}, timeout=config.REMOTE_TIMEOUT)
        return True, {"awarded": awarded, "skipped": skipped, "score": score}

    except Exception as e:
        return False, f"System Error: {e}. Please try again."
