from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from firebase_admin import firestore

import config
from config import get_db
import gamification_rules
import notifications
import rank_table
import score_log

ROLES = ("user", "volunteer", "campaignManager", "admin")
ACCOUNT_STATUSES = ("pending", "approved", "rejected")


def _users():
    return get_db().collection(config.USERS_COL)


# ==========================================
# USER DOCUMENTS
# ==========================================

def ensure_user_document(uid, display_name="", email="", photo_url="", facebook_id=""):
    """
    Called on every sign-in. Creates users/{uid} the first time
    (points=0, lowest tier, role 'user', status 'pending').

    Returns:
        (ok, user_data_or_error)
    """
    try:
        if not uid:
            return False, "Error: Missing user id."

        user_ref = _users().document(uid)
        doc = user_ref.get(timeout=config.REMOTE_TIMEOUT)
        if doc.exists:
            return True, doc.to_dict()

        ranks = rank_table.get_rank_table()
        start_rank = gamification_rules.compute_rank(0, ranks)
        new_user = {
            'uid': uid,
            'displayName': display_name or "",
            'email': email or "",
            'profilepictureURL': photo_url or "",
            'facebookID': facebook_id or "",
            'role': 'user',
            'status': 'pending',
            'blocked': False,
            'points': 0,
            'frameTier': start_rank['name'],
            'frameTierPoints': start_rank['points'],
            'createdAt': firestore.SERVER_TIMESTAMP,
        }
        user_ref.set(new_user, timeout=config.REMOTE_TIMEOUT)
        return True, user_ref.get(timeout=config.REMOTE_TIMEOUT).to_dict()

    except Exception as e:
        return False, f"System Error: {str(e)}"


def get_user_details(uid):
    """
    Fetches user data. Returns None if the user does not exist.
    """
    if not uid:
        return None
    doc = _users().document(uid).get(timeout=config.REMOTE_TIMEOUT)
    if doc.exists:
        data = doc.to_dict()
        data.setdefault('uid', doc.id)
        return data
    return None


def is_admin(user: Optional[Dict[str, Any]]) -> bool:
    return bool(user) and user.get('role') == 'admin' and not user.get('blocked')


def eligibility_error(user: Optional[Dict[str, Any]]) -> Optional[str]:
    """User-facing reason why this user may not earn points, or None."""
    if not user:
        return "Error: You must be logged in."
    if user.get('blocked'):
        return "Error: Your account is blocked."
    if user.get('status') != 'approved':
        return "Error: Your account is not approved yet."
    return None


def select_role(uid, role):
    """
    Role chosen after first sign-in.
    Volunteers are approved immediately; campaign managers wait for an admin.
    """
    try:
        if role not in ('volunteer', 'campaignManager'):
            return False, "Error: Role must be 'volunteer' or 'campaignManager'."

        user = get_user_details(uid)
        if not user:
            return False, "Error: User not found."
        if user.get('blocked'):
            return False, "Error: Your account is blocked."
        if user.get('role') in ('volunteer', 'campaignManager', 'admin'):
            return False, "Error: A role has already been selected."

        status = 'approved' if role == 'volunteer' else 'pending'
        _users().document(uid).update({'role': role, 'status': status}, timeout=config.REMOTE_TIMEOUT)

        label = "Volunteer" if role == 'volunteer' else "Campaign Manager"
        return True, f"Success: You are now a {label}."
    except Exception as e:
        return False, f"System Error: {str(e)}"


def _moderate(admin_uid, uid, updates, success_msg):
    try:
        if not is_admin(get_user_details(admin_uid)):
            return False, "Error: Only administrators can do this."
        if not get_user_details(uid):
            return False, "Error: User not found."
        _users().document(uid).update(updates, timeout=config.REMOTE_TIMEOUT)
        return True, success_msg
    except Exception as e:
        return False, f"System Error: {str(e)}"


def approve_account(admin_uid, uid):
    return _moderate(admin_uid, uid, {'status': 'approved'}, "Success: Account approved.")


def reject_account(admin_uid, uid):
    return _moderate(admin_uid, uid, {'status': 'rejected'}, "Success: Account rejected.")


def set_blocked(admin_uid, uid, blocked):
    msg = "Success: User blocked." if blocked else "Success: User unblocked."
    return _moderate(admin_uid, uid, {'blocked': bool(blocked)}, msg)


def toggle_block(admin_uid, uid):
    user = get_user_details(uid)
    if not user:
        return False, "Error: User not found."
    return set_blocked(admin_uid, uid, not user.get('blocked'))


def delete_user(admin_uid, uid):
    """Hard delete (admin only). Score log rows are kept as history."""
    try:
        if not is_admin(get_user_details(admin_uid)):
            return False, "Error: Only administrators can do this."
        if admin_uid == uid:
            return False, "Error: Administrators cannot delete themselves."
        if not get_user_details(uid):
            return False, "Error: User not found."
        _users().document(uid).delete(timeout=config.REMOTE_TIMEOUT)
        return True, "Success: User deleted."
    except Exception as e:
        return False, f"System Error: {str(e)}"


# ==========================================
# GAMIFICATION FUNCTIONS
# ==========================================

def _rank_change(uid, old_tier, new_rank, ranks, old_threshold=None) -> Optional[notifications.RankChange]:
    direction = gamification_rules.detect_transition(old_tier, new_rank['name'], ranks, old_threshold)
    if direction == gamification_rules.NONE:
        return None
    change = notifications.RankChange(
        uid=uid,
        direction=direction,
        tier_name=new_rank['name'],
        badge_image=new_rank.get('image') or gamification_rules.DEFAULT_BADGE,
        previous_tier=old_tier,
    )
    print(f"[Rank] {uid}: {direction} {old_tier} -> {new_rank['name']}")
    notifications.emit(change)
    return change


def reconcile_user_tier(uid, ranks: Optional[List[Dict[str, Any]]] = None,
                        previous_tier: Optional[str] = None,
                        previous_threshold: Optional[int] = None):
    """
    Recompute frameTier from the live point total and persist it if it drifted.
    frameTierPoints keeps the threshold the tier had when it was assigned, so
    a tier that is later renamed or deleted can still be compared.
    previous_tier / previous_threshold override the stored values as the
    "before" side of the comparison (used right after an award that already
    wrote a tentative tier).

    Returns:
        RankChange or None
    """
    if ranks is None:
        ranks = rank_table.get_rank_table()

    user_ref = _users().document(uid)
    doc = user_ref.get(timeout=config.REMOTE_TIMEOUT)
    if not doc.exists:
        return None
    data = doc.to_dict()

    stored_tier = data.get('frameTier')
    stored_threshold = data.get('frameTierPoints')
    new_rank = gamification_rules.compute_rank(int(data.get('points') or 0), ranks)
    if stored_tier != new_rank['name'] or stored_threshold != new_rank['points']:
        user_ref.update({
            'frameTier': new_rank['name'],
            'frameTierPoints': new_rank['points'],
        }, timeout=config.REMOTE_TIMEOUT)

    if previous_tier is None:
        return _rank_change(uid, stored_tier, new_rank, ranks, stored_threshold)
    return _rank_change(uid, previous_tier, new_rank, ranks, previous_threshold)


def reconcile_all_users(ranks: Optional[List[Dict[str, Any]]] = None) -> List[notifications.RankChange]:
    """Run after a rank-table edit: every user's tier is recomputed."""
    if ranks is None:
        ranks = rank_table.get_rank_table(use_cache=False)

    changes = []
    for doc in _users().stream(timeout=config.REMOTE_TIMEOUT):
        try:
            change = reconcile_user_tier(doc.id, ranks)
        except gamification_rules.InvariantViolation as e:
            print(f"[Warning] Could not reconcile {doc.id}: {e}")
            continue
        if change:
            changes.append(change)
    return changes


def apply_award(uid, log_type, score, campaign_id=None, event_key=None,
                extra_writes: Optional[Iterable[tuple]] = None,
                log_extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    The closing sequence shared by every point-earning action, as ONE batch:
    extra writes (the interaction record) + points Increment + tentative
    frameTier + score log row. The log row is written with create(), so a
    fixed event_key makes the whole batch fail with AlreadyExists if the
    award was already made.

    After commit the tier is reconciled against the live total.

    extra_writes: (op, ref, data) tuples, op in set/create/update/delete.

    Raises:
        LookupError: the user does not exist.
        google.api_core.exceptions.AlreadyExists: already awarded.
    """
    db = get_db()
    user_ref = _users().document(uid)
    snap = user_ref.get(timeout=config.REMOTE_TIMEOUT)
    if not snap.exists:
        raise LookupError(f"User {uid} not found")

    user = snap.to_dict()
    user.setdefault('uid', uid)
    old_tier = user.get('frameTier')
    old_threshold = user.get('frameTierPoints')
    score = int(score)

    ranks = rank_table.get_rank_table()
    projected = int(user.get('points') or 0) + score
    rank = gamification_rules.compute_rank(projected, ranks)
    badge = rank.get('image') or gamification_rules.DEFAULT_BADGE

    batch = db.batch()
    for op, ref, data in extra_writes or ():
        if op == 'delete':
            batch.delete(ref)
        else:
            getattr(batch, op)(ref, data)
    batch.update(user_ref, {
        'points': firestore.Increment(score),
        'frameTier': rank['name'],
        'frameTierPoints': rank['points'],
    })
    batch.create(
        score_log.log_ref(event_key),
        score_log.build_entry(log_type, score, user, rank['name'], badge, campaign_id, log_extra),
    )
    batch.commit(timeout=config.REMOTE_TIMEOUT)

    change = reconcile_user_tier(uid, ranks, previous_tier=old_tier, previous_threshold=old_threshold)
    fresh = get_user_details(uid) or {}

    return {
        'uid': uid,
        'points_earned': score,
        'new_total': int(fresh.get('points') or 0),
        'frame_tier': fresh.get('frameTier', rank['name']),
        'rank_change': change,
    }


def get_leaderboard(limit=5):
    try:
        users_ref = _users()
        query = users_ref.order_by('points', direction=firestore.Query.DESCENDING).limit(int(limit))
        results = query.stream(timeout=config.REMOTE_TIMEOUT)

        leaderboard_data = []
        for doc in results:
            data = doc.to_dict()
            leaderboard_data.append({
                'uid': data.get('uid', doc.id),
                'displayName': data.get('displayName'),
                'points': data.get('points', 0),
                'frameTier': data.get('frameTier'),
            })
        return leaderboard_data
    except Exception as e:
        print(f"Error: {e}")
        return []
