import campaign_manager
import interactions
import notifications

ACTIONS = {
    "like": lambda uid, cid, **kw: interactions.like_campaign(uid, cid),
    "comment": lambda uid, cid, **kw: interactions.comment_on_campaign(uid, cid, kw.get("text", "")),
    "share": lambda uid, cid, **kw: interactions.share_campaign(uid, cid),
    "join": lambda uid, cid, **kw: interactions.join_campaign(uid, cid),
    "leave": lambda uid, cid, **kw: interactions.leave_campaign(uid, cid),
    "attendance": lambda uid, cid, **kw: campaign_manager.apply_attendance_score(uid, cid, kw.get("score")),
}


def handle_gamified_action(uid, action_key, campaign_id, **kwargs):
    """
    Executes a point-earning action and turns its result into an
    InteractionOutcome, which is also pushed to notification listeners.
    A tier change has already been emitted as a RankChange by then.
    Never raises: store failures come back as a failed outcome.
    """
    handler = ACTIONS.get(action_key)
    if handler is None:
        outcome = notifications.InteractionOutcome(
            action=action_key, ok=False, uid=uid, campaign_id=campaign_id,
            message=f"Error: Unknown action '{action_key}'.",
        )
        notifications.emit(outcome)
        return outcome

    try:
        ok, result = handler(uid, campaign_id, **kwargs)
    except Exception as e:
        ok, result = False, f"System Error: {e}. Please try again."

    if not ok:
        outcome = notifications.InteractionOutcome(
            action=action_key, ok=False, uid=uid, campaign_id=campaign_id, message=result,
        )
    elif action_key == "attendance":
        awarded = len(result["awarded"])
        outcome = notifications.InteractionOutcome(
            action=action_key, ok=True, uid=uid, campaign_id=campaign_id,
            points_earned=result["score"] * awarded,
            message=f"Score added successfully: {result['score']} points to {awarded} volunteer(s).",
        )
    else:
        outcome = notifications.InteractionOutcome(
            action=action_key, ok=True, uid=uid, campaign_id=campaign_id,
            points_earned=result.get("points_earned", 0),
            rank_change=result.get("rank_change"),
            message=result.get("msg", ""),
        )

    notifications.emit(outcome)
    return outcome


def summarize(outcome):
    """Short user-facing text for a toast."""
    messages = [outcome.message]

    change = outcome.rank_change
    if change is not None:
        if change.direction == "promote":
            messages.append(f"RANK UP! You are now {change.tier_name.title()}!")
        else:
            messages.append(f"Rank down: you are now {change.tier_name.title()}.")

    return "\n".join(m for m in messages if m)
