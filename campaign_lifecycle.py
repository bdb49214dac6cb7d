"""
Campaign lifecycle state machine.

Stored fields            -> phase
status=pending           -> "pending"
status=approved, !isDone -> "approved"
isDone, !isScoreApplied  -> "done"
isDone, isScoreApplied   -> "scored"

Rejection deletes the campaign, so "rejected" is never observed as a
phase; a stored status of "rejected" (legacy data) allows only deletion.
"""

PENDING = "pending"
APPROVED = "approved"
DONE = "done"
SCORED = "scored"
REJECTED = "rejected"

ALLOWED_ACTIONS = {
    PENDING: {"approve", "reject", "edit", "delete"},
    APPROVED: {"like", "comment", "share", "join", "leave", "mark_done",
               "edit_points", "edit", "delete"},
    DONE: {"like", "comment", "share", "apply_score", "edit_points", "delete"},
    SCORED: {"like", "comment", "share", "delete"},
    REJECTED: {"delete"},
}

_REFUSALS = {
    PENDING: "This campaign is still waiting for approval.",
    APPROVED: "This campaign is still ongoing.",
    DONE: "This campaign is already done.",
    SCORED: "Attendance score was already applied to this campaign.",
    REJECTED: "This campaign was rejected.",
}


def campaign_phase(campaign):
    status = (campaign or {}).get("status")
    if status == APPROVED:
        if not campaign.get("isDone"):
            return APPROVED
        return SCORED if campaign.get("isScoreApplied") else DONE
    if status == REJECTED:
        return REJECTED
    return PENDING


def can(campaign, action):
    return action in ALLOWED_ACTIONS[campaign_phase(campaign)]


def check_action(campaign, action):
    """None if allowed, otherwise a user-facing 'Error: ...' message."""
    if not campaign:
        return "Error: Campaign not found."
    phase = campaign_phase(campaign)
    if action in ALLOWED_ACTIONS[phase]:
        return None
    return f"Error: Cannot {action.replace('_', ' ')}. {_REFUSALS[phase]}"
