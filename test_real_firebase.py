"""
Manual smoke run against a live Firestore project (or the emulator when
FIRESTORE_EMULATOR_HOST is set). Not collected by pytest.

    python test_real_firebase.py
"""

import config
from config import get_db
import campaign_manager
import interactions
import logic_handler
import rank_table
import score_log
import user_service

# ==========================================
# TEST CONFIGURATION
# ==========================================
ADMIN_UID = "smoke_admin"
MANAGER_UID = "smoke_manager"
VOLUNTEER_UID = "smoke_volunteer"

POINTS = {"like": 10, "comment": 5, "share": 3, "join": 20, "campaignManager": 50}


# ==========================================
# HELPER FUNCTIONS
# ==========================================
def print_header(text):
    print("\n" + "=" * 60)
    print(f"   {text}")
    print("=" * 60)


def print_outcome(label, outcome):
    print(f"[{label}] -> {logic_handler.summarize(outcome)}")


def run():
    print_header("STARTING SYSTEM TEST: CAMPAIGNS & RANKS")

    # ---------------------------------------------------------
    # SECTION 1: SETUP
    # Goal: Rank table plus one user per role.
    # ---------------------------------------------------------
    print("\n--- 1. Setup ---")
    print(f"[Setup] Seeded {rank_table.seed_default_ranks()} tiers")

    for uid in (ADMIN_UID, MANAGER_UID, VOLUNTEER_UID):
        ok, user = user_service.ensure_user_document(uid, uid.replace("_", " ").title(), f"{uid}@example.org")
        print(f"[Setup] {uid}: {user if not ok else user['frameTier']}")

    # Admins are promoted by hand in the console
    get_db().collection(config.USERS_COL).document(ADMIN_UID).update(
        {"role": "admin", "status": "approved"}, timeout=config.REMOTE_TIMEOUT)
    print(user_service.select_role(VOLUNTEER_UID, "volunteer")[1])
    print(user_service.select_role(MANAGER_UID, "campaignManager")[1])
    print(user_service.approve_account(ADMIN_UID, MANAGER_UID)[1])

    # ---------------------------------------------------------
    # SECTION 2: LIFECYCLE (NEGATIVE TESTING)
    # Goal: Interactions on a pending campaign are blocked.
    # ---------------------------------------------------------
    print("\n--- 2. Testing Pending Campaign (Expect Errors) ---")
    ok, campaign_id = campaign_manager.submit_campaign(
        MANAGER_UID, "Smoke test clean-up",
        {"what": "Litter pick", "where": "Riverside", "when": "2030-01-01T10:00:00"})
    print(f"[Submit] -> {campaign_id}")
    if not ok:
        return

    print_outcome("Like While Pending", logic_handler.handle_gamified_action(VOLUNTEER_UID, "like", campaign_id))
    # Expected: Error: Cannot like. This campaign is still waiting for approval.

    # ---------------------------------------------------------
    # SECTION 3: APPROVAL & INTERACTIONS (POSITIVE TESTING)
    # ---------------------------------------------------------
    print("\n--- 3. Testing Approval & Interactions ---")
    ok, result = campaign_manager.approve_campaign(ADMIN_UID, campaign_id, POINTS)
    print(f"[Approve] -> {result}")

    print_outcome("Like", logic_handler.handle_gamified_action(VOLUNTEER_UID, "like", campaign_id))
    print_outcome("Like Again", logic_handler.handle_gamified_action(VOLUNTEER_UID, "like", campaign_id))
    # Expected: no points the second time
    print_outcome("Comment", logic_handler.handle_gamified_action(
        VOLUNTEER_UID, "comment", campaign_id, text="See you there!"))
    print_outcome("Share", logic_handler.handle_gamified_action(VOLUNTEER_UID, "share", campaign_id))
    print_outcome("Join", logic_handler.handle_gamified_action(VOLUNTEER_UID, "join", campaign_id))

    # ---------------------------------------------------------
    # SECTION 4: COMPLETION & ATTENDANCE
    # ---------------------------------------------------------
    print("\n--- 4. Testing Attendance Score ---")
    pid = interactions.participation_id(campaign_id, VOLUNTEER_UID)
    print(campaign_manager.mark_done(MANAGER_UID, campaign_id, [pid])[1])
    print_outcome("Attendance", logic_handler.handle_gamified_action(
        MANAGER_UID, "attendance", campaign_id, score=500))
    print_outcome("Attendance Again", logic_handler.handle_gamified_action(
        MANAGER_UID, "attendance", campaign_id, score=500))
    # Expected: Error: Cannot apply score. Attendance score was already applied to this campaign.

    # ---------------------------------------------------------
    # SECTION 5: LEDGER & LEADERBOARD
    # ---------------------------------------------------------
    print("\n--- 5. Testing Ledger & Leaderboard ---")
    user = user_service.get_user_details(VOLUNTEER_UID)
    ledger = score_log.ledger_total(VOLUNTEER_UID)
    print(f"[Ledger] points={user['points']} ledger={ledger} tier={user['frameTier']}")

    print(f"{'RANK':<6} {'NAME':<20} {'POINTS':<7} {'TIER':<10}")
    print("-" * 45)
    for i, player in enumerate(user_service.get_leaderboard()):
        print(f"{i + 1:<6} {str(player['displayName']):<20} {player['points']:<7} {player['frameTier']:<10}")

    # ---------------------------------------------------------
    # SECTION 6: CLEANUP
    # ---------------------------------------------------------
    print("\n--- 6. Cleanup ---")
    print(campaign_manager.delete_campaign(ADMIN_UID, campaign_id)[1])
    for uid in (MANAGER_UID, VOLUNTEER_UID):
        print(user_service.delete_user(ADMIN_UID, uid)[1])
    get_db().collection(config.USERS_COL).document(ADMIN_UID).delete(timeout=config.REMOTE_TIMEOUT)

    print("\n" + "=" * 50)
    print("      TEST COMPLETED SUCCESSFULLY")
    print("=" * 50)


if __name__ == "__main__":
    run()
