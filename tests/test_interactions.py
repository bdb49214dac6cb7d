"""Tests for the interaction ledger and the awards it triggers."""

import config
import campaign_manager
import interactions
import points_config
import score_log
import user_service


def _points(uid):
    return user_service.get_user_details(uid)["points"]


def test_like_pays_once_and_then_toggles(volunteer, approved_campaign):
    ok, first = interactions.like_campaign(volunteer, approved_campaign)
    assert ok and first["points_earned"] == 10 and first["liked"] is True
    assert interactions.count_likes(approved_campaign) == 1

    ok, second = interactions.like_campaign(volunteer, approved_campaign)
    assert ok and second["liked"] is False and second["points_earned"] == 0
    assert interactions.count_likes(approved_campaign) == 0

    ok, third = interactions.like_campaign(volunteer, approved_campaign)
    assert ok and third["liked"] is True and third["points_earned"] == 0
    assert _points(volunteer) == 10


def test_like_record_lost_does_not_pay_again(volunteer, approved_campaign, db):
    interactions.like_campaign(volunteer, approved_campaign)
    db.collection(config.CAMPAIGNS_COL).document(approved_campaign) \
        .collection(config.LIKES_SUBCOL).document(volunteer).delete()

    ok, result = interactions.like_campaign(volunteer, approved_campaign)
    assert ok and result["liked"] is True and result["points_earned"] == 0
    assert _points(volunteer) == 10


def test_legacy_auto_id_like_is_found(volunteer, approved_campaign, db):
    likes = db.collection(config.CAMPAIGNS_COL).document(approved_campaign).collection(config.LIKES_SUBCOL)
    likes.add({"uid": volunteer, "type": "like"})

    ok, result = interactions.like_campaign(volunteer, approved_campaign)
    assert ok and result["liked"] is False
    assert _points(volunteer) == 0


def test_ineligible_users_earn_nothing(make_user, approved_campaign):
    make_user("pending", status="pending")
    make_user("blocked", blocked=True)
    assert interactions.like_campaign("pending", approved_campaign) == (
        False, "Error: Your account is not approved yet.")
    assert interactions.share_campaign("blocked", approved_campaign) == (
        False, "Error: Your account is blocked.")
    assert interactions.comment_on_campaign("nobody", approved_campaign, "hi") == (
        False, "Error: You must be logged in.")


def test_every_comment_pays_and_freezes_author_tier(volunteer, approved_campaign):
    ok, first = interactions.comment_on_campaign(volunteer, approved_campaign, "Count me in")
    ok2, second = interactions.comment_on_campaign(volunteer, approved_campaign, "Bringing gloves")
    assert ok and ok2
    assert _points(volunteer) == 10

    comments = interactions.list_comments(approved_campaign)
    assert [c["comment"] for c in comments] == ["Bringing gloves", "Count me in"]
    assert comments[0]["frameTier"] == "bronze"
    assert comments[0]["rankImage"] == "/badges/BRONZE.png"
    assert comments[0]["id"] == second["comment_id"]


def test_empty_comment_is_refused(volunteer, approved_campaign):
    assert interactions.comment_on_campaign(volunteer, approved_campaign, "   ") == (
        False, "Error: Comment cannot be empty.")


def test_delete_comment_keeps_points(volunteer, make_user, approved_campaign):
    other = make_user("other")
    _, result = interactions.comment_on_campaign(volunteer, approved_campaign, "hello")
    cid = result["comment_id"]
    assert interactions.delete_comment(other, cid) == (False, "Error: You cannot delete this comment.")
    assert interactions.delete_comment(volunteer, cid) == (True, "Success: Comment deleted.")
    assert interactions.list_comments(approved_campaign) == []
    assert _points(volunteer) == 5


def test_every_share_pays(volunteer, approved_campaign):
    for _ in range(3):
        ok, result = interactions.share_campaign(volunteer, approved_campaign)
        assert ok and result["points_earned"] == 3
    assert interactions.count_shares(approved_campaign) == 3
    assert _points(volunteer) == 9


def test_join_pays_once_and_refuses_duplicates(volunteer, approved_campaign):
    ok, result = interactions.join_campaign(volunteer, approved_campaign)
    assert ok and result["points_earned"] == 20
    assert interactions.join_campaign(volunteer, approved_campaign) == (
        False, "Error: You already joined this campaign.")
    assert [p["uid"] for p in interactions.list_joined_volunteers(approved_campaign)] == [volunteer]
    assert [p["campaignid"] for p in interactions.list_user_participations(volunteer)] == [approved_campaign]
    assert _points(volunteer) == 20


def test_only_volunteers_join(manager, approved_campaign):
    assert interactions.join_campaign(manager, approved_campaign) == (
        False, "Error: Only volunteers can join campaigns.")


def test_join_then_leave_nets_join_minus_penalty(volunteer, approved_campaign):
    interactions.join_campaign(volunteer, approved_campaign)
    ok, result = interactions.leave_campaign(volunteer, approved_campaign)
    assert ok and result["points_earned"] == -10
    assert _points(volunteer) == 20 - 10
    assert interactions.list_joined_volunteers(approved_campaign) == []
    assert interactions.list_user_participations(volunteer) == []

    [leave] = score_log.get_campaign_log(approved_campaign, "leave")
    assert leave["score"] == -10


def test_rejoin_after_leave_pays_nothing(volunteer, approved_campaign):
    interactions.join_campaign(volunteer, approved_campaign)
    interactions.leave_campaign(volunteer, approved_campaign)
    ok, result = interactions.join_campaign(volunteer, approved_campaign)
    assert ok and result["points_earned"] == 0
    assert _points(volunteer) == 10
    assert len(interactions.list_joined_volunteers(approved_campaign)) == 1


def test_leave_penalty_never_goes_below_zero(make_user, approved_campaign, admin):
    points_config.edit_points_config(admin, approved_campaign, {"join": 4})
    uid = make_user("u1")
    interactions.join_campaign(uid, approved_campaign)
    ok, result = interactions.leave_campaign(uid, approved_campaign)
    assert ok and result["points_earned"] == -4
    assert _points(uid) == 0


def test_leave_without_join(volunteer, approved_campaign):
    assert interactions.leave_campaign(volunteer, approved_campaign) == (
        False, "Error: You have not joined this campaign.")


def test_join_and_leave_closed_once_done(volunteer, manager, approved_campaign):
    interactions.join_campaign(volunteer, approved_campaign)
    campaign_manager.mark_done(manager, approved_campaign)
    ok, msg = interactions.leave_campaign(volunteer, approved_campaign)
    assert not ok and msg == "Error: Cannot leave. This campaign is already done."
    ok, _ = interactions.like_campaign(volunteer, approved_campaign)
    assert ok


def test_ledger_matches_points(volunteer, approved_campaign, manager):
    interactions.like_campaign(volunteer, approved_campaign)
    interactions.like_campaign(volunteer, approved_campaign)
    interactions.comment_on_campaign(volunteer, approved_campaign, "hi")
    interactions.share_campaign(volunteer, approved_campaign)
    interactions.join_campaign(volunteer, approved_campaign)
    interactions.leave_campaign(volunteer, approved_campaign)
    interactions.join_campaign(volunteer, approved_campaign)
    campaign_manager.mark_done(manager, approved_campaign,
                               [interactions.participation_id(approved_campaign, volunteer)])
    campaign_manager.apply_attendance_score(manager, approved_campaign, 12)

    assert score_log.ledger_total(volunteer) == _points(volunteer) == 10 + 5 + 3 + 20 - 10 + 12
    assert score_log.ledger_total(manager) == _points(manager) == 50
