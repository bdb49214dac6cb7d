"""Pytest fixtures: every test runs against a fresh in-memory Firestore."""

import pytest
from firebase_admin import firestore

import config
import campaign_manager
import gamification_rules
import notifications
import rank_table
from tests.fake_firestore import FakeFirestore

POINTS = {"like": 10, "comment": 5, "share": 3, "join": 20, "campaignManager": 50}


@pytest.fixture(autouse=True)
def db(monkeypatch):
    """Fresh FakeFirestore installed as the engine's client; production mode."""
    fake = FakeFirestore()
    config.set_db(fake)
    monkeypatch.setattr(config, "STRICT_INVARIANTS", False)
    monkeypatch.setattr(config, "LEAVE_PENALTY", 10)
    rank_table.clear_rank_cache()
    notifications.clear_listeners()
    yield fake
    notifications.clear_listeners()
    rank_table.clear_rank_cache()
    config.set_db(None)


@pytest.fixture
def strict(monkeypatch):
    """Development mode: invariant violations raise."""
    monkeypatch.setattr(config, "STRICT_INVARIANTS", True)


@pytest.fixture
def ranks(make_user):
    """bronze 0 / silver 500 / gold 1500, created in that order by 'admin'."""
    make_user("admin", role="admin")
    ids = {}
    for name, pts in (("bronze", 0), ("silver", 500), ("gold", 1500)):
        ok, rank_id = rank_table.create_rank("admin", name, pts, f"/badges/{name.upper()}.png")
        assert ok, rank_id
        ids[name] = rank_id
    # Rewritten now the table exists so the stored tier is current
    make_user("admin", role="admin")
    return ids


@pytest.fixture
def make_user(db):
    """Writes users/{uid} directly and returns the uid."""

    def _make(uid, role="volunteer", status="approved", points=0, frame_tier=None, blocked=False):
        tier, threshold = _tier_for(points, frame_tier)
        db.collection(config.USERS_COL).document(uid).set({
            "uid": uid,
            "displayName": uid.title(),
            "email": f"{uid}@example.org",
            "profilepictureURL": "",
            "role": role,
            "status": status,
            "blocked": blocked,
            "points": points,
            "frameTier": tier,
            "frameTierPoints": threshold,
            "createdAt": firestore.SERVER_TIMESTAMP,
        })
        return uid

    return _make


def _tier_for(points, frame_tier=None):
    table = rank_table.get_rank_table(use_cache=False)
    if frame_tier is None:
        rank = gamification_rules.compute_rank(points, table)
        return rank["name"], rank["points"]
    rank = gamification_rules.find_rank(frame_tier, table)
    return frame_tier, rank["points"] if rank else None


@pytest.fixture
def admin(ranks):
    return "admin"


@pytest.fixture
def manager(ranks, make_user):
    return make_user("manager", role="campaignManager")


@pytest.fixture
def volunteer(ranks, make_user):
    return make_user("vol")


@pytest.fixture
def pending_campaign(manager):
    ok, cid = campaign_manager.submit_campaign(
        manager, "Beach clean-up",
        {"what": "Pick up plastic", "where": "North beach", "when": "2024-06-01T09:00:00"},
        ["https://img.example.org/beach.png"],
    )
    assert ok, cid
    return cid


@pytest.fixture
def approved_campaign(admin, pending_campaign):
    ok, result = campaign_manager.approve_campaign(admin, pending_campaign, dict(POINTS))
    assert ok, result
    return pending_campaign
