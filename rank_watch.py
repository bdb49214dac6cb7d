"""
Real-time rank reconciliation.

frameTier is a cache of compute_tier(points, rank table). Any session
that sees either input change re-runs the engine, not only the session
that wrote the change:

- rank table listener: every push replaces the cached table, then the
  watched users (or all users, for an admin session) are reconciled;
- user listener: a pushed user document whose frameTier no longer
  matches its points is reconciled.

Firestore delivers snapshots on its own thread, so watcher state is
guarded by a lock.
"""

import threading

import config
from config import get_db
import gamification_rules
import rank_table
import user_service


def _snapshot_to_rank(doc):
    d = doc.to_dict() or {}
    d["id"] = doc.id
    return d


class RankWatcher:

    def __init__(self, reconcile_all=False):
        self.reconcile_all = reconcile_all
        self._lock = threading.Lock()
        self._user_watches = {}
        self._rank_watch = None

    # ---------- lifecycle ----------

    def start(self):
        if self._rank_watch is None:
            col = get_db().collection(config.RANKS_COL)
            self._rank_watch = col.on_snapshot(self.on_rank_snapshot)
            print("[Watch] Listening for rank table changes")
        return self

    def stop(self):
        with self._lock:
            watches = list(self._user_watches.values())
            self._user_watches.clear()
            rank_watch, self._rank_watch = self._rank_watch, None
        for w in watches:
            w.unsubscribe()
        if rank_watch is not None:
            rank_watch.unsubscribe()
        print("[Watch] Stopped")

    def watch_user(self, uid):
        with self._lock:
            if uid in self._user_watches:
                return
            ref = get_db().collection(config.USERS_COL).document(uid)
            self._user_watches[uid] = ref.on_snapshot(self.on_user_snapshot)

    def unwatch_user(self, uid):
        with self._lock:
            watch = self._user_watches.pop(uid, None)
        if watch is not None:
            watch.unsubscribe()

    @property
    def watched_users(self):
        with self._lock:
            return sorted(self._user_watches)

    # ---------- callbacks ----------

    def on_rank_snapshot(self, col_snapshot, changes, read_time):
        ranks = gamification_rules.sort_rank_table(_snapshot_to_rank(d) for d in col_snapshot)
        rank_table.prime_rank_cache(ranks)

        try:
            if self.reconcile_all:
                changes_made = user_service.reconcile_all_users(ranks)
            else:
                changes_made = [c for c in (user_service.reconcile_user_tier(uid, ranks)
                                            for uid in self.watched_users) if c]
            if changes_made:
                print(f"[Watch] Rank table change moved {len(changes_made)} user(s)")
        except Exception as e:
            print(f"[Watch] Reconciliation after rank table change failed: {e}")

    def on_user_snapshot(self, doc_snapshot, changes, read_time):
        ranks = rank_table.get_rank_table()
        for doc in doc_snapshot:
            if not doc.exists:
                continue
            data = doc.to_dict() or {}
            expected = gamification_rules.compute_tier(int(data.get("points") or 0), ranks)
            if data.get("frameTier") == expected:
                continue
            try:
                user_service.reconcile_user_tier(doc.id, ranks)
            except Exception as e:
                print(f"[Watch] Reconciling {doc.id} failed: {e}")
