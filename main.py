import threading

import config
import rank_table
from rank_watch import RankWatcher

# ==========================================
# MAIN APPLICATION
# ==========================================


def main():
    print("--- ENVIROLINK RANK ENGINE ---")

    # 1. Initialize Infrastructure
    try:
        config.get_db()
        print("[OK] Database Connected")

        # 2. Seed the rank table (if needed)
        seeded = rank_table.seed_default_ranks()
        if seeded:
            print(f"[OK] Seeded {seeded} default tiers")
        else:
            print("[OK] Rank table ready")

    except Exception as e:
        print(f"[ERROR] Initialization failed: {e}")
        return

    # 3. Keep every user's tier in line with live rank table edits
    watcher = RankWatcher(reconcile_all=True).start()

    print("[SYSTEM] Running. Press Ctrl+C to stop.")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop()


if __name__ == "__main__":
    main()
