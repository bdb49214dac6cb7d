import os
import json
import firebase_admin
from firebase_admin import credentials, firestore
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ==========================================
# PART 1: ENVIRONMENT & PATH CONFIGURATION
# ==========================================

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))

# Check for environment variable first, then fall back to default
KEY_FILENAME = "serviceAccountKey.json"
DEFAULT_CRED_PATH = os.path.join(PROJECT_ROOT, KEY_FILENAME)

# Priority: ENV variable > Default path > Current directory
FIREBASE_CRED_PATH = os.getenv("FIREBASE_CREDENTIALS_PATH", DEFAULT_CRED_PATH)

# Full service-account JSON (used on hosts where a key file cannot be shipped)
FIREBASE_JSON = os.getenv("FIREBASE_JSON")

# Validate key existence
if not FIREBASE_JSON and not os.path.exists(FIREBASE_CRED_PATH):
    # Fallback: check current directory if configured path fails
    if os.path.exists(KEY_FILENAME):
        FIREBASE_CRED_PATH = KEY_FILENAME
    else:
        print(f"[Warning] Firebase key not found at {FIREBASE_CRED_PATH}")


def _int_env(name, default):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"[Warning] {name}={raw!r} is not an integer. Using {default}.")
        return default


def _float_env(name, default):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        print(f"[Warning] {name}={raw!r} is not a number. Using {default}.")
        return default
    if not value > 0:
        print(f"[Warning] {name}={raw!r} must be positive. Using {default}.")
        return default
    return value


# development: invariant violations raise. production: fall back + warn.
ENVIRONMENT = os.getenv("ENVIROLINK_ENV", "production").strip().lower()
STRICT_INVARIANTS = ENVIRONMENT == "development"

# Bounded timeout (seconds) applied to every Firestore call
REMOTE_TIMEOUT = _float_env("FIRESTORE_TIMEOUT_SECONDS", 10.0)

LEAVE_PENALTY = _int_env("LEAVE_PENALTY", 10)
DEFAULT_ATTENDANCE_SCORE = _int_env("DEFAULT_ATTENDANCE_SCORE", 1)
RANK_CACHE_TTL_SECONDS = _int_env("RANK_CACHE_TTL_SECONDS", 60)

# ==========================================
# PART 2: COLLECTION NAMES
# ==========================================

USERS_COL = "users"
CAMPAIGNS_COL = "campaigns"
POINTS_SUBCOL = "points"       # campaigns/{campaign_id}/points/{campaign_id}
LIKES_SUBCOL = "likes"         # campaigns/{campaign_id}/likes/{uid}
COMMENTS_COL = "comments"
PARTICIPATION_COL = "participation"
RANKS_COL = "rankDescription"
SCORE_LOG_COL = "scoreLog"

# ==========================================
# PART 3: DATABASE INITIALIZATION (SINGLETON)
# ==========================================

# Global variable to hold the DB instance
_DB_CLIENT = None


def _load_credentials():
    if FIREBASE_JSON:
        try:
            return credentials.Certificate(json.loads(FIREBASE_JSON))
        except json.JSONDecodeError as e:
            raise ValueError("FIREBASE_JSON is not valid JSON") from e
    return credentials.Certificate(FIREBASE_CRED_PATH)


def get_db():
    """Returns singleton Firestore client. Initializes Firebase if needed."""
    global _DB_CLIENT

    # Return existing instance if available
    if _DB_CLIENT is not None:
        return _DB_CLIENT

    # Check if Firebase is already initialized internally
    if not firebase_admin._apps:
        try:
            cred = _load_credentials()
            firebase_admin.initialize_app(cred)
            source = "FIREBASE_JSON" if FIREBASE_JSON else FIREBASE_CRED_PATH
            print(f"[System] Firebase initialized using {source}")
        except Exception as e:
            print(f"[Critical Error] Failed to init Firebase: {e}")
            raise

    _DB_CLIENT = firestore.client()
    return _DB_CLIENT


def set_db(client):
    """Swap the Firestore client (emulators, tests). Pass None to reset."""
    global _DB_CLIENT
    _DB_CLIENT = client
