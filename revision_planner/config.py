# revision_planner/config.py
import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Load .env settings
load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"

# -----------------------
# Planner policy
# -----------------------
PLANNER_TIMEZONE = ZoneInfo(os.getenv("PLANNER_TIMEZONE", "Asia/Kolkata"))

MAX_CONTINUOUS_PER_DAY = int(os.getenv("PLANNER_MAX_CONTINUOUS_PER_DAY", 3))
MAX_BACK_PER_DAY = int(os.getenv("PLANNER_MAX_BACK_PER_DAY", 3))
MAX_TOPICS_PER_SUBJECT = int(os.getenv("PLANNER_MAX_TOPICS_PER_SUBJECT", 2))
QUESTIONS_PER_TOPIC = int(os.getenv("PLANNER_QUESTIONS_PER_TOPIC", 2))

QUESTION_TIERS = [
    "jeemains_easy",
    "neet",
    "boards",
    "jeemains",
    "jeeadvance",
]

# -----------------------
# Scheduled jobs
# -----------------------
JOB_MAX_RETRIES = int(os.getenv("PLANNER_JOB_MAX_RETRIES", 3))
JOB_RETRY_DELAY_SECONDS = float(os.getenv("PLANNER_JOB_RETRY_DELAY_SECONDS", 180))

# -----------------------
# Accounts
# -----------------------
FREE_TRIAL_DAYS = int(os.getenv("FREE_TRIAL_DAYS", 14))
SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", 24))

# -----------------------
# MongoDB
# -----------------------
MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DB = os.getenv("MONGODB_DB", "revision_planner")
MONGODB_QUESTIONS_DB = os.getenv("MONGODB_QUESTIONS_DB") or MONGODB_DB
MONGODB_SELECTION_TIMEOUT_MS = int(os.getenv("MONGODB_SELECTION_TIMEOUT_MS", 5000))
MONGODB_TLS_CA_FILE = os.getenv("MONGODB_TLS_CA_FILE")
MONGODB_TLS_ALLOW_INVALID_CERTS = os.getenv("MONGODB_TLS_ALLOW_INVALID_CERTS", "").strip().lower() in {
    "1",
    "true",
    "yes",
    "on",
}
