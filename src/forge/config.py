from pathlib import Path

# This calculates the absolute path to the project's root directory
# It starts from this file's location (.../src/forge/config.py) and goes up three levels.
ROOT_DIR = Path(__file__).resolve().parent.parent.parent

# All other important paths are built from the ROOT_DIR to ensure they are always correct.
LOGS_DIR = ROOT_DIR / "logs"
DATA_DIR = ROOT_DIR / "data"
SETTINGS_FILE = ROOT_DIR / "forge_settings.json"
DEFAULT_DATABASE_PATH = DATA_DIR / "forge_context.db"

# Conversation memory pacing. Token counts are a 4-characters-per-token estimate.
CHARS_PER_TOKEN = 4
COMPRESSION_TOKEN_THRESHOLD = 15000
RECENT_MESSAGES_KEPT = 10

# Retention caps for the bounded project documents.
GENERATION_HISTORY_LIMIT = 50
OPTIMIZATION_HISTORY_LIMIT = 50
PENDING_TASKS_LIMIT = 5
KEY_DECISIONS_LIMIT = 10

# A project idle for longer than this gets a context-recovery message on load.
CONTEXT_RECOVERY_IDLE_SECONDS = 60 * 60

USER_INTENT_MAX_CHARS = 100

# Defaults handed to the AI service when the caller does not override them.
GENERATION_DEFAULTS = {
    "framework": "react",
    "project_type": "web-app",
    "complexity": "medium",
    "temperature": 0.7,
    "top_p": 0.95,
}
