import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "ojt_tracker"),
}

DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

# Wall clock of the portal (hours east of UTC)
TZ_OFFSET_HOURS = float(os.getenv("TZ_OFFSET_HOURS", "8"))
GRACE_MINUTES = int(os.getenv("GRACE_MINUTES", "30"))
DEFAULT_TARGET_HOURS = float(os.getenv("DEFAULT_TARGET_HOURS", "486"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
