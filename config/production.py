import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "ojt_tracker"),
}

DEBUG = False

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

TZ_OFFSET_HOURS = float(os.getenv("TZ_OFFSET_HOURS", "8"))
GRACE_MINUTES = int(os.getenv("GRACE_MINUTES", "30"))
DEFAULT_TARGET_HOURS = float(os.getenv("DEFAULT_TARGET_HOURS", "486"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
