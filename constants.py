import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Codes are fixed-length numeric strings
CODE_LENGTH = int(os.getenv("CODE_LENGTH", 4))

ROOM_CAPACITY = int(os.getenv("ROOM_CAPACITY", 4))
# A room is locked once this many peers are connected
LOCK_THRESHOLD = 2
SESSION_MAX_AGE_SECONDS = int(os.getenv("SESSION_MAX_AGE_SECONDS", 4 * 60 * 60))

RATE_LIMIT_MAX_ATTEMPTS = int(os.getenv("RATE_LIMIT_MAX_ATTEMPTS", 5))
RATE_LIMIT_LOCKOUT_SECONDS = int(os.getenv("RATE_LIMIT_LOCKOUT_SECONDS", 5 * 60))

SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", 60))

TRUST_FORWARDED_FOR = os.getenv("TRUST_FORWARDED_FOR", "true").lower() in ("1", "true", "yes")

CORS_ALLOW_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()]
