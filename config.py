import os
import warnings

from dotenv import load_dotenv

load_dotenv()

# MongoDB
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# Bearer tokens
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    warnings.warn(
        "JWT_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    JWT_SECRET = "INSECURE-DEV-SECRET-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "1440"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
PORT = int(os.getenv("PORT", 8000))


# Reply nesting materialised by the forum views, counted from the post; unset means unbounded
def parse_max_depth(value):
    value = (value or "").strip()
    if not value:
        return None
    try:
        depth = int(value)
    except ValueError:
        depth = 0
    if depth < 1:
        warnings.warn(f"FORUM_MAX_DEPTH={value!r} is not a positive integer, ignoring it", RuntimeWarning, stacklevel=2)
        return None
    return depth


FORUM_MAX_DEPTH = parse_max_depth(os.getenv("FORUM_MAX_DEPTH"))
