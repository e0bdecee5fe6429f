"""
Centralised configuration constants and environment helpers.
"""

import os
import sys

from dotenv import load_dotenv

from clinicapi.models import UserRole

load_dotenv()

# ── Pricing ──────────────────────────────────────────────────────────
VAT_RATE_PERCENT = 7

# ── Roles ────────────────────────────────────────────────────────────
WRITE_ROLES = {r.value for r in (UserRole.OWNER, UserRole.ADMIN, UserRole.MANAGER, UserRole.SUPER_ADMIN)}
DELETE_ROLES = {r.value for r in (UserRole.OWNER, UserRole.ADMIN, UserRole.SUPER_ADMIN)}

# ── Field limits ─────────────────────────────────────────────────────
TREATMENT_NAME_MAX = 200
ASSISTANT_NAME_MAX = 100
NICKNAME_MAX = 50
NATIONALITY_MAX = 100
ADDRESS_MAX = 500

# ── Listing ──────────────────────────────────────────────────────────
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

# ── API server ───────────────────────────────────────────────────────
API_PREFIX = "/api/v1"
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
TOKEN_EXPIRY_HOURS = int(os.getenv("TOKEN_EXPIRY_HOURS", "24"))


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
