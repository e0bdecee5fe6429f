#!/usr/bin/env python3
"""
Generate a JWT secret key and a development bearer token.

Usage:
    python scripts/issue_token.py                       # secret key only
    python scripts/issue_token.py owner <clinic_id>     # token for an owner
    python scripts/issue_token.py superAdmin            # token without a clinic
"""

import secrets
import sys
from datetime import timedelta

from clinicapi.api.auth import generate_token
from clinicapi.errors import AppError
from clinicapi.rbac import caller_from_claims


def main(argv):
    print("=" * 60)
    print("JWT Secret Key Generator")
    print("=" * 60)
    print(f"\nJWT_SECRET_KEY={secrets.token_hex(32)}")
    print("\nCopy the line above to your .env file")

    if not argv:
        print("=" * 60)
        return 0

    role = argv[0]
    clinic_id = argv[1] if len(argv) > 1 else None
    try:
        caller = caller_from_claims({"user_id": "dev-user", "role": role, "clinic_id": clinic_id})
    except AppError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return 1

    token = generate_token(caller, expires_in=timedelta(days=7))
    print("\n" + "=" * 60)
    print(f"Development token ({caller.role}, clinic={caller.clinic_id}):")
    print("Signed with the JWT_SECRET_KEY currently in the environment.")
    print("=" * 60)
    print(f"\nAuthorization: Bearer {token}\n")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
