"""
JWT authentication helpers and middleware for the Flask API.
"""

from datetime import datetime, timedelta
from functools import wraps
from typing import Any, Dict, Iterable, Optional

import jwt
from flask import jsonify, request

from clinicapi.config import SECRET_KEY, TOKEN_EXPIRY_HOURS
from clinicapi.errors import AppError
from clinicapi.models import CallerIdentity
from clinicapi.rbac import caller_from_claims, has_role


def generate_token(caller: CallerIdentity, expires_in: Optional[timedelta] = None) -> str:
    """Issue a JWT carrying the caller's role and clinic."""
    now = datetime.utcnow()
    payload = {
        "user_id": caller.user_id,
        "role": caller.role,
        "clinic_id": caller.clinic_id,
        "iat": now,
        "exp": now + (expires_in or timedelta(hours=TOKEN_EXPIRY_HOURS)),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm="HS256")


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify a JWT token and return the decoded payload (or None)."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def token_required(f):
    """Decorator that authenticates the request and attaches request.caller."""
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get("Authorization", "")
        if not auth_header:
            return jsonify({"status": "fail", "message": "Authentication token is missing"}), 401
        if not auth_header.startswith("Bearer ") or not auth_header[7:].strip():
            return jsonify({"status": "fail", "message": "Invalid authorization header format"}), 401

        payload = verify_token(auth_header[7:].strip())
        if not payload:
            return jsonify({"status": "fail", "message": "Invalid or expired token"}), 401

        try:
            request.caller = caller_from_claims(payload)
        except AppError as e:
            return jsonify(e.to_dict()), e.status_code

        return f(*args, **kwargs)

    return decorated


def roles_required(roles: Iterable[str]):
    """Decorator (inside token_required) limiting an endpoint to *roles*."""
    allowed = set(roles)

    def wrapper(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            if not has_role(request.caller, allowed):
                return jsonify({"status": "fail", "message": "You do not have permission to perform this action"}), 403
            return f(*args, **kwargs)
        return decorated

    return wrapper
