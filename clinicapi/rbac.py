"""
Tenant access policy – clinic scoping and role checks for every entity.
"""

from typing import Any, Dict, Iterable, Optional

from clinicapi.errors import AuthenticationError, AuthorizationError, ValidationError
from clinicapi.models import CallerIdentity, UserRole, normalize_clinic_id

_ROLES = {r.value for r in UserRole}


def can_access(role: str, caller_clinic_id: Any, resource_clinic_id: Any) -> bool:
    """Super admins see every clinic; anyone else only their own."""
    if role == UserRole.SUPER_ADMIN.value:
        return True
    caller = normalize_clinic_id(caller_clinic_id)
    return caller != "" and caller == normalize_clinic_id(resource_clinic_id)


def ensure_access(caller: CallerIdentity, resource_clinic_id: Any, entity: str = "record") -> None:
    """Raise AuthorizationError when *caller* may not act on the resource."""
    if not can_access(caller.role, caller.clinic_id, resource_clinic_id):
        raise AuthorizationError(f"You do not have permission to access this {entity}")


def scope_create_clinic(caller: CallerIdentity, requested_clinic_id: Any) -> Optional[str]:
    """Clinic id a new record is created under."""
    if caller.is_super_admin:
        requested = normalize_clinic_id(requested_clinic_id)
        return requested or None
    return normalize_clinic_id(caller.clinic_id) or None


def scope_list_filter(caller: CallerIdentity, filters: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of *filters* with the clinic forced to the caller's for non super admins."""
    scoped = dict(filters)
    if not caller.is_super_admin:
        scoped["clinic_id"] = normalize_clinic_id(caller.clinic_id)
    return scoped


def scope_clinic_param(caller: CallerIdentity, clinic_id: Optional[str]) -> str:
    """Resolve the clinic a per-clinic report is about."""
    target = normalize_clinic_id(clinic_id) or normalize_clinic_id(caller.clinic_id)
    if not target:
        raise ValidationError("clinic id is required")
    if not can_access(caller.role, caller.clinic_id, target):
        raise AuthorizationError("You do not have permission to access this clinic")
    return target


def has_role(caller: CallerIdentity, allowed_roles: Iterable[str]) -> bool:
    return caller.role in set(allowed_roles)


def caller_from_claims(claims: Dict[str, Any]) -> CallerIdentity:
    """Build the request's CallerIdentity from decoded token claims."""
    role = str(claims.get("role", "")).strip()
    if role not in _ROLES:
        raise AuthenticationError(f"Unsupported role '{claims.get('role')}' in token.")

    clinic_id = normalize_clinic_id(claims.get("clinic_id")) or None
    if clinic_id is None and role != UserRole.SUPER_ADMIN.value:
        raise AuthenticationError("Token is missing clinic_id for a clinic-scoped role.")

    return CallerIdentity(
        user_id=str(claims.get("user_id", "")),
        role=role,
        clinic_id=clinic_id,
    )
