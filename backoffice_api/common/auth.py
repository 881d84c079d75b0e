# backoffice_api/common/auth.py
from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import FrozenSet, Iterable, Optional

from flask import request
from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from backoffice_api.common.errors import (
    ForbiddenError,
    RoleForbiddenError,
    UnauthenticatedError,
    ValidationError,
)

# role codes as issued in the "roles" claim
ADMIN = "ADMIN"
SUPER_ADMIN = "SUPER_ADMIN"
DIRECTOR = "DIRECTOR"
SECRETARIAT = "SECRETARIAT"
HR = "HR"

GLOBAL_ROLES = frozenset({SUPER_ADMIN})


@dataclass(frozen=True)
class CallerContext:
    """Who is calling, with which roles, on behalf of which institution.

    Built once per request from the JWT and passed explicitly into every
    payroll operation.
    """
    actor_id: int
    roles: FrozenSet[str]
    tenant_id: Optional[int] = None

    @property
    def is_global(self) -> bool:
        return bool(self.roles & GLOBAL_ROLES)

    def has_any_role(self, codes: Iterable[str]) -> bool:
        return any(c in self.roles for c in codes)

    def require_tenant(self) -> Optional[int]:
        """Tenant id for scoping; None only for global roles (unscoped)."""
        if self.tenant_id is None and not self.is_global:
            raise ForbiddenError("Operation requires an institution scope", code="TENANT_REQUIRED")
        return self.tenant_id


# ---------- helpers ----------

def _as_int(val, field):
    if val in (None, "", "null"):
        return None
    try:
        return int(val)
    except Exception:
        raise ValidationError(f"{field} must be integer")


def _roles_from_claims(claims) -> FrozenSet[str]:
    raw = claims.get("roles") or []
    if isinstance(raw, str):
        raw = [raw]
    return frozenset(str(r).strip().upper() for r in raw if r)


def current_caller() -> CallerContext:
    """
    Resolve the caller from the verified JWT of the current request.
    Claims used:
      sub            -> actor id
      roles          -> role codes
      institution_id -> tenant (optional for SUPER_ADMIN)
    SUPER_ADMIN may scope a request to another institution with ?institution_id=.
    """
    uid = get_jwt_identity()
    if uid in (None, ""):
        raise UnauthenticatedError("Unauthorized")
    try:
        actor_id = int(uid)
    except (TypeError, ValueError):
        raise UnauthenticatedError("Invalid token identity")

    claims = get_jwt() or {}
    roles = _roles_from_claims(claims)
    tenant_id = _as_int(claims.get("institution_id"), "institution_id")

    if roles & GLOBAL_ROLES:
        override = request.args.get("institution_id") or request.args.get("institutionId")
        if override:
            tenant_id = _as_int(override, "institution_id")

    return CallerContext(actor_id=actor_id, roles=roles, tenant_id=tenant_id)


# ---------- decorators ----------

def requires_roles(*codes: str):
    """
    Require that the current user has AT LEAST ONE of the given role codes.
    'SUPER_ADMIN' always passes.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            caller = current_caller()
            if caller.is_global or not codes:
                return fn(*args, **kwargs)
            if not caller.has_any_role(codes):
                raise RoleForbiddenError("Forbidden")
            return fn(*args, **kwargs)
        return inner
    return outer
