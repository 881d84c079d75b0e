# backoffice_api/services/audit.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from backoffice_api.extensions import db
from backoffice_api.models.audit import AuditLog

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditEvent:
    module: str
    action: str
    entity: str
    entity_id: Optional[str] = None
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    note: Optional[str] = None
    institution_id: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class AuditEmitter:
    """Receives audit events. The base implementation only logs them."""

    def log(self, caller, event: AuditEvent) -> None:
        log.info(
            "audit %s.%s %s=%s actor=%s",
            event.module, event.action, event.entity, event.entity_id,
            getattr(caller, "actor_id", None),
        )


class DatabaseAuditEmitter(AuditEmitter):
    """
    Persists one AuditLog row per event in a session of its own, so the
    caller's unit of work is never committed or rolled back from here.
    """

    def log(self, caller, event: AuditEvent) -> None:
        institution_id = event.institution_id
        if institution_id is None:
            institution_id = getattr(caller, "tenant_id", None)

        row = AuditLog(
            institution_id=institution_id,
            actor_id=getattr(caller, "actor_id", None),
            module=event.module,
            action=event.action,
            entity=event.entity,
            entity_id=event.entity_id,
            before_json=event.before,
            after_json=event.after,
            note=event.note,
        )
        with Session(db.engine) as s:
            s.add(row)
            s.commit()
